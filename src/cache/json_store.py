# src/cache/json_store.py - v2
"""JSON file-based cache store (default cache_backend=json).

Stores one JSON file per fingerprint under ``{cache_directory}/records/``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from texsvg.cache.base_cache_store import BaseCacheStore
from texsvg.cache.models import CacheRecord
from texsvg.storage import layout

logger = logging.getLogger(__name__)


class JsonCacheStore(BaseCacheStore):
    """File-based cache store using JSON files."""

    def __init__(self, cache_directory: Path | str) -> None:
        self._root = Path(cache_directory).expanduser()
        layout.records_root(self._root).mkdir(parents=True, exist_ok=True)

    async def get(self, fingerprint: str) -> CacheRecord | None:
        """Retrieve record by fingerprint."""
        path = layout.record_path(self._root, fingerprint)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return CacheRecord(**data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning("Failed to read cache record %s: %s", fingerprint, e)
            return None

    async def put(self, record: CacheRecord) -> None:
        """Store a record (atomic write)."""
        path = layout.record_path(self._root, record.fingerprint)
        layout.write_text_atomic(path, record.model_dump_json(indent=2))

    async def delete(self, fingerprint: str) -> None:
        """Remove a record."""
        layout.remove_file(layout.record_path(self._root, fingerprint))

    async def list_entries(self) -> list[CacheRecord]:
        """List all stored records."""
        entries: list[CacheRecord] = []
        root = layout.records_root(self._root)
        if not root.is_dir():
            return entries

        for path in sorted(root.glob("*/*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                entries.append(CacheRecord(**data))
            except (OSError, json.JSONDecodeError, ValidationError):
                logger.debug("Skipping unreadable cache record %s", path)
                continue

        return entries
