# src/cache/sqlite_store.py - v2
"""SQLite-based cache store (cache_backend=sqlite).

Uses stdlib sqlite3 with no external dependency. Preferable to the JSON
backend when a cache holds many thousands of snippets.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from pydantic import ValidationError

from texsvg.cache.base_cache_store import BaseCacheStore
from texsvg.cache.models import CacheRecord

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_records (
    fingerprint TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    source_hash TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_source_hash ON cache_records(source_hash);
"""


class SqliteCacheStore(BaseCacheStore):
    """SQLite-backed cache store."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    async def get(self, fingerprint: str) -> CacheRecord | None:
        """Retrieve record by fingerprint."""
        cursor = self._conn.execute(
            "SELECT data FROM cache_records WHERE fingerprint = ?", (fingerprint,)
        )
        row = cursor.fetchone()
        if row is None:
            return None
        try:
            return CacheRecord.model_validate_json(row[0])
        except ValidationError as e:
            logger.warning("Failed to deserialize cache record %s: %s", fingerprint, e)
            return None

    async def put(self, record: CacheRecord) -> None:
        """Store a record (upsert)."""
        self._conn.execute(
            """INSERT OR REPLACE INTO cache_records
               (fingerprint, data, source_hash)
               VALUES (?, ?, ?)""",
            (record.fingerprint, record.model_dump_json(), record.source_hash),
        )
        self._conn.commit()

    async def delete(self, fingerprint: str) -> None:
        """Remove a record."""
        self._conn.execute(
            "DELETE FROM cache_records WHERE fingerprint = ?", (fingerprint,)
        )
        self._conn.commit()

    async def list_entries(self) -> list[CacheRecord]:
        """List all stored records."""
        cursor = self._conn.execute("SELECT data FROM cache_records")
        entries: list[CacheRecord] = []
        for row in cursor.fetchall():
            try:
                entries.append(CacheRecord.model_validate_json(row[0]))
            except ValidationError:
                continue
        return entries

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
