# tests/unit/cache/test_unit_base_cache_store.py - v2
"""Tests for cache/base_cache_store.py and cache/models.py."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest
from pydantic import ValidationError

from texsvg.cache.base_cache_store import BaseCacheStore
from texsvg.cache.models import CacheRecord


class TestBaseCacheStore:
    def test_cannot_instantiate(self):
        with pytest.raises(TypeError):
            BaseCacheStore()  # type: ignore[abstract]

    def test_has_required_methods(self):
        for method in ["get", "put", "delete", "list_entries", "close"]:
            assert hasattr(BaseCacheStore, method)


class TestCacheRecord:
    def test_frozen(self):
        record = CacheRecord(
            fingerprint="f" * 64,
            artifact_path=Path("/o/x.svg"),
            created_at=datetime.now(timezone.utc),
            source_hash="s",
            artifact_hash="a",
        )
        with pytest.raises(ValidationError):
            record.artifact_hash = "b"

    def test_json_round_trip(self):
        record = CacheRecord(
            fingerprint="f" * 64,
            artifact_path=Path("/o/x.svg"),
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
            source_hash="s",
            artifact_hash="a",
            engine="xelatex",
        )
        assert CacheRecord.model_validate_json(record.model_dump_json()) == record
