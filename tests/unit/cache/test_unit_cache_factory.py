# tests/unit/cache/test_unit_cache_factory.py - v2
"""Tests for cache/cache_factory.py."""

from __future__ import annotations

import pytest

from texsvg.cache.cache_factory import create_cache_store
from texsvg.cache.json_store import JsonCacheStore
from texsvg.cache.sqlite_store import SqliteCacheStore
from texsvg.config.settings import Settings


class TestCreateCacheStore:
    def test_json_backend(self, tmp_path):
        settings = Settings(_env_file=None, cache_backend="json", cache_directory=tmp_path)
        store = create_cache_store(settings)
        assert isinstance(store, JsonCacheStore)

    def test_sqlite_backend(self, tmp_path):
        settings = Settings(_env_file=None, cache_backend="sqlite", cache_directory=tmp_path)
        store = create_cache_store(settings)
        try:
            assert isinstance(store, SqliteCacheStore)
            assert (tmp_path / "records.db").exists()
        finally:
            store.close()

    def test_cache_directory_override(self, tmp_path):
        settings = Settings(_env_file=None, cache_directory=tmp_path / "ignored")
        create_cache_store(settings, cache_directory=tmp_path / "used")
        assert (tmp_path / "used" / "records").is_dir()
        assert not (tmp_path / "ignored").exists()

    def test_unknown_backend(self, tmp_path):
        settings = Settings(_env_file=None, cache_directory=tmp_path)
        object.__setattr__(settings, "cache_backend", "redis")
        with pytest.raises(ValueError, match="Unsupported cache backend"):
            create_cache_store(settings)
