# src/cache/cache_factory.py - v3
"""Factory for cache store instantiation."""

from __future__ import annotations

from pathlib import Path

from texsvg.cache.base_cache_store import BaseCacheStore
from texsvg.config.settings import Settings
from texsvg.storage import layout


def create_cache_store(
    settings: Settings | None = None,
    cache_directory: Path | None = None,
) -> BaseCacheStore:
    """Instantiate the configured cache backend.

    Args:
        settings: Application settings. Defaults to the JSON backend.
        cache_directory: Overrides ``settings.cache_directory``.

    Returns:
        Configured BaseCacheStore implementation.
    """
    backend = "json" if settings is None else settings.cache_backend
    if cache_directory is None:
        cache_directory = (
            Path(".texsvg-cache") if settings is None else settings.cache_directory
        )

    if backend == "json":
        from texsvg.cache.json_store import JsonCacheStore
        return JsonCacheStore(cache_directory=cache_directory)

    if backend == "sqlite":
        from texsvg.cache.sqlite_store import SqliteCacheStore
        return SqliteCacheStore(db_path=layout.sqlite_path(Path(cache_directory)))

    raise ValueError(f"Unsupported cache backend: {backend!r}")
