# src/cache/base_cache_store.py - v2
"""Abstract cache store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from texsvg.cache.models import CacheRecord


class BaseCacheStore(ABC):
    """Unified interface for cache-record storage backends."""

    @abstractmethod
    async def get(self, fingerprint: str) -> CacheRecord | None:
        """Retrieve the record for a fingerprint."""

    @abstractmethod
    async def put(self, record: CacheRecord) -> None:
        """Store a record under its fingerprint."""

    @abstractmethod
    async def delete(self, fingerprint: str) -> None:
        """Remove a record."""

    @abstractmethod
    async def list_entries(self) -> list[CacheRecord]:
        """List all stored records."""

    def close(self) -> None:
        """Release backend resources."""
