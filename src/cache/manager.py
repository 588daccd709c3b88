# src/cache/manager.py - v1
"""Cache manager: fingerprint -> record lookup and single-builder joins.

The manager exclusively owns two maps:

  - fingerprint -> CacheRecord, persisted through a BaseCacheStore;
  - fingerprint -> in-flight BuildJob, in memory.

The first request for an uncached fingerprint becomes its builder; every
later request arriving before the build settles joins the builder's job and
receives the same outcome. Failures are delivered to all waiters and never
persisted.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from texsvg.cache.cache_factory import create_cache_store
from texsvg.cache.fingerprint import hash_text
from texsvg.cache.models import CacheRecord
from texsvg.pipeline.state import BuildJob

if TYPE_CHECKING:
    from texsvg.cache.base_cache_store import BaseCacheStore
    from texsvg.config.settings import Settings
    from texsvg.core.models import ResolvedConfig, TexRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Acquisition:
    """Result of acquire_or_join."""

    is_new_builder: bool
    job: BuildJob


class CacheManager:
    """Owns cache records and in-flight builds.

    Args:
        store: Fixed store used for every cache directory. If None, one store
            per cache directory is created lazily by ``store_factory``.
        settings: Selects the backend for lazily created stores.
        store_factory: ``cache_directory -> BaseCacheStore``.
    """

    def __init__(
        self,
        store: BaseCacheStore | None = None,
        settings: Settings | None = None,
        store_factory: Callable[[Path], BaseCacheStore] | None = None,
    ) -> None:
        self._store = store
        self._stores: dict[Path, BaseCacheStore] = {}
        self._store_factory = store_factory or (
            lambda directory: create_cache_store(settings, cache_directory=directory)
        )
        self._jobs: dict[str, BuildJob] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def store_for(self, cache_directory: Path) -> BaseCacheStore:
        if self._store is not None:
            return self._store
        key = Path(cache_directory).expanduser().resolve()
        store = self._stores.get(key)
        if store is None:
            store = self._store_factory(key)
            self._stores[key] = store
        return store

    async def lookup(
        self,
        fingerprint: str,
        cache_directory: Path,
        caching_enabled: bool = True,
    ) -> CacheRecord | None:
        """Return a usable record, or None on a miss.

        A record whose artifact is missing or no longer matches its hash
        is stale and counts as a miss.
        """
        if not caching_enabled:
            return None
        record = await self.store_for(cache_directory).get(fingerprint)
        if record is None:
            return None
        if not _artifact_intact(record):
            logger.info("Stale cache record for %s, rebuilding", fingerprint[:12])
            return None
        return record

    # ------------------------------------------------------------------
    # In-flight builds
    # ------------------------------------------------------------------

    async def acquire_or_join(
        self,
        fingerprint: str,
        request: TexRequest | None = None,
        config: ResolvedConfig | None = None,
    ) -> Acquisition:
        """Become the builder of ``fingerprint`` or join the running build."""
        async with self._lock:
            job = self._jobs.get(fingerprint)
            if job is not None:
                job.waiters += 1
                logger.debug(
                    "Joining in-flight build %s (%d waiters)",
                    fingerprint[:12], job.waiters,
                )
                return Acquisition(is_new_builder=False, job=job)

            job = BuildJob(fingerprint=fingerprint, request=request, config=config)
            job.waiters = 1
            self._jobs[fingerprint] = job
            return Acquisition(is_new_builder=True, job=job)

    async def commit(
        self,
        fingerprint: str,
        artifact_path: Path,
        source_hash: str,
        artifact_hash: str,
        cache_directory: Path,
        caching_enabled: bool = True,
        engine: str = "",
    ) -> CacheRecord | None:
        """Record a successful build and release all waiters.

        With caching disabled nothing is persisted, but waiters still receive
        the artifact path. A store write failure only costs reuse: it is
        logged and the build still counts as successful.
        """
        record: CacheRecord | None = None
        if caching_enabled:
            record = CacheRecord(
                fingerprint=fingerprint,
                artifact_path=artifact_path,
                created_at=datetime.now(timezone.utc),
                source_hash=source_hash,
                artifact_hash=artifact_hash,
                engine=engine,
            )
            try:
                await self.store_for(cache_directory).put(record)
            except Exception:
                logger.warning(
                    "Could not persist cache record for %s",
                    fingerprint[:12], exc_info=True,
                )
                record = None

        job = await self._pop(fingerprint)
        if job is not None and not job.future.done():
            job.result = artifact_path
            job.future.set_result(artifact_path)
        return record

    async def fail(self, fingerprint: str, error: Exception) -> None:
        """Release all waiters with ``error``. Nothing is persisted."""
        job = await self._pop(fingerprint)
        if job is None:
            logger.warning("fail() for unknown build %s", fingerprint[:12])
            return
        job.error = error
        if not job.future.done():
            job.future.set_exception(error)

    def in_flight(self, fingerprint: str) -> bool:
        return fingerprint in self._jobs

    @property
    def in_flight_count(self) -> int:
        return len(self._jobs)

    def close(self) -> None:
        """Close every store this manager opened."""
        if self._store is not None:
            self._store.close()
        for store in self._stores.values():
            store.close()
        self._stores.clear()

    async def _pop(self, fingerprint: str) -> BuildJob | None:
        async with self._lock:
            return self._jobs.pop(fingerprint, None)


def _artifact_intact(record: CacheRecord) -> bool:
    path = Path(record.artifact_path)
    try:
        return hash_text(path.read_bytes().decode("utf-8")) == record.artifact_hash
    except (OSError, UnicodeDecodeError):
        return False
