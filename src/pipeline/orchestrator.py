# src/pipeline/orchestrator.py - v3
"""Pipeline orchestrator: TexRequest -> cached or freshly built SVG.

Per request:
  1. Resolve configuration (base -> component type -> instance) and preflight.
  2. Fingerprint; a valid cache record short-circuits the build.
  3. Become the builder or join an in-flight build of the same fingerprint.
     Hits and joins copy the SVG to this request's own artifact path.
  4. The builder runs COMPILING -> CONVERTING -> OPTIMIZING under a semaphore
     bounding parallel builds, writes the artifact atomically and commits.

Build failures never escape ``render``: they are logged and returned as a
failed RenderResult, so one broken snippet does not stop its siblings.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable

from texsvg.cache.fingerprint import compute_fingerprint, hash_text, normalize_source
from texsvg.cache.manager import CacheManager
from texsvg.config.resolver import Layer, base_config, merge_layers, resolve
from texsvg.config.settings import load_settings
from texsvg.core.errors import InvalidConfigurationError, TexSvgError
from texsvg.core.models import RenderResult, ResolvedConfig, TexRequest
from texsvg.logging.context import set_build_context, stage_context
from texsvg.pipeline.state import BuildJob, BuildStage
from texsvg.process.runner import run_command
from texsvg.stages.compilation import compile_tex
from texsvg.stages.conversion import convert_to_svg
from texsvg.stages.document import build_tex_document, is_full_document
from texsvg.stages.optimization import optimize_svg
from texsvg.stages.svg_optimizer import PLUGINS
from texsvg.storage.layout import (
    TexPaths,
    artifact_path,
    remove_file,
    remove_tree,
    work_dir,
    write_text_atomic,
)

if TYPE_CHECKING:
    from texsvg.cache.base_cache_store import BaseCacheStore
    from texsvg.config.settings import Settings
    from texsvg.process.runner import ProcessRunner

logger = logging.getLogger(__name__)


class TexPipeline:
    """Entry point used by content handlers to turn TeX into SVG.

    Args:
        settings: Deployment settings. Loaded from the environment if None.
        cache_store: Fixed cache-record store. If None, one store per cache
            directory is created from ``settings.cache_backend``.
        runner: Async process runner; replaced by fakes in tests.
        component_configs: Per-component-type override layers.
        base: Global layer merged over the settings-derived defaults.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        cache_store: BaseCacheStore | None = None,
        runner: ProcessRunner = run_command,
        component_configs: dict[str, Layer] | None = None,
        base: Layer = None,
    ) -> None:
        self._settings = settings or load_settings()
        self._runner = runner
        self._base = merge_layers(base_config(self._settings), base)
        self._components: dict[str, Layer] = dict(component_configs or {})
        self._cache = CacheManager(store=cache_store, settings=self._settings)
        self._semaphore = asyncio.Semaphore(self._settings.max_parallel_builds)

    @property
    def cache(self) -> CacheManager:
        return self._cache

    def register_component(self, kind: str, overrides: Layer) -> None:
        """Set the override layer applied to every request of ``kind``."""
        self._components[kind] = overrides
        logger.debug("Registered component type %r", kind)

    def resolve_config(self, request: TexRequest) -> ResolvedConfig:
        return resolve(
            self._base,
            self._components.get(request.component_kind),
            request.instance_overrides,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def render(self, request: TexRequest) -> RenderResult:
        """Render one snippet. Never raises for build failures."""
        set_build_context(None, request.component_kind)
        try:
            config = self.resolve_config(request)
            preflight(request, config)
        except TexSvgError as e:
            logger.error("Rejected %s snippet: %s", request.component_kind, e)
            return RenderResult(status="failed", error=e)

        fingerprint = compute_fingerprint(request.source_text, config)
        set_build_context(fingerprint, request.component_kind)

        target = artifact_path(config.output_directory, fingerprint, request.identifier)
        hit = await self._from_cache(fingerprint, config, target)
        if hit is not None:
            return hit

        acquisition = await self._cache.acquire_or_join(fingerprint, request, config)
        if not acquisition.is_new_builder:
            return await self._join(acquisition.job, target)
        return await self._build(acquisition.job, request, config, target)

    async def render_or_raise(self, request: TexRequest) -> RenderResult:
        """Like ``render`` but raises the build error on failure."""
        result = await self.render(request)
        if not result.ok and result.error is not None:
            raise result.error
        return result

    async def render_many(self, requests: Iterable[TexRequest]) -> list[RenderResult]:
        """Render concurrently; results are in request order."""
        return list(await asyncio.gather(*(self.render(r) for r in requests)))

    def close(self) -> None:
        self._cache.close()

    # ------------------------------------------------------------------
    # Cache hits and joins
    # ------------------------------------------------------------------

    async def _from_cache(
        self, fingerprint: str, config: ResolvedConfig, target: Path
    ) -> RenderResult | None:
        """Serve a valid cache record, placing the SVG at this request's ``target``."""
        record = await self._cache.lookup(
            fingerprint, config.cache_directory, config.caching_enabled
        )
        if record is None:
            return None
        try:
            svg = _read_artifact(record.artifact_path)
        except (OSError, UnicodeDecodeError):
            logger.warning("Cached artifact unreadable, rebuilding", exc_info=True)
            return None
        try:
            path = _publish(svg, record.artifact_path, target)
        except OSError as e:
            logger.error("Could not write %s: %s", target, e)
            return RenderResult(fingerprint=fingerprint, status="failed", error=e)
        logger.debug("Cache hit -> %s", path)
        return RenderResult(
            fingerprint=fingerprint,
            status="done",
            svg=svg,
            artifact_path=path,
            cached=True,
        )

    async def _join(self, job: BuildJob, target: Path) -> RenderResult:
        # shield: a cancelled joiner must not cancel the shared outcome
        try:
            built = await asyncio.shield(job.future)
            svg = _read_artifact(built)
            path = _publish(svg, built, target)
        except Exception as e:
            logger.error("Joined build failed: %s", e)
            return RenderResult(
                fingerprint=job.fingerprint, status="failed", joined=True, error=e
            )
        return RenderResult(
            fingerprint=job.fingerprint,
            status="done",
            svg=svg,
            artifact_path=path,
            joined=True,
        )

    # ------------------------------------------------------------------
    # Builder
    # ------------------------------------------------------------------

    async def _build(
        self,
        job: BuildJob,
        request: TexRequest,
        config: ResolvedConfig,
        target: Path,
    ) -> RenderResult:
        fingerprint = job.fingerprint

        # A build may have committed between our lookup and acquire_or_join.
        hit = await self._from_cache(fingerprint, config, target)
        if hit is not None:
            if hit.ok and hit.artifact_path is not None:
                await self._cache.commit(
                    fingerprint, hit.artifact_path, "", "",
                    config.cache_directory, caching_enabled=False,
                )
            else:
                await self._cache.fail(fingerprint, hit.error or TexSvgError("Cache hit failed"))
                _mark_retrieved(job)
            return hit

        # Engines run with cwd=work, so every path handed to them must be absolute.
        work = work_dir(config.cache_directory.expanduser().resolve(), fingerprint)
        written = False
        start = time.monotonic()

        try:
            async with self._semaphore:
                svg, optimized = await self._run_stages(job, request, config, work)
                write_text_atomic(target, svg)
                written = True
                job.advance(BuildStage.DONE)
        except asyncio.CancelledError:
            error = TexSvgError("Build cancelled", stage=job.stage.value)
            await self._abort(job, config, work, target if written else None, error)
            raise
        except Exception as e:
            await self._abort(job, config, work, target if written else None, e)
            logger.error(
                "Build failed in %s stage: %s", getattr(e, "stage", None) or job.stage.value, e
            )
            return RenderResult(fingerprint=fingerprint, status="failed", error=e)

        await self._cache.commit(
            fingerprint,
            target.expanduser().resolve(),
            source_hash=hash_text(normalize_source(request.source_text)),
            artifact_hash=hash_text(svg),
            cache_directory=config.cache_directory,
            caching_enabled=config.caching_enabled,
            engine=config.engine,
        )
        if not config.debug.keep_intermediate:
            remove_tree(work)

        logger.log(
            config.debug.summary_level,
            "Built %s in %.2fs (%d joined)",
            target.name, time.monotonic() - start, max(job.waiters - 1, 0),
        )
        return RenderResult(
            fingerprint=fingerprint,
            status="done",
            svg=svg,
            artifact_path=target,
            optimized=optimized,
        )

    async def _run_stages(
        self, job: BuildJob, request: TexRequest, config: ResolvedConfig, work: Path
    ) -> tuple[str, bool]:
        paths = TexPaths(dir=work, intermediate_ext=config.intermediate_extension)
        remove_tree(work)
        work.mkdir(parents=True, exist_ok=True)
        write_text_atomic(paths.tex, build_tex_document(request.source_text, config))

        job.advance(BuildStage.COMPILING)
        with stage_context(BuildStage.COMPILING.value):
            try:
                compiled = await compile_tex(paths, config, self._runner)
            except TexSvgError as e:
                job.capture(e.stdout, e.stderr)
                raise
            job.capture(compiled.process.stdout, compiled.process.stderr)

        job.advance(BuildStage.CONVERTING)
        with stage_context(BuildStage.CONVERTING.value):
            try:
                converted = await convert_to_svg(paths, config, self._runner)
            except TexSvgError as e:
                job.capture(e.stdout, e.stderr)
                raise
            job.capture(converted.process.stdout, converted.process.stderr)

        job.advance(BuildStage.OPTIMIZING)
        with stage_context(BuildStage.OPTIMIZING.value):
            outcome = await optimize_svg(converted.svg, config)

        return outcome.svg, outcome.optimized

    async def _abort(
        self,
        job: BuildJob,
        config: ResolvedConfig,
        work: Path,
        partial_artifact: Path | None,
        error: Exception,
    ) -> None:
        if not job.stage.terminal:
            job.advance(BuildStage.FAILED)
        if partial_artifact is not None:
            remove_file(partial_artifact)
        if not config.debug.keep_intermediate:
            remove_tree(work)
        await self._cache.fail(job.fingerprint, error)
        _mark_retrieved(job)


def preflight(request: TexRequest, config: ResolvedConfig) -> None:
    """Reject configurations that cannot produce an SVG before spawning anything.

    Raises:
        InvalidConfigurationError: On the first structural problem found.
    """
    problems: list[str] = []

    if not request.source_text.strip():
        problems.append("TeX source is empty")
    if not config.document_class.strip() and not is_full_document(request.source_text):
        problems.append("document_class is empty")
    if config.timeout_s is not None and config.timeout_s <= 0:
        problems.append("timeout_s must be positive")

    if config.custom_postprocess is None and config.optimizer.enabled:
        for entry in config.optimizer.plugins:
            name = entry if isinstance(entry, str) else entry.name
            if name not in PLUGINS:
                problems.append(f"unknown optimizer plugin {name!r}")

    if problems:
        raise InvalidConfigurationError("; ".join(problems), stage="preflight")

    if config.safer_lua and "lualatex" not in config.engine:
        logger.warning("safer_lua has no effect with engine %s", config.engine)


def _read_artifact(path: Any) -> str:
    return Path(path).read_bytes().decode("utf-8")


def _publish(svg: str, built: Path, target: Path) -> Path:
    """Place an already built SVG at ``target`` unless it is already there."""
    if Path(built).resolve() != Path(target).resolve():
        write_text_atomic(target, svg)
    return target


def _mark_retrieved(job: BuildJob) -> None:
    # Silences "exception was never retrieved" when nobody joined.
    if job.future.done() and not job.future.cancelled():
        job.future.exception()
