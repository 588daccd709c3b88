# src/stages/optimization.py - v1
"""Optimization stage: structural SVG cleanup plus user transformations.

This stage never fails a build. Any error is logged as an
OptimizationFailedError and the raw converter output is used instead.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

from texsvg.core.errors import OptimizationFailedError
from texsvg.core.hooks import PostprocessStrategy
from texsvg.stages.svg_optimizer import SvgOptimizer

if TYPE_CHECKING:
    from texsvg.core.models import ResolvedConfig, Transformation

logger = logging.getLogger(__name__)

STAGE = "optimizing"


@dataclass(frozen=True)
class OptimizationOutcome:
    svg: str
    optimized: bool
    error: OptimizationFailedError | None = None


def apply_transformations(svg: str, transformations: Sequence[Transformation]) -> str:
    """Apply transformations in declaration order.

    Regex pairs replace every match; strategies receive the whole document.
    """
    for transformation in transformations:
        if isinstance(transformation, PostprocessStrategy):
            svg = transformation.process(svg)
        else:
            pattern, replacement = transformation
            svg = re.sub(pattern, replacement, svg)
    return svg


def _optimize(svg: str, config: ResolvedConfig) -> str:
    if config.custom_postprocess is not None:
        out = config.custom_postprocess.process(svg)
    elif config.optimizer.enabled:
        out = SvgOptimizer(config.optimizer).optimize(svg)
    else:
        out = svg
    out = apply_transformations(out, config.transformations)
    if not isinstance(out, str) or not out.strip():
        raise OptimizationFailedError("Optimizer produced empty output", stage=STAGE)
    return out


async def optimize_svg(svg: str, config: ResolvedConfig) -> OptimizationOutcome:
    """Optimize ``svg``; on any error fall back to the unmodified input."""
    try:
        out = await asyncio.to_thread(_optimize, svg, config)
    except Exception as e:
        error = (
            e if isinstance(e, OptimizationFailedError)
            else OptimizationFailedError(f"SVG optimization failed: {e}", stage=STAGE)
        )
        logger.warning("%s; using unoptimized SVG", error)
        return OptimizationOutcome(svg=svg, optimized=False, error=error)

    changed_by = (
        config.custom_postprocess is not None
        or config.optimizer.enabled
        or bool(config.transformations)
    )
    return OptimizationOutcome(svg=out, optimized=changed_by)
