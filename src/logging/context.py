# src/logging/context.py - v2
"""Contextual logging: attach fingerprint, component and stage to log records.

Context variables follow asyncio tasks, so concurrent builds started with
``asyncio.gather`` each log their own fingerprint.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

_fingerprint: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "fingerprint", default=None
)
_component: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "component", default=None
)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "stage", default=None
)


@dataclass
class LogContext:
    """Snapshot of the current logging context."""

    fingerprint: str | None = None
    component: str | None = None
    stage: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    return LogContext(
        fingerprint=_fingerprint.get(),
        component=_component.get(),
        stage=_stage.get(),
    )


def set_build_context(fingerprint: str | None, component: str | None = None) -> None:
    """Set build-level context (once per render call)."""
    _fingerprint.set(fingerprint[:12] if fingerprint else None)
    _component.set(component)


def set_stage(stage: str | None) -> None:
    _stage.set(stage)


@contextmanager
def stage_context(stage: str) -> Iterator[None]:
    """Set the stage for the duration of a ``with`` block."""
    token = _stage.set(stage)
    try:
        yield
    finally:
        _stage.reset(token)


def clear_context() -> None:
    """Reset all context variables."""
    _fingerprint.set(None)
    _component.set(None)
    _stage.set(None)
