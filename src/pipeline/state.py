# src/pipeline/state.py - v3
r"""In-flight build state: BuildStage machine and BuildJob.

    PENDING -> COMPILING -> CONVERTING -> OPTIMIZING -> DONE
       \___________\____________\_____________\______-> FAILED

A BuildJob exists from the cache miss that starts a build until its outcome
has been delivered to every waiter.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from texsvg.core.models import ResolvedConfig, TexRequest


class BuildStage(str, Enum):
    PENDING = "pending"
    COMPILING = "compiling"
    CONVERTING = "converting"
    OPTIMIZING = "optimizing"
    DONE = "done"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (BuildStage.DONE, BuildStage.FAILED)


_TRANSITIONS: dict[BuildStage, frozenset[BuildStage]] = {
    BuildStage.PENDING: frozenset({BuildStage.COMPILING, BuildStage.FAILED}),
    BuildStage.COMPILING: frozenset({BuildStage.CONVERTING, BuildStage.FAILED}),
    BuildStage.CONVERTING: frozenset({BuildStage.OPTIMIZING, BuildStage.FAILED}),
    BuildStage.OPTIMIZING: frozenset({BuildStage.DONE, BuildStage.FAILED}),
    BuildStage.DONE: frozenset(),
    BuildStage.FAILED: frozenset(),
}


def can_transition(current: BuildStage, target: BuildStage) -> bool:
    return target in _TRANSITIONS[current]


@dataclass
class StageTransition:
    stage: BuildStage
    at: datetime


@dataclass
class BuildJob:
    """Transient state of one in-flight build, shared by all its waiters."""

    fingerprint: str
    request: TexRequest | None = None
    config: ResolvedConfig | None = None
    stage: BuildStage = BuildStage.PENDING
    stdout: list[str] = field(default_factory=list)
    stderr: list[str] = field(default_factory=list)
    history: list[StageTransition] = field(default_factory=list)
    waiters: int = 0
    error: Exception | None = None
    result: Path | None = None
    future: asyncio.Future[Path] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.future = asyncio.get_running_loop().create_future()
        self.history.append(StageTransition(self.stage, datetime.now(timezone.utc)))

    def advance(self, target: BuildStage) -> None:
        """Move to ``target``; illegal transitions raise RuntimeError."""
        if not can_transition(self.stage, target):
            raise RuntimeError(
                f"Illegal build transition {self.stage.value} -> {target.value} "
                f"for {self.fingerprint[:12]}"
            )
        self.stage = target
        self.history.append(StageTransition(target, datetime.now(timezone.utc)))

    def capture(self, stdout: str = "", stderr: str = "") -> None:
        """Append process output of the current stage."""
        if stdout:
            self.stdout.append(stdout)
        if stderr:
            self.stderr.append(stderr)

    @property
    def settled(self) -> bool:
        return self.future.done()

    def stages_visited(self) -> list[BuildStage]:
        return [t.stage for t in self.history]
