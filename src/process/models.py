# src/process/models.py - v1
"""Process execution models: CliInstruction, ProcessResult."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field


class CliInstruction(BaseModel):
    """A command to spawn as a child process.

    The command is never run through a shell; ``args`` are passed verbatim.
    ``env`` is merged over the ambient environment of the current process.
    """

    command: str
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    cwd: Path | None = None
    silent: bool = True
    timeout_s: float | None = None

    def display(self) -> str:
        """Return a human-readable command line for logs and errors."""
        return " ".join([self.command, *self.args])


class ProcessResult(BaseModel):
    """Outcome of a finished child process."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0
