# src/process/dependencies.py - v2
"""External tool availability check.

Returns an explicit DependencyReport; callers aggregate reports themselves.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from texsvg.core.models import ResolvedConfig

logger = logging.getLogger(__name__)

CONVERTER_COMMAND = "dvisvgm"
LATEXMK_COMMAND = "latexmk"


class DependencyReport(BaseModel):
    """Which external commands were found on PATH."""

    found: dict[str, Path] = Field(default_factory=dict)
    missing: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.missing

    def merge(self, other: DependencyReport) -> DependencyReport:
        """Combine two reports (used when checking several configurations)."""
        found = {**self.found, **other.found}
        missing = sorted({*self.missing, *other.missing} - found.keys())
        return DependencyReport(found=found, missing=missing)


def required_commands(config: ResolvedConfig) -> list[str]:
    """Return the external commands a build with ``config`` will spawn."""
    commands: list[str] = []
    if config.custom_compile is None:
        commands.append(LATEXMK_COMMAND if config.uses_latexmk else config.engine)
    if config.custom_convert is None:
        commands.append(CONVERTER_COMMAND)
    return commands


def check_dependencies(
    commands: Iterable[str],
    path: str | None = None,
) -> DependencyReport:
    """Look up each command on PATH (or on ``path`` if given)."""
    report = DependencyReport()
    for command in dict.fromkeys(commands):
        location = shutil.which(command, path=path)
        if location is None:
            report.missing.append(command)
        else:
            report.found[command] = Path(location)

    if report.missing:
        logger.warning("Missing external tools: %s", ", ".join(report.missing))
    return report
