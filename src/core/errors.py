# src/core/errors.py - v2
"""Error taxonomy for the TeX-to-SVG build pipeline.

Every error carries the stage that failed and whatever process output was
captured before the failure, so that callers can show diagnostics without
re-running anything.

Fatal (surfaced to every waiter, never cached):
    MissingExternalToolError, CompilationFailedError, ConversionFailedError,
    ProcessTimeoutError, InvalidConfigurationError.

Recoverable (logged, raw SVG substituted):
    OptimizationFailedError.
"""

from __future__ import annotations

import re


class TexSvgError(Exception):
    """Base class for all pipeline errors."""

    def __init__(
        self,
        message: str,
        *,
        stage: str | None = None,
        stdout: str = "",
        stderr: str = "",
        log: str = "",
    ) -> None:
        self.stage = stage
        self.stdout = stdout
        self.stderr = stderr
        self.log = log
        super().__init__(message)

    def diagnostics(self) -> str:
        """Return captured output joined for display."""
        parts = [str(self)]
        if self.stderr.strip():
            parts.append(f"stderr:\n{self.stderr.rstrip()}")
        if self.stdout.strip():
            parts.append(f"stdout:\n{self.stdout.rstrip()}")
        return "\n\n".join(parts)


class MissingExternalToolError(TexSvgError):
    """An external command (TeX engine, latexmk, dvisvgm) is not installed."""

    def __init__(self, command: str, *, stage: str | None = None) -> None:
        self.command = command
        super().__init__(
            f"External tool not found: {command!r}. Is it installed and on PATH?",
            stage=stage,
        )


class CompilationFailedError(TexSvgError):
    """The TeX engine failed or did not produce the intermediate file."""


class ConversionFailedError(TexSvgError):
    """The DVI/PDF-to-SVG converter failed or produced no SVG."""


class OptimizationFailedError(TexSvgError):
    """SVG optimization or a post-processing transformation raised.

    Never fails a build: the raw SVG is kept instead.
    """


class ProcessTimeoutError(TexSvgError):
    """An external process exceeded its time budget and was terminated."""

    def __init__(
        self,
        command: str,
        timeout_s: float,
        *,
        stage: str | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        self.command = command
        self.timeout_s = timeout_s
        super().__init__(
            f"{command!r} timed out after {timeout_s:g}s",
            stage=stage,
            stdout=stdout,
            stderr=stderr,
        )


class InvalidConfigurationError(TexSvgError):
    """The resolved configuration is structurally unusable."""


_ERROR_LINE_RE = re.compile(r"^!\s*(.*)$")
_LINE_NUMBER_RE = re.compile(r"^l\.(\d+)\s?(.*)$")
_FILE_LINE_RE = re.compile(r"^(?:\./)?[^:\s]+\.tex:(\d+):\s*(.*)$")


def summarize_tex_log(
    log: str,
    ignore: list[str] | None = None,
    max_lines: int = 5,
) -> list[str]:
    """Extract the first TeX error messages from a log or console transcript.

    Recognizes ``! message`` lines, ``l.<n>`` context lines and
    ``file.tex:<n>: message`` lines (``-file-line-error`` style). Lines
    containing any of the ``ignore`` substrings are dropped.
    """
    ignore = ignore or []
    found: list[str] = []
    for raw in log.splitlines():
        line = raw.strip()
        if not line or any(pattern in line for pattern in ignore):
            continue
        if m := _FILE_LINE_RE.match(line):
            found.append(f"line {m.group(1)}: {m.group(2)}")
        elif m := _ERROR_LINE_RE.match(line):
            found.append(m.group(1))
        elif m := _LINE_NUMBER_RE.match(line):
            found.append(f"line {m.group(1)}: {m.group(2)}".rstrip(": "))
        if len(found) >= max_lines:
            break
    return found
