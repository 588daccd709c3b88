# src/stages/compilation.py - v2
"""Compilation stage: TeX source -> DVI/XDV/PDF via the selected engine.

Each engine maps to one base command plus a fixed set of required flags.
The ``*mk`` engines run through latexmk, which picks the underlying engine
from a flag. Shell escape is always passed explicitly so the engine's own
default (or a texmf.cnf setting) can never widen it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from texsvg.core.errors import CompilationFailedError, TexSvgError, summarize_tex_log
from texsvg.process.models import CliInstruction, ProcessResult

if TYPE_CHECKING:
    from texsvg.core.models import ResolvedConfig
    from texsvg.process.runner import ProcessRunner
    from texsvg.storage.layout import TexPaths

logger = logging.getLogger(__name__)

STAGE = "compiling"

ENGINE_COMMANDS: dict[str, str] = {
    "pdflatex": "pdflatex",
    "lualatex": "lualatex",
    "xelatex": "xelatex",
    "pdflatexmk": "latexmk",
    "lualatexmk": "latexmk",
}

# latexmk engine/output selection, keyed by (engine, intermediate filetype).
LATEXMK_FLAGS: dict[tuple[str, str], str] = {
    ("pdflatexmk", "pdf"): "-pdf",
    ("pdflatexmk", "dvi"): "-dvi",
    ("lualatexmk", "pdf"): "-lualatex",
    ("lualatexmk", "dvi"): "-dvilua",
}

SHELL_ESCAPE_FLAGS: dict[str, str] = {
    "none": "-no-shell-escape",
    "restricted": "-shell-restricted",
    "full": "-shell-escape",
}

REQUIRED_FLAGS: tuple[str, ...] = (
    "-interaction=nonstopmode",
    "-halt-on-error",
    "-file-line-error",
)

# Pins \today and PDF timestamps so rebuilds are byte-identical.
REPRODUCIBLE_ENV: dict[str, str] = {"SOURCE_DATE_EPOCH": "1"}


@dataclass(frozen=True)
class StageRun:
    """File produced by a stage and the process that produced it."""

    path: Path
    process: ProcessResult


def shell_escape_flag(mode: str) -> str:
    try:
        return SHELL_ESCAPE_FLAGS[mode]
    except KeyError:
        raise ValueError(f"Unknown shell-escape mode: {mode!r}") from None


def compile_environment(config: ResolvedConfig) -> dict[str, str]:
    return {**config.environment, **REPRODUCIBLE_ENV}


def build_compile_instruction(paths: TexPaths, config: ResolvedConfig) -> CliInstruction:
    """Construct the default engine command line for ``config``."""
    engine = config.engine
    filetype = config.intermediate_filetype
    command = ENGINE_COMMANDS[engine]
    args: list[str] = []

    if config.uses_latexmk:
        args.append(LATEXMK_FLAGS[(engine, filetype)])
        if engine == "lualatexmk" and config.safer_lua:
            args.append("-latexoption=--safer")
    elif engine == "xelatex":
        if filetype == "dvi":
            args.append("-no-pdf")
    else:
        args.append(f"-output-format={filetype}")
        if engine == "lualatex" and config.safer_lua:
            args.append("--safer")

    args.extend(REQUIRED_FLAGS)
    args.append(shell_escape_flag(config.shell_escape))
    args.append(f"-output-directory={paths.dir}")
    args.append(paths.tex.name)

    return CliInstruction(
        command=command,
        args=args,
        env=compile_environment(config),
        cwd=paths.dir,
        silent=not config.debug.echo_output,
        timeout_s=config.timeout_s,
    )


def compile_instruction(paths: TexPaths, config: ResolvedConfig) -> CliInstruction:
    """Default instruction, or the custom strategy's when one is configured."""
    if config.custom_compile is None:
        return build_compile_instruction(paths, config)

    instr = config.custom_compile.instruction(paths, config.intermediate_filetype)
    return instr.model_copy(
        update={
            "env": {**config.environment, **instr.env, **REPRODUCIBLE_ENV},
            "cwd": instr.cwd or paths.dir,
            "timeout_s": instr.timeout_s if instr.timeout_s is not None else config.timeout_s,
        }
    )


async def compile_tex(
    paths: TexPaths,
    config: ResolvedConfig,
    runner: ProcessRunner,
) -> StageRun:
    """Run the engine and return the intermediate file.

    Raises:
        CompilationFailedError: Non-zero exit, or exit 0 without the expected
            intermediate file. Captured output and the log excerpt are attached.
        MissingExternalToolError, ProcessTimeoutError: From the runner, tagged
            with this stage.
    """
    instr = compile_instruction(paths, config)
    logger.debug("Compiling %s with %s", paths.tex, instr.command)

    try:
        result = await runner(instr)
    except TexSvgError as e:
        e.stage = e.stage or STAGE
        raise

    if result.ok and paths.intermediate.is_file():
        return StageRun(path=paths.intermediate, process=result)

    log_text = _read_log(paths)
    details = summarize_tex_log(
        log_text or result.stdout, ignore=config.debug.ignore_log_messages
    )
    if not result.ok:
        reason = f"{instr.command} exited with status {result.exit_code}"
    else:
        reason = f"{instr.command} did not produce {paths.intermediate.name}"
    message = reason + (":\n  " + "\n  ".join(details) if details else "")

    raise CompilationFailedError(
        message,
        stage=STAGE,
        stdout=result.stdout,
        stderr=result.stderr,
        log=log_text,
    )


def _read_log(paths: TexPaths) -> str:
    try:
        return paths.log.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return ""
