# src/process/runner.py - v1
"""Asynchronous child-process runner.

Spawns a command, captures stdout/stderr, optionally echoes them, and
enforces a timeout. Knows nothing about TeX.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
import time
from typing import Awaitable, Callable

from texsvg.core.errors import MissingExternalToolError, ProcessTimeoutError
from texsvg.process.models import CliInstruction, ProcessResult

logger = logging.getLogger(__name__)

ProcessRunner = Callable[[CliInstruction], Awaitable[ProcessResult]]


async def run_command(instr: CliInstruction) -> ProcessResult:
    """Run ``instr`` to completion.

    Raises:
        MissingExternalToolError: If the command cannot be found.
        ProcessTimeoutError: If ``instr.timeout_s`` elapses; the process is
            killed and whatever output it produced is attached.
    """
    env = {**os.environ, **instr.env}
    start_ns = time.monotonic_ns()
    logger.debug("Spawning: %s (cwd=%s)", instr.display(), instr.cwd)

    try:
        proc = await asyncio.create_subprocess_exec(
            instr.command,
            *instr.args,
            cwd=str(instr.cwd) if instr.cwd is not None else None,
            env=env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise MissingExternalToolError(instr.command) from e

    stdout_chunks: list[str] = []
    stderr_chunks: list[str] = []

    async def _pump(stream: asyncio.StreamReader | None, sink: list[str], echo) -> None:
        if stream is None:
            return
        while True:
            chunk = await stream.read(4096)
            if not chunk:
                break
            text = chunk.decode("utf-8", errors="replace")
            sink.append(text)
            if not instr.silent:
                echo.write(text)
                echo.flush()

    pumps = asyncio.gather(
        _pump(proc.stdout, stdout_chunks, sys.stdout),
        _pump(proc.stderr, stderr_chunks, sys.stderr),
        proc.wait(),
    )
    try:
        if instr.timeout_s is None:
            await pumps
        else:
            await asyncio.wait_for(pumps, timeout=instr.timeout_s)
    except asyncio.TimeoutError:
        _kill(proc)
        await proc.wait()
        logger.warning("Timed out after %.1fs: %s", instr.timeout_s, instr.display())
        raise ProcessTimeoutError(
            instr.command,
            instr.timeout_s or 0.0,
            stdout="".join(stdout_chunks),
            stderr="".join(stderr_chunks),
        ) from None

    duration_ms = (time.monotonic_ns() - start_ns) // 1_000_000
    exit_code = proc.returncode if proc.returncode is not None else -1
    logger.debug("Exited %d after %dms: %s", exit_code, duration_ms, instr.command)
    return ProcessResult(
        exit_code=exit_code,
        stdout="".join(stdout_chunks),
        stderr="".join(stderr_chunks),
        duration_ms=duration_ms,
    )


def _kill(proc: asyncio.subprocess.Process) -> None:
    try:
        proc.kill()
    except ProcessLookupError:
        pass
