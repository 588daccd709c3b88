# tests/conftest.py - v3
"""Shared test fixtures for all unit and integration tests.

Provides settings rooted in tmp_path, a sample dvisvgm SVG and a fake
process runner standing in for the TeX engine and dvisvgm. No external
tools are spawned.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from texsvg.config.settings import Settings
from texsvg.core.models import ResolvedConfig
from texsvg.pipeline.orchestrator import TexPipeline
from texsvg.process.models import CliInstruction, ProcessResult
from texsvg.storage.layout import TexPaths

SAMPLE_SVG = """<?xml version='1.0' encoding='UTF-8'?>
<!-- This file was generated by dvisvgm 3.2.1 -->
<svg version='1.1' xmlns='http://www.w3.org/2000/svg' xmlns:xlink='http://www.w3.org/1999/xlink' width='11.955pt' height='9.963pt' viewBox='-.500002 -9.462947 11.955 9.963'>
<metadata>generator</metadata>
<defs>
<path id='g0-120' d='M3.328-3.009C3.387-3.268 3.616-4.184 4.314-4.184Z'/>
</defs>
<g id='page1' fill='#000000'>
<use x='0' y='0' xlink:href='#g0-120'/>
</g>
</svg>
"""

# Any source containing this makes the fake engine fail like real TeX would.
FAIL_MARKER = "\\undefinedmacro"

FAILING_LOG = """This is pdfTeX, Version 3.141592653
! Undefined control sequence.
l.3 \\undefinedmacro
Here is how much of TeX's memory you used:
"""


def _flag_value(args: list[str], prefix: str) -> str | None:
    for arg in args:
        if arg.startswith(prefix):
            return arg.split("=", 1)[1]
    return None


class FakeToolchain:
    """Async stand-in for run_command.

    Writes the intermediate file for engine commands and the SVG for dvisvgm,
    recording every instruction it receives.
    """

    def __init__(self, svg: str = SAMPLE_SVG, delay: float = 0.0) -> None:
        self.svg = svg
        self.delay = delay
        self.calls: list[CliInstruction] = []

    @property
    def commands(self) -> list[str]:
        return [c.command for c in self.calls]

    async def __call__(self, instr: CliInstruction) -> ProcessResult:
        self.calls.append(instr)
        if self.delay:
            await asyncio.sleep(self.delay)
        if instr.command == "dvisvgm":
            return self._convert(instr)
        return self._compile(instr)

    def _compile(self, instr: CliInstruction) -> ProcessResult:
        # Relative paths resolve against cwd, as they do for the real tools.
        cwd = Path(instr.cwd or ".")
        outdir = cwd / (_flag_value(instr.args, "-output-directory=") or ".")
        tex = cwd / instr.args[-1]
        if not tex.is_file():
            return ProcessResult(exit_code=1, stdout=f"! I can't find file `{tex.name}'.\n")
        if not outdir.is_dir():
            return ProcessResult(exit_code=1, stdout=f"! I can't write on file `{outdir}'.\n")
        source = tex.read_text(encoding="utf-8")
        if FAIL_MARKER in source:
            (outdir / "root.log").write_text(FAILING_LOG, encoding="utf-8")
            return ProcessResult(exit_code=1, stdout=FAILING_LOG)

        args = set(instr.args)
        if "-no-pdf" in args:
            ext = "xdv"
        elif args & {"-output-format=pdf", "-pdf", "-lualatex"}:
            ext = "pdf"
        else:
            ext = "dvi"
        (outdir / f"root.{ext}").write_bytes(b"fake intermediate")
        return ProcessResult(exit_code=0, stdout="Output written.\n")

    def _convert(self, instr: CliInstruction) -> ProcessResult:
        cwd = Path(instr.cwd or ".")
        output = _flag_value(instr.args, "--output=")
        assert output is not None
        if not (cwd / instr.args[-1]).is_file():
            return ProcessResult(exit_code=1, stderr="ERROR: can't open file\n")
        (cwd / output).write_text(self.svg, encoding="utf-8")
        return ProcessResult(exit_code=0, stderr="processing page 1\n")


# === FIXTURES ===


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        output_directory=tmp_path / "out",
        cache_directory=tmp_path / "cache",
        max_parallel_builds=2,
    )


@pytest.fixture
def toolchain() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture
def pipeline(settings: Settings, toolchain: FakeToolchain):
    p = TexPipeline(settings=settings, runner=toolchain)
    yield p
    p.close()


@pytest.fixture
def resolved_config(tmp_path: Path) -> ResolvedConfig:
    return ResolvedConfig(
        output_directory=tmp_path / "out",
        cache_directory=tmp_path / "cache",
    )


@pytest.fixture
def tex_paths(tmp_path: Path) -> TexPaths:
    work = tmp_path / "work"
    work.mkdir()
    return TexPaths(dir=work, intermediate_ext="dvi")


@pytest.fixture
def sample_svg() -> str:
    return SAMPLE_SVG


@pytest.fixture
def failing_source() -> str:
    return f"$x = {FAIL_MARKER}$"


@pytest.fixture
def make_toolchain():
    """Factory for toolchains with a custom SVG or an artificial delay."""
    return FakeToolchain
