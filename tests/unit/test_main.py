# tests/unit/test_main.py - v2
"""Tests for main.py - CLI entry point."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from texsvg.core.errors import CompilationFailedError
from texsvg.core.models import RenderResult
from texsvg.main import _build_parser, _identifier, main


# ---------------------------------------------------------------------------
# Parser tests
# ---------------------------------------------------------------------------

class TestBuildParser:
    def test_version_flag(self):
        parser = _build_parser()
        with pytest.raises(SystemExit) as exc_info:
            parser.parse_args(["--version"])
        assert exc_info.value.code == 0

    def test_render_subcommand(self):
        args = _build_parser().parse_args(
            ["render", "eq.tex", "-o", "/tmp/out", "--engine", "lualatex", "--no-cache"]
        )
        assert args.command == "render"
        assert args.files == [Path("eq.tex")]
        assert args.output == Path("/tmp/out")
        assert args.engine == "lualatex"
        assert args.no_cache is True

    def test_render_defaults(self):
        args = _build_parser().parse_args(["render", "a.tex", "b.tex"])
        assert args.files == [Path("a.tex"), Path("b.tex")]
        assert args.output is None
        assert args.engine is None
        assert args.component == "tex"

    def test_engine_choices(self):
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["render", "a.tex", "--engine", "context"])

    def test_check_deps_subcommand(self):
        args = _build_parser().parse_args(["check-deps", "--engine", "xelatex"])
        assert args.command == "check-deps"
        assert args.engine == "xelatex"


class TestIdentifier:
    def test_plain(self):
        assert _identifier(Path("figures/eq-1.tex")) == "eq-1"

    def test_sanitized(self):
        assert _identifier(Path("my figure (v2).tex")) == "my-figure-v2"


# ---------------------------------------------------------------------------
# Command tests
# ---------------------------------------------------------------------------

@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TEXSVG_CACHE_DIRECTORY", str(tmp_path / "cache"))
    monkeypatch.setenv("TEXSVG_OUTPUT_DIRECTORY", str(tmp_path / "out"))
    return tmp_path


class _FakePipeline:
    results: list[RenderResult] = []
    requests: list = []

    def __init__(self, *args, **kwargs):
        pass

    async def render_many(self, requests):
        _FakePipeline.requests = list(requests)
        return list(_FakePipeline.results)

    def close(self):
        pass


class TestMain:
    def test_no_command(self):
        assert main([]) == 1

    def test_render_missing_file(self, isolated_env):
        assert main(["render", str(isolated_env / "nope.tex")]) == 1

    def test_render_prints_artifact(self, isolated_env, monkeypatch, capsys):
        source = isolated_env / "eq.tex"
        source.write_text("$x^2$", encoding="utf-8")
        artifact = isolated_env / "out" / "eq.svg"
        _FakePipeline.results = [
            RenderResult(fingerprint="f" * 64, status="done", artifact_path=artifact)
        ]
        monkeypatch.setattr("texsvg.pipeline.orchestrator.TexPipeline", _FakePipeline)

        assert main(["render", str(source), "--engine", "xelatex", "--no-cache"]) == 0
        assert str(artifact) in capsys.readouterr().out
        request = _FakePipeline.requests[0]
        assert request.source_text == "$x^2$"
        assert request.identifier == "eq"
        assert request.instance_overrides == {"engine": "xelatex", "caching_enabled": False}

    def test_render_failure_exit_code(self, isolated_env, monkeypatch, capsys):
        source = isolated_env / "bad.tex"
        source.write_text("\\bad", encoding="utf-8")
        _FakePipeline.results = [
            RenderResult(status="failed", error=CompilationFailedError("boom"))
        ]
        monkeypatch.setattr("texsvg.pipeline.orchestrator.TexPipeline", _FakePipeline)

        assert main(["render", str(source)]) == 1
        assert "boom" in capsys.readouterr().err

    def test_check_deps_reports_missing(self, isolated_env, monkeypatch, capsys):
        monkeypatch.setenv("PATH", str(isolated_env))
        tool = isolated_env / "dvisvgm"
        tool.write_text("#!/bin/sh\n")
        os.chmod(tool, 0o755)

        assert main(["check-deps", "--engine", "pdflatex"]) == 1
        out = capsys.readouterr().out
        assert "found    dvisvgm" in out
        assert "missing  pdflatex" in out

    def test_verbose_echoes_tool_output(self, isolated_env, monkeypatch):
        source = isolated_env / "eq.tex"
        source.write_text("$x$", encoding="utf-8")
        _FakePipeline.results = [
            RenderResult(fingerprint="f" * 64, status="done", artifact_path=isolated_env / "eq.svg")
        ]
        monkeypatch.setattr("texsvg.pipeline.orchestrator.TexPipeline", _FakePipeline)

        assert main(["-v", "render", str(source)]) == 0
        request = _FakePipeline.requests[0]
        assert request.instance_overrides == {"debug": {"verbosity": "verbose"}}
