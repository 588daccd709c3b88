# tests/unit/stages/test_unit_conversion.py - v2
"""Tests for stages/conversion.py - dvisvgm option translation."""

from __future__ import annotations

from pathlib import Path

import pytest

from texsvg.core.errors import ConversionFailedError
from texsvg.core.hooks import ConvertStrategy
from texsvg.core.models import (
    BoundingBox,
    ConverterOptions,
    Coordinate,
    PaperSize,
    ResolvedConfig,
)
from texsvg.process.models import CliInstruction, ProcessResult
from texsvg.stages.conversion import (
    bbox_arg,
    build_convert_instruction,
    build_dvisvgm_args,
    convert_instruction,
    convert_to_svg,
    paper_size_arg,
    tex_dim,
)
from texsvg.storage.layout import TexPaths

IN = Path("/w/root.dvi")
OUT = Path("/w/root.svg")


class _Pdf2Svg(ConvertStrategy):
    name = "pdf2svg"

    def instruction(self, paths, intermediate_filetype):
        return CliInstruction(
            command="pdf2svg", args=[paths.intermediate.name, paths.svg.name], env={"A": "custom"}
        )


class TestTexDim:
    def test_bare_number_is_points(self):
        assert tex_dim(12) == "12pt"
        assert tex_dim(2.5) == "2.5pt"

    def test_with_unit(self):
        assert tex_dim((2, "mm")) == "2mm"

    def test_bad_unit(self):
        with pytest.raises(ValueError):
            tex_dim((2, "px"))


class TestBBoxArg:
    def test_keyword(self):
        assert bbox_arg("min") == "min"

    def test_padding(self):
        assert bbox_arg((2.0, "pt")) == "2pt"

    def test_corners(self):
        box = BoundingBox(
            top_left=Coordinate(x=0, y=(1, "cm")),
            bottom_right=Coordinate(x=10, y=20),
        )
        assert bbox_arg(box) == "0pt,1cm,10pt,20pt"

    def test_paper_size(self):
        assert bbox_arg("A4") == "a4"
        assert paper_size_arg(PaperSize(paper_size="letter", orientation="landscape")) == (
            "letter-landscape"
        )
        assert bbox_arg(PaperSize(paper_size="A5")) == "a5"


class TestBuildDvisvgmArgs:
    def test_defaults_for_dvi(self):
        args = build_dvisvgm_args(ConverterOptions(), IN, OUT, "dvi")
        assert args == [
            "--bbox=2pt",
            "--exact-bbox",
            "--bitmap-format=png",
            "--currentcolor=#000",
            "--font-format=woff2",
            "--linkmark=none",
            "--optimize=all",
            "--relative",
            "--verbosity=3",
            f"--output={OUT}",
            str(IN),
        ]

    def test_pdf_input_skips_bbox(self):
        args = build_dvisvgm_args(ConverterOptions(), Path("/w/root.pdf"), OUT, "pdf")
        assert args[0] == "--pdf"
        assert not any(a.startswith("--bbox") for a in args)
        assert "--exact-bbox" not in args

    def test_none_emits_nothing(self):
        opts = ConverterOptions(
            bbox=None, bitmap_format=None, current_color=None, exact_bbox=None,
            font_format=None, linkmark=None, optimize=None, relative=None, verbosity=None,
        )
        assert build_dvisvgm_args(opts, IN, OUT, "dvi") == [f"--output={OUT}", str(IN)]

    def test_geometry_options(self):
        opts = ConverterOptions(zoom=1.5, scale=(2, 3), rotate=90, translate=1.0, precision=4)
        args = build_dvisvgm_args(opts, IN, OUT, "dvi")
        for expected in ("--zoom=1.5", "--scale=2,3", "--rotate=90", "--translate=1", "--precision=4"):
            assert expected in args

    def test_misc_options(self):
        opts = ConverterOptions(
            font_format="none", current_color=True, optimize=["group-attributes", "simplify-text"],
            precision="auto", custom_args=["--no-styles"],
        )
        args = build_dvisvgm_args(opts, IN, OUT, "dvi")
        assert "--no-fonts" in args
        assert "--currentcolor" in args
        assert "--optimize=group-attributes,simplify-text" in args
        assert "--precision=0" in args
        assert args[-3:] == ["--no-styles", f"--output={OUT}", str(IN)]

    def test_instruction(self, tmp_path):
        config = ResolvedConfig(environment={"X": "1"})
        paths = TexPaths(dir=tmp_path, intermediate_ext="dvi")
        instr = build_convert_instruction(paths, config)
        assert instr.command == "dvisvgm"
        assert instr.cwd == tmp_path
        assert instr.env == {"X": "1"}
        assert instr.args[-1] == str(paths.intermediate)


class TestConvertToSvg:
    @pytest.mark.asyncio
    async def test_returns_svg(self, tex_paths, resolved_config, sample_svg):
        async def runner(instr):
            tex_paths.svg.write_text(sample_svg, encoding="utf-8")
            return ProcessResult(exit_code=0)

        run = await convert_to_svg(tex_paths, resolved_config, runner)
        assert run.svg == sample_svg

    @pytest.mark.asyncio
    async def test_nonzero_exit(self, tex_paths, resolved_config):
        async def runner(instr):
            return ProcessResult(exit_code=1, stderr="ERROR: invalid DVI")

        with pytest.raises(ConversionFailedError) as exc_info:
            await convert_to_svg(tex_paths, resolved_config, runner)
        assert exc_info.value.stderr == "ERROR: invalid DVI"
        assert exc_info.value.stage == "converting"

    @pytest.mark.asyncio
    async def test_empty_svg(self, tex_paths, resolved_config):
        async def runner(instr):
            tex_paths.svg.write_text("  \n", encoding="utf-8")
            return ProcessResult(exit_code=0)

        with pytest.raises(ConversionFailedError, match="non-empty"):
            await convert_to_svg(tex_paths, resolved_config, runner)

    @pytest.mark.asyncio
    async def test_missing_svg(self, tex_paths, resolved_config):
        async def runner(instr):
            return ProcessResult(exit_code=0)

        with pytest.raises(ConversionFailedError):
            await convert_to_svg(tex_paths, resolved_config, runner)


class TestCustomConvertStrategy:
    def test_replaces_command(self, tmp_path):
        config = ResolvedConfig(
            custom_convert=_Pdf2Svg(), intermediate_filetype="pdf", environment={"A": "a", "B": "b"}
        )
        paths = TexPaths(dir=tmp_path, intermediate_ext="pdf")
        instr = convert_instruction(paths, config)

        assert instr.command == "pdf2svg"
        assert instr.args == ["root.pdf", "root.svg"]
        assert instr.cwd == tmp_path
        assert instr.timeout_s == config.timeout_s
        assert instr.env["A"] == "custom"
        assert instr.env["B"] == "b"
        assert instr.env["TEXSVG_INPUT"] == str(paths.intermediate)
        assert instr.env["TEXSVG_INPUT_FILETYPE"] == "pdf"
        assert instr.env["TEXSVG_OUTPUT"] == str(paths.svg)

    def test_default_without_strategy(self, tmp_path):
        paths = TexPaths(dir=tmp_path, intermediate_ext="dvi")
        assert convert_instruction(paths, ResolvedConfig()).command == "dvisvgm"

    @pytest.mark.asyncio
    async def test_convert_runs_custom_command(self, tex_paths, sample_svg):
        config = ResolvedConfig(custom_convert=_Pdf2Svg())
        seen = []

        async def runner(instr):
            seen.append(instr.command)
            Path(instr.env["TEXSVG_OUTPUT"]).write_text(sample_svg, encoding="utf-8")
            return ProcessResult(exit_code=0)

        run = await convert_to_svg(tex_paths, config, runner)
        assert seen == ["pdf2svg"]
        assert run.svg == sample_svg

    @pytest.mark.asyncio
    async def test_custom_command_failure_names_command(self, tex_paths):
        async def runner(instr):
            return ProcessResult(exit_code=2)

        config = ResolvedConfig(custom_convert=_Pdf2Svg())
        with pytest.raises(ConversionFailedError, match="pdf2svg exited with status 2"):
            await convert_to_svg(tex_paths, config, runner)
