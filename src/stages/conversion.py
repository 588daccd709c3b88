# src/stages/conversion.py - v2
"""Conversion stage: DVI/XDV/PDF -> SVG via dvisvgm.

Geometry and output options from ConverterOptions are translated into
dvisvgm's own option syntax. An option set to ``None`` is never passed, so
dvisvgm's default applies. A ConvertStrategy replaces the command entirely.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from texsvg.core.errors import ConversionFailedError, TexSvgError
from texsvg.core.models import BoundingBox, PaperSize
from texsvg.process.dependencies import CONVERTER_COMMAND
from texsvg.process.models import CliInstruction, ProcessResult

if TYPE_CHECKING:
    from texsvg.core.models import ConverterOptions, ResolvedConfig
    from texsvg.process.runner import ProcessRunner
    from texsvg.storage.layout import TexPaths

logger = logging.getLogger(__name__)

STAGE = "converting"

TEX_DIM_UNITS: frozenset[str] = frozenset(
    {"pt", "mm", "cm", "in", "bp", "pc", "dd", "cc", "sp"}
)
BBOX_KEYWORDS: frozenset[str] = frozenset({"min", "dvi", "none", "papersize", "preview"})


@dataclass(frozen=True)
class ConversionRun:
    svg: str
    process: ProcessResult


def _num(value: float) -> str:
    return f"{value:g}"


def tex_dim(value: Any) -> str:
    """Format a TeX dimension: ``12`` -> ``12pt``, ``(2, 'mm')`` -> ``2mm``."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return f"{_num(value)}pt"
    if isinstance(value, (tuple, list)) and len(value) == 2:
        number, unit = value
        if unit not in TEX_DIM_UNITS:
            raise ValueError(f"Unsupported TeX unit: {unit!r}")
        return f"{_num(float(number))}{unit}"
    raise ValueError(f"Not a TeX dimension: {value!r}")


def paper_size_arg(paper: str | PaperSize) -> str:
    """``'A4'`` -> ``a4``; landscape orientation appends ``-landscape``."""
    if isinstance(paper, PaperSize):
        name = paper.paper_size.lower()
        return f"{name}-landscape" if paper.orientation == "landscape" else name
    return paper.lower()


def bbox_arg(bbox: Any) -> str:
    """Translate a bounding-box setting into the value of ``--bbox``."""
    if isinstance(bbox, BoundingBox):
        corners = (
            bbox.top_left.x, bbox.top_left.y,
            bbox.bottom_right.x, bbox.bottom_right.y,
        )
        return ",".join(tex_dim(c) for c in corners)
    if isinstance(bbox, PaperSize):
        return paper_size_arg(bbox)
    if isinstance(bbox, str):
        return bbox if bbox in BBOX_KEYWORDS else paper_size_arg(bbox)
    return tex_dim(bbox)


def _pair(value: float | tuple[float, float]) -> str:
    if isinstance(value, (tuple, list)):
        return ",".join(_num(v) for v in value)
    return _num(value)


def build_dvisvgm_args(
    options: ConverterOptions,
    input_path: Path,
    output_path: Path,
    input_filetype: str,
) -> list[str]:
    """Build the dvisvgm argument list (input file last)."""
    is_dvi = input_filetype != "pdf"
    args: list[str] = []

    if not is_dvi:
        args.append("--pdf")

    # Bounding box and exact glyph boxes only apply to DVI input.
    if is_dvi and options.bbox is not None:
        args.append(f"--bbox={bbox_arg(options.bbox)}")
    if is_dvi and options.exact_bbox:
        args.append("--exact-bbox")

    if options.bitmap_format is not None:
        args.append(f"--bitmap-format={options.bitmap_format}")
    if options.current_color is True:
        args.append("--currentcolor")
    elif isinstance(options.current_color, str):
        args.append(f"--currentcolor={options.current_color}")
    if options.font_format == "none":
        args.append("--no-fonts")
    elif options.font_format is not None:
        args.append(f"--font-format={options.font_format}")
    if options.linkmark is not None:
        args.append(f"--linkmark={options.linkmark}")
    if options.optimize is not None:
        modules = options.optimize if isinstance(options.optimize, list) else [options.optimize]
        args.append(f"--optimize={','.join(modules)}")
    if options.precision is not None:
        precision = 0 if options.precision == "auto" else options.precision
        args.append(f"--precision={precision}")
    if options.relative:
        args.append("--relative")
    if options.zoom is not None:
        args.append(f"--zoom={_num(options.zoom)}")
    if options.scale is not None:
        args.append(f"--scale={_pair(options.scale)}")
    if options.rotate is not None:
        args.append(f"--rotate={_num(options.rotate)}")
    if options.translate is not None:
        args.append(f"--translate={_pair(options.translate)}")
    if options.verbosity is not None:
        args.append(f"--verbosity={options.verbosity}")

    args.extend(options.custom_args)
    args.append(f"--output={output_path}")
    args.append(str(input_path))
    return args


def build_convert_instruction(paths: TexPaths, config: ResolvedConfig) -> CliInstruction:
    return CliInstruction(
        command=CONVERTER_COMMAND,
        args=build_dvisvgm_args(
            config.converter, paths.intermediate, paths.svg, config.intermediate_filetype
        ),
        env=dict(config.environment),
        cwd=paths.dir,
        silent=not config.debug.echo_output,
        timeout_s=config.timeout_s,
    )


def convert_instruction(paths: TexPaths, config: ResolvedConfig) -> CliInstruction:
    """Default dvisvgm instruction, or the custom strategy's when one is configured.

    A custom command learns its file locations from the environment.
    """
    if config.custom_convert is None:
        return build_convert_instruction(paths, config)

    instr = config.custom_convert.instruction(paths, config.intermediate_filetype)
    locations = {
        "TEXSVG_INPUT": str(paths.intermediate),
        "TEXSVG_INPUT_FILETYPE": config.intermediate_filetype,
        "TEXSVG_OUTPUT": str(paths.svg),
    }
    return instr.model_copy(
        update={
            "env": {**config.environment, **instr.env, **locations},
            "cwd": instr.cwd or paths.dir,
            "timeout_s": instr.timeout_s if instr.timeout_s is not None else config.timeout_s,
        }
    )


async def convert_to_svg(
    paths: TexPaths,
    config: ResolvedConfig,
    runner: ProcessRunner,
) -> ConversionRun:
    """Run dvisvgm, or the custom converter, and return the raw SVG.

    Raises:
        ConversionFailedError: Non-zero exit, or no/empty SVG written.
        MissingExternalToolError, ProcessTimeoutError: From the runner.
    """
    instr = convert_instruction(paths, config)
    logger.debug(
        "Converting %s -> %s with %s", paths.intermediate.name, paths.svg.name, instr.command
    )

    try:
        result = await runner(instr)
    except TexSvgError as e:
        e.stage = e.stage or STAGE
        raise

    if not result.ok:
        raise ConversionFailedError(
            f"{instr.command} exited with status {result.exit_code}",
            stage=STAGE,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    try:
        svg = paths.svg.read_text(encoding="utf-8")
    except OSError:
        svg = ""
    if not svg.strip():
        raise ConversionFailedError(
            f"{instr.command} did not produce a non-empty {paths.svg.name}",
            stage=STAGE,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    return ConversionRun(svg=svg, process=result)
