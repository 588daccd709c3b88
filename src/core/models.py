# src/core/models.py - v2
"""Shared Pydantic domain models used across modules.

TexRequest is the immutable pipeline input, ResolvedConfig the fully merged
configuration, RenderResult the outcome handed back to content handlers.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from texsvg.core.hooks import CompileStrategy, ConvertStrategy, PostprocessStrategy

# === ENUMERATIONS ===

TexEngine = Literal["pdflatex", "lualatex", "xelatex", "pdflatexmk", "lualatexmk"]
IntermediateFiletype = Literal["pdf", "dvi"]
ShellEscapeMode = Literal["none", "restricted", "full"]

SUPPORTED_ENGINES: tuple[str, ...] = (
    "pdflatex", "lualatex", "xelatex", "pdflatexmk", "lualatexmk",
)


# === GEOMETRY ===

TexDimUnit = Literal["pt", "mm", "cm", "in", "bp", "pc", "dd", "cc", "sp"]

# A bare number is in TeX points.
TexDim = Union[float, tuple[float, TexDimUnit]]

PaperSizeName = Annotated[
    str,
    StringConstraints(
        pattern=r"^(?:[ABCDabcd](?:10|[0-9])|letter|legal|executive|invoice|ledger)$"
    ),
]

BBoxKeyword = Literal["min", "dvi", "none", "papersize", "preview"]


class Coordinate(BaseModel):
    """A point; positive x moves right, positive y moves down."""

    model_config = ConfigDict(frozen=True)

    x: TexDim
    y: TexDim


class BoundingBox(BaseModel):
    """Explicit bounding box given by two corners."""

    model_config = ConfigDict(frozen=True)

    top_left: Coordinate
    bottom_right: Coordinate


class PaperSize(BaseModel):
    """Paper-size bounding box with an optional orientation."""

    model_config = ConfigDict(frozen=True)

    paper_size: PaperSizeName
    orientation: Literal["portrait", "landscape"] | None = None


BBox = Union[BBoxKeyword, PaperSizeName, TexDim, BoundingBox, PaperSize]


# === STAGE OPTIONS ===


class ConverterOptions(BaseModel):
    """dvisvgm options. ``None`` means the flag is never passed."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    bbox: BBox | None = (2.0, "pt")
    bitmap_format: str | None = "png"
    current_color: bool | str | None = "#000"
    exact_bbox: bool | None = True
    font_format: Literal["svg", "ttf", "woff", "woff2", "none"] | None = "woff2"
    linkmark: Literal["none", "line", "box", "color"] | None = "none"
    optimize: str | list[str] | None = "all"
    precision: int | Literal["auto"] | None = None
    relative: bool | None = True
    zoom: float | None = None
    scale: float | tuple[float, float] | None = None
    rotate: float | None = None
    translate: float | tuple[float, float] | None = None
    custom_args: list[str] = Field(default_factory=list)
    verbosity: int | None = 0b0011

    @field_validator("custom_args")
    @classmethod
    def validate_custom_args(cls, v: list[str]) -> list[str]:
        for arg in v:
            if not arg.startswith("-"):
                raise ValueError(f"custom converter argument must be a flag: {arg!r}")
        return v

    @field_validator("precision")
    @classmethod
    def validate_precision(cls, v: int | str | None) -> int | str | None:
        if isinstance(v, int) and not 0 <= v <= 6:
            raise ValueError("precision must be between 0 and 6, or 'auto'")
        return v


class OptimizerPlugin(BaseModel):
    """A named optimizer plugin with parameters."""

    model_config = ConfigDict(frozen=True)

    name: str
    params: dict[str, Any] = Field(default_factory=dict)


DEFAULT_OPTIMIZER_PLUGINS: list[str | OptimizerPlugin] = [
    "removeDoctype",
    "removeXMLProcInst",
    "removeComments",
    "removeMetadata",
    OptimizerPlugin(name="convertColors", params={"shorthex": True}),
    OptimizerPlugin(name="cleanupAttrs", params={"newlines": True, "spaces": True}),
    OptimizerPlugin(name="cleanupNumericValues", params={"leading_zero": False}),
    "removeUselessDefs",
]


class OptimizerOptions(BaseModel):
    """Structural SVG optimizer options."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = True
    multipass: bool = True
    plugins: list[str | OptimizerPlugin] = Field(
        default_factory=lambda: list(DEFAULT_OPTIMIZER_PLUGINS)
    )
    current_color: str | None = None
    float_precision: int | None = None


DEFAULT_IGNORED_LOG_MESSAGES: list[str] = [
    "Package shellesc Warning: Shell escape disabled",
    'LaTeX Warning: Package "xcolor" has already been loaded',
    "Package epstopdf Warning: Shell escape feature is not enabled.",
]


class DebugOptions(BaseModel):
    """Diagnostics switches. None of these affect the produced SVG."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    verbosity: Literal["quiet", "normal", "verbose"] = "normal"
    silent: bool = True
    keep_intermediate: bool = False
    ignore_log_messages: list[str] = Field(
        default_factory=lambda: list(DEFAULT_IGNORED_LOG_MESSAGES)
    )

    @property
    def echo_output(self) -> bool:
        """Whether external tool output is echoed to the console."""
        if self.verbosity == "quiet":
            return False
        return self.verbosity == "verbose" or not self.silent

    @property
    def summary_level(self) -> int:
        """Log level for per-build summaries."""
        return logging.DEBUG if self.verbosity == "quiet" else logging.INFO


Transformation = Union[tuple[str, str], PostprocessStrategy]


# === REQUEST / CONFIG ===


class TexRequest(BaseModel):
    """One embedded TeX snippet discovered by a content handler."""

    model_config = ConfigDict(frozen=True)

    source_text: str
    component_kind: str = "tex"
    instance_overrides: dict[str, Any] = Field(default_factory=dict)
    identifier: str | None = Field(default=None, pattern=r"^[A-Za-z0-9_.-]+$")


class ResolvedConfig(BaseModel):
    """Fully merged configuration for one build. No field is left unset."""

    model_config = ConfigDict(
        frozen=True, extra="forbid", arbitrary_types_allowed=True
    )

    # --- Compilation ---
    engine: TexEngine = "pdflatex"
    intermediate_filetype: IntermediateFiletype = "dvi"
    shell_escape: ShellEscapeMode = "none"
    safer_lua: bool = False
    custom_compile: CompileStrategy | None = None
    environment: dict[str, str] = Field(default_factory=dict)

    # --- Document ---
    document_class: str = "standalone"
    document_class_options: list[str] | None = None
    preamble: str = ""

    # --- Locations & caching ---
    output_directory: Path = Path("texsvg-output")
    cache_directory: Path = Path(".texsvg-cache")
    caching_enabled: bool = True

    # --- Conversion / optimization ---
    converter: ConverterOptions = Field(default_factory=ConverterOptions)
    custom_convert: ConvertStrategy | None = None
    optimizer: OptimizerOptions = Field(default_factory=OptimizerOptions)
    transformations: list[Transformation] = Field(default_factory=list)
    custom_postprocess: PostprocessStrategy | None = None

    # --- Runtime ---
    timeout_s: float | None = 60.0
    debug: DebugOptions = Field(default_factory=DebugOptions)

    @property
    def uses_latexmk(self) -> bool:
        return self.engine.endswith("mk")

    @property
    def intermediate_extension(self) -> str:
        """Extension of the file the engine writes (xelatex DVI output is XDV)."""
        if self.intermediate_filetype == "pdf":
            return "pdf"
        return "xdv" if self.engine == "xelatex" else "dvi"


# === RESULT ===


class RenderResult(BaseModel):
    """Outcome of rendering one TexRequest."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    fingerprint: str | None = None
    status: Literal["done", "failed"]
    svg: str = ""
    artifact_path: Path | None = None
    cached: bool = False
    joined: bool = False
    optimized: bool = False
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.status == "done"
