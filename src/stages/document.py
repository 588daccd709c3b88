# src/stages/document.py - v1
"""Assemble the .tex file handed to the engine."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from texsvg.cache.fingerprint import normalize_source

if TYPE_CHECKING:
    from texsvg.core.models import ResolvedConfig

_DOCUMENTCLASS_RE = re.compile(r"^\s*\\documentclass\b", re.MULTILINE)


def is_full_document(source: str) -> bool:
    """True if ``source`` declares its own ``\\documentclass``."""
    return _DOCUMENTCLASS_RE.search(source) is not None


def class_options(config: ResolvedConfig) -> list[str]:
    """Document-class options; ``None`` means choose from the intermediate type.

    The ``dvisvgm`` option makes graphics drivers (xcolor, graphicx, TikZ)
    emit specials dvisvgm understands when going through DVI.
    """
    if config.document_class_options is not None:
        return list(config.document_class_options)
    return ["dvisvgm"] if config.intermediate_filetype == "dvi" else []


def build_tex_document(source: str, config: ResolvedConfig) -> str:
    """Wrap a snippet in a minimal document, or pass a full document through."""
    source = normalize_source(source)
    if is_full_document(source):
        return source if source.endswith("\n") else source + "\n"

    options = class_options(config)
    opt = f"[{','.join(options)}]" if options else ""
    lines = [f"\\documentclass{opt}{{{config.document_class}}}"]
    preamble = normalize_source(config.preamble).strip("\n")
    if preamble:
        lines.append(preamble)
    lines.append("\\begin{document}")
    lines.append(source.strip("\n"))
    lines.append("\\end{document}")
    return "\n".join(lines) + "\n"
