# src/stages/svg_optimizer.py - v1
"""Structural SVG optimizer built on lxml.

Plugins are named after their svgo counterparts so option sets carry over.
Each plugin mutates the parsed tree in place; prolog handling
(``removeXMLProcInst``, ``removeDoctype``, top-level comments) happens at
serialization time.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable

from lxml import etree

from texsvg.core.models import OptimizerOptions, OptimizerPlugin

logger = logging.getLogger(__name__)

SVG_NS = "http://www.w3.org/2000/svg"
MAX_PASSES = 10

PluginFn = Callable[[etree._Element, dict[str, Any], OptimizerOptions], None]

COLOR_ATTRIBUTES = ("fill", "stroke", "stop-color", "flood-color", "lighting-color", "color")
NUMERIC_RE = re.compile(r"^(-?)(\d*\.?\d+(?:[eE][-+]?\d+)?)(px)?$")
LONG_HEX_RE = re.compile(r"^#([0-9a-fA-F])\1([0-9a-fA-F])\2([0-9a-fA-F])\3$")
RGB_RE = re.compile(r"^rgb\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*\)$")


def _local(tag: Any) -> str:
    if not isinstance(tag, str):
        return ""
    return etree.QName(tag).localname


def _drop(node: etree._Element) -> None:
    """Remove ``node`` but keep its tail text in the document."""
    parent = node.getparent()
    if parent is None:
        return
    tail = node.tail
    if tail:
        prev = node.getprevious()
        if prev is not None:
            prev.tail = (prev.tail or "") + tail
        else:
            parent.text = (parent.text or "") + tail
    parent.remove(node)


# === PLUGINS ===


def remove_comments(root: etree._Element, params: dict[str, Any], options: OptimizerOptions) -> None:
    for comment in list(root.iter(etree.Comment)):
        _drop(comment)


def remove_metadata(root: etree._Element, params: dict[str, Any], options: OptimizerOptions) -> None:
    for el in list(root.iter(f"{{{SVG_NS}}}metadata")):
        _drop(el)


def remove_title(root: etree._Element, params: dict[str, Any], options: OptimizerOptions) -> None:
    for el in list(root.iter(f"{{{SVG_NS}}}title")):
        _drop(el)


def remove_useless_defs(root: etree._Element, params: dict[str, Any], options: OptimizerOptions) -> None:
    """Drop unreferenceable children of <defs>, then empty <defs>."""
    for defs in list(root.iter(f"{{{SVG_NS}}}defs")):
        for child in list(defs):
            if not isinstance(child.tag, str):
                continue
            if child.get("id") is None and _local(child.tag) != "style":
                _drop(child)
        if len(defs) == 0 and not (defs.text or "").strip():
            _drop(defs)


def cleanup_attrs(root: etree._Element, params: dict[str, Any], options: OptimizerOptions) -> None:
    newlines = params.get("newlines", True)
    spaces = params.get("spaces", True)
    trim = params.get("trim", True)
    for el in root.iter():
        if not isinstance(el.tag, str):
            continue
        for name, value in el.attrib.items():
            cleaned = value
            if newlines:
                cleaned = re.sub(r"\s*[\r\n]+\s*", " ", cleaned)
            if spaces:
                cleaned = re.sub(r"\s{2,}", " ", cleaned)
            if trim:
                cleaned = cleaned.strip()
            if cleaned != value:
                el.set(name, cleaned)


def _short_hex(value: str) -> str:
    m = LONG_HEX_RE.match(value)
    if m:
        return "#" + "".join(m.groups()).lower()
    return value.lower() if value.startswith("#") else value


def convert_colors(root: etree._Element, params: dict[str, Any], options: OptimizerOptions) -> None:
    shorthex = params.get("shorthex", True)
    rgb2hex = params.get("rgb2hex", True)
    for el in root.iter():
        if not isinstance(el.tag, str):
            continue
        for attr in COLOR_ATTRIBUTES:
            value = el.get(attr)
            if value is None:
                continue
            converted = value.strip()
            m = RGB_RE.match(converted)
            if rgb2hex and m:
                converted = "#" + "".join(f"{min(int(c), 255):02x}" for c in m.groups())
            if shorthex:
                converted = _short_hex(converted)
            if converted != value:
                el.set(attr, converted)


def _format_number(text: str, precision: int, leading_zero: bool, keep_px: bool) -> str:
    m = NUMERIC_RE.match(text)
    if m is None:
        return text
    sign, digits, px = m.groups()
    value = round(float(digits), precision)
    out = f"{value:.{precision}f}".rstrip("0").rstrip(".") if precision > 0 else str(int(value))
    if out in ("", "0"):
        return "0" + (px if keep_px and px else "")
    if not leading_zero and out.startswith("0."):
        out = out[1:]
    return f"{sign}{out}" + (px if keep_px and px else "")


def cleanup_numeric_values(root: etree._Element, params: dict[str, Any], options: OptimizerOptions) -> None:
    precision = options.float_precision if options.float_precision is not None else params.get("float_precision", 3)
    leading_zero = params.get("leading_zero", True)
    keep_px = not params.get("default_px", True)
    for el in root.iter():
        if not isinstance(el.tag, str):
            continue
        for name, value in el.attrib.items():
            if name == "viewBox":
                parts = value.replace(",", " ").split()
                new = " ".join(_format_number(p, precision, leading_zero, keep_px) for p in parts)
            else:
                new = _format_number(value.strip(), precision, leading_zero, keep_px)
            if new != value:
                el.set(name, new)


def current_color(root: etree._Element, params: dict[str, Any], options: OptimizerOptions) -> None:
    """Replace one color with ``currentColor`` so the SVG inherits text color."""
    color = params.get("color", options.current_color)
    if not color:
        return
    target = _short_hex(color.strip().lower())
    for el in root.iter():
        if not isinstance(el.tag, str):
            continue
        for attr in ("fill", "stroke"):
            value = el.get(attr)
            if value is not None and _short_hex(value.strip().lower()) == target:
                el.set(attr, "currentColor")


# Prolog plugins act at serialization; registered so option sets validate.
def _serialization_only(root: etree._Element, params: dict[str, Any], options: OptimizerOptions) -> None:
    return None


PLUGINS: dict[str, PluginFn] = {
    "removeXMLProcInst": _serialization_only,
    "removeDoctype": _serialization_only,
    "removeComments": remove_comments,
    "removeMetadata": remove_metadata,
    "removeTitle": remove_title,
    "removeUselessDefs": remove_useless_defs,
    "cleanupAttrs": cleanup_attrs,
    "convertColors": convert_colors,
    "cleanupNumericValues": cleanup_numeric_values,
    "currentColor": current_color,
}


class SvgOptimizer:
    """Apply a configured plugin sequence to SVG markup.

    Raises:
        ValueError: On construction, for an unknown plugin name.
        lxml.etree.XMLSyntaxError: From ``optimize``, for malformed input.
    """

    def __init__(self, options: OptimizerOptions) -> None:
        self._options = options
        self._plugins: list[tuple[str, PluginFn, dict[str, Any]]] = []
        for entry in options.plugins:
            plugin = entry if isinstance(entry, OptimizerPlugin) else OptimizerPlugin(name=entry)
            fn = PLUGINS.get(plugin.name)
            if fn is None:
                raise ValueError(f"Unknown SVG optimizer plugin: {plugin.name!r}")
            self._plugins.append((plugin.name, fn, dict(plugin.params)))
        if options.current_color and "currentColor" not in self.plugin_names:
            self._plugins.append(("currentColor", current_color, {}))

    @property
    def plugin_names(self) -> list[str]:
        return [name for name, _, _ in self._plugins]

    def optimize(self, svg: str) -> str:
        passes = MAX_PASSES if self._options.multipass else 1
        current = svg
        for i in range(passes):
            result = self._single_pass(current)
            if result == current:
                break
            current = result
        else:
            logger.debug("Optimizer stopped after %d passes without converging", passes)
        return current

    def _single_pass(self, svg: str) -> str:
        parser = etree.XMLParser(
            resolve_entities=False, no_network=True, huge_tree=True, remove_blank_text=False
        )
        root = etree.fromstring(svg.encode("utf-8"), parser)
        for _, fn, params in self._plugins:
            fn(root, params, self._options)
        return self._serialize(root, had_declaration=svg.lstrip().startswith("<?xml"))

    def _serialize(self, root: etree._Element, had_declaration: bool) -> str:
        names = set(self.plugin_names)
        parts: list[str] = []
        tree = root.getroottree()

        if had_declaration and "removeXMLProcInst" not in names:
            parts.append(f'<?xml version="{tree.docinfo.xml_version or "1.0"}" encoding="UTF-8"?>')
        if tree.docinfo.doctype and "removeDoctype" not in names:
            parts.append(tree.docinfo.doctype)
        if "removeComments" not in names:
            for node in reversed(list(root.itersiblings(preceding=True))):
                parts.append(etree.tostring(node, encoding="unicode", with_tail=False))

        parts.append(etree.tostring(root, encoding="unicode", with_tail=False))
        return "\n".join(parts)
