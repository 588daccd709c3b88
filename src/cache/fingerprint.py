# src/cache/fingerprint.py - v4
"""Build fingerprints: the cache key of a TeX snippet.

The fingerprint is a SHA-256 over canonical JSON of the normalized source and
every configuration field that can change the bytes of the final SVG. Fields
that cannot (directories, caching switch, timeout, debug options, converter
log verbosity) are left out so that toggling them never causes a cache miss.

Strategies (custom compile, convert and post-process hooks) are hashed by
their declared name, regex transformations by pattern and replacement.
"""

from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING, Any

from texsvg.core.hooks import CompileStrategy, ConvertStrategy, PostprocessStrategy

if TYPE_CHECKING:
    from texsvg.core.models import ResolvedConfig

# Bump when the payload layout or the build recipe changes incompatibly.
PAYLOAD_VERSION = 2

FINGERPRINT_LENGTH = 64

# Converter options that only change dvisvgm's log output.
LOG_ONLY_CONVERTER_FIELDS: frozenset[str] = frozenset({"verbosity"})


def normalize_source(text: str) -> str:
    """Canonicalize line endings. No other whitespace is touched."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def hash_text(text: str) -> str:
    """SHA-256 hex digest of UTF-8 text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def strategy_identity(obj: Any) -> Any:
    """Return a JSON-serializable identity for a hook or transformation."""
    if obj is None:
        return None
    if isinstance(obj, (CompileStrategy, ConvertStrategy, PostprocessStrategy)):
        return {"strategy": type(obj).__name__, "name": obj.name}
    if isinstance(obj, (tuple, list)) and len(obj) == 2:
        pattern, replacement = obj
        return {"pattern": pattern, "replacement": replacement}
    raise TypeError(f"Cannot fingerprint object of type {type(obj).__name__}")


def fingerprint_payload(source_text: str, config: ResolvedConfig) -> dict[str, Any]:
    """Collect the output-affecting inputs of a build."""
    return {
        "version": PAYLOAD_VERSION,
        "source": normalize_source(source_text),
        "engine": config.engine,
        "intermediate_filetype": config.intermediate_filetype,
        "shell_escape": config.shell_escape,
        "safer_lua": config.safer_lua,
        "document_class": config.document_class,
        "document_class_options": config.document_class_options,
        "preamble": normalize_source(config.preamble),
        "environment": dict(sorted(config.environment.items())),
        "converter": config.converter.model_dump(mode="json", exclude=LOG_ONLY_CONVERTER_FIELDS),
        "optimizer": config.optimizer.model_dump(mode="json"),
        "transformations": [strategy_identity(t) for t in config.transformations],
        "custom_compile": strategy_identity(config.custom_compile),
        "custom_convert": strategy_identity(config.custom_convert),
        "custom_postprocess": strategy_identity(config.custom_postprocess),
    }


def compute_fingerprint(source_text: str, config: ResolvedConfig) -> str:
    """Compute the 64-character hex fingerprint of a build.

    Stable across processes: no ``hash()``, no object ids, sorted keys.
    """
    payload = fingerprint_payload(source_text, config)
    canonical = json.dumps(
        payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )
    return hash_text(canonical)
