# src/config/resolver.py - v1
"""Layered configuration resolution.

Three layers are merged, least to most specific: base (global), component
type, instance. For every key the most specific *defined* value wins:

  - a key that is absent, or whose value is ``UNSET``, does not override;
  - ``None`` is a defined value and does override;
  - nested mappings (and pydantic models) merge recursively, key by key;
  - lists, tuples, scalars, strategy objects and type mismatches are
    replaced wholesale, never concatenated.

The merge is pure: inputs are never mutated and the result shares no
mutable containers with them.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from texsvg.core.errors import InvalidConfigurationError
from texsvg.core.models import ResolvedConfig

if TYPE_CHECKING:
    from texsvg.config.settings import Settings

logger = logging.getLogger(__name__)

Layer = Mapping[str, Any] | BaseModel | None


class _Unset:
    """Sentinel type for "this layer does not set the key"."""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


def merge_layers(*layers: Layer) -> dict[str, Any]:
    """Merge configuration layers, later layers taking precedence."""
    merged: dict[str, Any] = {}
    for layer in layers:
        merged = _merge_two(merged, _as_mapping(layer))
    return merged


def resolve(
    base: Layer,
    component_overrides: Layer = None,
    instance_overrides: Layer = None,
) -> ResolvedConfig:
    """Merge the three layers and validate the result into a ResolvedConfig.

    Keys nobody sets fall back to ResolvedConfig defaults, so the result is
    always fully populated.

    Raises:
        InvalidConfigurationError: If the merged values do not form a valid
            configuration (an unknown key, a wrong type, an explicit ``None``
            on a required field).
    """
    merged = merge_layers(base, component_overrides, instance_overrides)
    try:
        return ResolvedConfig.model_validate(merged)
    except ValidationError as e:
        logger.error("Configuration rejected: %d error(s)", e.error_count())
        raise InvalidConfigurationError(
            f"Invalid TeX configuration: {e}", stage="resolve"
        ) from e


def base_config(settings: Settings) -> dict[str, Any]:
    """Build the base (global) layer from deployment settings."""
    return {
        "engine": settings.default_engine,
        "intermediate_filetype": settings.default_intermediate_filetype,
        "output_directory": settings.output_directory,
        "cache_directory": settings.cache_directory,
        "caching_enabled": settings.caching_enabled,
        "timeout_s": settings.process_timeout_s,
    }


# --- Internals ---


def _as_mapping(layer: Any) -> Mapping[str, Any]:
    if layer is None or layer is UNSET:
        return {}
    if isinstance(layer, BaseModel):
        # Only explicitly set fields count; defaults are not overrides.
        return {name: getattr(layer, name) for name in layer.model_fields_set}
    if isinstance(layer, Mapping):
        return layer
    raise TypeError(
        f"Configuration layer must be a mapping or a pydantic model, got {type(layer).__name__}"
    )


def _is_mergeable(value: Any) -> bool:
    return isinstance(value, (Mapping, BaseModel))


def _merge_two(lower: Mapping[str, Any], upper: Mapping[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in lower.items():
        if value is not UNSET:
            result[key] = _detach(value)

    for key, value in upper.items():
        if value is UNSET:
            continue
        current = result.get(key, UNSET)
        if _is_mergeable(value) and _is_mergeable(current):
            result[key] = _merge_two(_as_mapping(current), _as_mapping(value))
        else:
            result[key] = _detach(value)
    return result


def _detach(value: Any) -> Any:
    """Copy containers so the merged result never aliases an input layer."""
    if _is_mergeable(value):
        return _merge_two({}, _as_mapping(value))
    if isinstance(value, list):
        return [_detach(v) for v in value]
    return value
