"""
Data-flow transform registry.

A transform converts a source field's value before it is written to the
target field of a DataFlowRelationship. Each transform is a function
``fn(value, config) -> value`` registered under a name; ``config`` is the
relationship's transform_config dict (never None when called).

Decision table (see also tests/test_data_flow_transforms.py):

    None / "" / "copy"              value unchanged
    uppercase, lowercase, trim      str only, else TransformError
    extract   {field}               dict key or list index, missing -> TransformError
    join      {separator=", "}      list only
    split     {separator=","}       str only, parts stripped
    aggregate {type, separator}     list only; concat|sum|count|first|last
                                    sum counts non-numeric items as 0
    map       {mapping}             mapped value, unchanged when key absent
    template  {template}            "{value}" substituted, template required
    <unknown>                       TransformError (creation rejects it earlier)

Any TypeError/ValueError/KeyError/IndexError a transform raises on odd
input or config is re-raised as TransformError, so the propagator can
report it against that one relationship.

Usage:
    from app.services.data_flow_transforms import apply_transform, is_known_transform
    apply_transform("uppercase", "habit tracker", None)   # -> "HABIT TRACKER"
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from app.core.exceptions import TransformError

logger = logging.getLogger(__name__)

IDENTITY_TRANSFORMS = frozenset({"", "copy"})

_transform_registry: dict[str, Callable[[Any, dict], Any]] = {}


def register_transform(name: str):
    """Decorator to register a transform function.

    Usage:
        @register_transform("uppercase")
        def _uppercase(value, config):
            ...
    """
    def decorator(fn: Callable[[Any, dict], Any]) -> Callable[[Any, dict], Any]:
        _transform_registry[name] = fn
        return fn
    return decorator


def known_transforms() -> list[str]:
    """Names accepted in DataFlowRelationship.transform_type."""
    return sorted(IDENTITY_TRANSFORMS - {""} | set(_transform_registry))


def is_known_transform(transform_type: str | None) -> bool:
    if not transform_type:
        return True
    return transform_type in IDENTITY_TRANSFORMS or transform_type in _transform_registry


def apply_transform(transform_type: str | None, value: Any, config: dict | None) -> Any:
    """Apply ``transform_type`` to ``value``.

    Raises:
        TransformError: unknown transform, or input/config the transform
            cannot handle.
    """
    if not transform_type or transform_type in IDENTITY_TRANSFORMS:
        return value

    fn = _transform_registry.get(transform_type)
    if fn is None:
        raise TransformError(transform_type, "unknown transform type")

    if config is not None and not isinstance(config, dict):
        raise TransformError(transform_type, "transform_config must be an object")
    try:
        return fn(value, config or {})
    except TransformError:
        raise
    except (TypeError, ValueError, KeyError, IndexError) as exc:
        raise TransformError(transform_type, str(exc)) from exc


def _require_str(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise TransformError(name, f"expected a string, got {type(value).__name__}")
    return value


def _require_list(name: str, value: Any) -> list:
    if not isinstance(value, list):
        raise TransformError(name, f"expected a list, got {type(value).__name__}")
    return value


def _separator(name: str, config: dict, default: str) -> str:
    separator = config.get("separator")
    if separator is None:
        return default
    if not isinstance(separator, str):
        raise TransformError(name, "transform_config.separator must be a string")
    return separator


def _to_number(item: Any) -> int | float:
    if isinstance(item, bool):
        return int(item)
    if isinstance(item, (int, float)):
        return item
    if isinstance(item, str):
        for cast in (int, float):
            try:
                return cast(item.strip())
            except ValueError:
                continue
    return 0


# ── String transforms ────────────────────────────────────────────────────────

@register_transform("uppercase")
def _uppercase(value, config):
    return _require_str("uppercase", value).upper()


@register_transform("lowercase")
def _lowercase(value, config):
    return _require_str("lowercase", value).lower()


@register_transform("trim")
def _trim(value, config):
    return _require_str("trim", value).strip()


@register_transform("split")
def _split(value, config):
    text = _require_str("split", value)
    separator = _separator("split", config, ",") or ","
    return [part.strip() for part in text.split(separator)]


@register_transform("template")
def _template(value, config):
    template = config.get("template")
    if not isinstance(template, str) or not template:
        raise TransformError("template", "transform_config.template is required")
    return template.replace("{value}", "" if value is None else str(value))


# ── Structural transforms ────────────────────────────────────────────────────

@register_transform("extract")
def _extract(value, config):
    key = config.get("field")
    if key is None or key == "":
        raise TransformError("extract", "transform_config.field is required")
    if isinstance(key, bool) or not isinstance(key, (str, int)):
        raise TransformError("extract", "transform_config.field must be a string or integer")
    if isinstance(value, dict):
        if key not in value:
            raise TransformError("extract", f"field {key!r} not present")
        return value[key]
    if isinstance(value, list):
        try:
            return value[int(key)]
        except (ValueError, TypeError, IndexError):
            raise TransformError("extract", f"index {key!r} not present")
    raise TransformError("extract", f"expected an object or list, got {type(value).__name__}")


@register_transform("join")
def _join(value, config):
    items = _require_list("join", value)
    return _separator("join", config, ", ").join(str(item) for item in items)


@register_transform("aggregate")
def _aggregate(value, config):
    items = _require_list("aggregate", value)
    kind = config.get("type") or "concat"
    if kind == "concat":
        return _separator("aggregate", config, ", ").join(str(item) for item in items)
    if kind == "sum":
        total = 0
        for item in items:
            total += _to_number(item)
        return total
    if kind == "count":
        return len(items)
    if kind in ("first", "last"):
        if not items:
            raise TransformError("aggregate", f"cannot take {kind} of an empty list")
        return items[0] if kind == "first" else items[-1]
    raise TransformError("aggregate", f"unknown aggregate type {kind!r}")


@register_transform("map")
def _map(value, config):
    mapping = config.get("mapping")
    if not isinstance(mapping, dict):
        raise TransformError("map", "transform_config.mapping must be an object")
    if isinstance(value, (list, dict)):
        raise TransformError("map", f"cannot map a {type(value).__name__}")
    if value in mapping:
        return mapping[value]
    # JSON object keys are always strings
    if str(value) in mapping:
        return mapping[str(value)]
    return value
