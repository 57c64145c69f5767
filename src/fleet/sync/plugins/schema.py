"""Validation of free-form plugin config against an advertised ConfigSchema.

Plugins call ``validate_against_schema`` from ``validate_config`` before
converting the key/value map into their own typed settings.
"""

import re
from typing import Any

from ...api.exceptions import ValidationError
from ..domain.entities import ConfigSchema, PropertySchema

_TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "integer": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "array": lambda v: isinstance(v, list),
    "object": lambda v: isinstance(v, dict),
}


def validate_against_schema(config: dict[str, Any], schema: ConfigSchema) -> None:
    """Check required keys, types, enums, patterns and numeric bounds.

    Unknown keys are allowed.

    Raises:
        ValidationError: naming the first offending field
    """
    for key in schema.required:
        if config.get(key) in (None, ""):
            raise ValidationError(f"Missing required config field '{key}'", field=key)

    for key, value in config.items():
        prop = schema.properties.get(key)
        if prop is None or value is None:
            continue
        _validate_property(key, value, prop)


def _validate_property(key: str, value: Any, prop: PropertySchema) -> None:
    check = _TYPE_CHECKS.get(prop.type)
    if check and not check(value):
        raise ValidationError(f"Config field '{key}' must be of type {prop.type}", field=key)

    if prop.enum is not None and value not in prop.enum:
        allowed = ", ".join(str(v) for v in prop.enum)
        raise ValidationError(f"Config field '{key}' must be one of: {allowed}", field=key)

    if prop.pattern and isinstance(value, str) and not re.fullmatch(prop.pattern, value):
        raise ValidationError(f"Config field '{key}' does not match {prop.pattern}", field=key)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if prop.minimum is not None and value < prop.minimum:
            raise ValidationError(f"Config field '{key}' must be >= {prop.minimum}", field=key)
        if prop.maximum is not None and value > prop.maximum:
            raise ValidationError(f"Config field '{key}' must be <= {prop.maximum}", field=key)


def apply_defaults(config: dict[str, Any], schema: ConfigSchema) -> dict[str, Any]:
    """Return a copy of ``config`` with schema defaults filled in."""
    merged = {
        key: prop.default
        for key, prop in schema.properties.items()
        if prop.default is not None
    }
    merged.update({k: v for k, v in config.items() if v is not None})
    return merged
