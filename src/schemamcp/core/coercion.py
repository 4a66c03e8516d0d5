"""
Key-value coercion between JSON arguments and the data layer.

JSON callers send integers as strings when they fear overflow, and send 64-bit
integers or decimals as numbers that may already have lost precision. Keys are
normalized before they reach a predicate:

- safe integer types accept digit-only strings and turn them into ``int``
  (``UInt8`` only accepts non-negative digits);
- precision-sensitive types (``Int64``, ``Decimal``) turn numbers into their
  string form;
- everything else passes through unchanged.
"""

import re
from typing import Any

from schemamcp.core.types import PRECISION_SENSITIVE_TYPES, SAFE_INTEGER_TYPES, PropertyType

_SIGNED_DIGITS = re.compile(r"^-?\d+$")
_UNSIGNED_DIGITS = re.compile(r"^\d+$")


def coerce_key_value(type_name: str | PropertyType, value: Any) -> Any:
    base = type_name.base if isinstance(type_name, PropertyType) else type_name
    if base.startswith("cds."):
        base = base[4:]

    if base in SAFE_INTEGER_TYPES and isinstance(value, str):
        pattern = _UNSIGNED_DIGITS if base == "UInt8" else _SIGNED_DIGITS
        if pattern.match(value):
            return int(value)
        return value

    if (
        base in PRECISION_SENSITIVE_TYPES
        and isinstance(value, (int, float))
        and not isinstance(value, bool)
    ):
        return str(value)

    return value


def coerce_keys(
    key_types: dict[str, PropertyType], values: dict[str, Any]
) -> dict[str, Any]:
    """Coerce every value whose name is a declared key."""
    return {
        name: coerce_key_value(key_types[name], value) if name in key_types else value
        for name, value in values.items()
    }
