"""Conversion of raw string input to typed variable values."""

from __future__ import annotations

import re
from typing import Any

from ..core.errors import VariableValueError
from ..core.models import VariableKind, VariableSpec

_INT_PATTERN = re.compile(r"^[-+]?\d+$")

_TRUTHY = {"true", "1", "yes", "y", "on"}
_FALSY = {"false", "0", "no", "n", "off"}


def parse_bool(value: str) -> bool:
    value_lower = value.strip().lower()
    if value_lower in _TRUTHY:
        return True
    if value_lower in _FALSY:
        return False
    raise VariableValueError(f"Not a boolean: {value!r}")


def parse_int(value: str) -> int:
    stripped = value.strip()
    if not _INT_PATTERN.match(stripped):
        raise VariableValueError(f"Not an integer: {value!r}")
    return int(stripped)


def coerce_value(spec: VariableSpec | None, raw: str) -> Any:
    """Coerce a raw string to the kind declared by its spec.

    Args:
        spec: Declaring spec, or None for a name the manifest does not know
        raw: Raw string value (e.g. from ``--var KEY=VALUE``)

    Returns:
        Value of the appropriate Python type
    """
    if spec is None or spec.kind is VariableKind.STRING:
        return raw
    if spec.kind is VariableKind.BOOLEAN:
        return parse_bool(raw)
    if spec.kind is VariableKind.INTEGER:
        return parse_int(raw)

    value = raw.strip()
    if spec.choices and value not in spec.choices:
        allowed = ", ".join(spec.choices)
        raise VariableValueError(
            f"Invalid value {value!r} for '{spec.name}'. Allowed: {allowed}"
        )
    return value
