"""CLI argument parsers and validators."""

from __future__ import annotations

from typing import Any

import typer

from ..core.errors import VariableValueError
from ..core.models import Manifest
from ..variables.coercion import coerce_value


def parse_assignment(value: str) -> tuple[str, str]:
    """Parse a variable argument in format KEY=VALUE."""
    if "=" not in value:
        raise typer.BadParameter(f"Must be KEY=VALUE, got: {value!r}")
    key, raw = value.split("=", 1)
    key = key.strip()
    if not key:
        raise typer.BadParameter(f"Missing variable name in: {value!r}")
    return key, raw


def parse_overrides(values: list[str], manifest: Manifest) -> dict[str, Any]:
    """Parse repeated KEY=VALUE arguments into values typed by the manifest."""
    overrides: dict[str, Any] = {}
    for key, raw in map(parse_assignment, values):
        try:
            overrides[key] = coerce_value(manifest.spec(key), raw)
        except VariableValueError as e:
            raise typer.BadParameter(str(e)) from e
    return overrides
