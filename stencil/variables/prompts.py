"""Interactive collection of variable values."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence

import typer

from ..core.errors import VariableValueError
from ..core.models import VariableKind, VariableSpec
from .coercion import parse_int
from .resolver import resolve_defaults

logger = logging.getLogger(__name__)


def display_name(spec: VariableSpec) -> str:
    """Header shown above an enumeration (``language_code`` -> ``Language``)."""
    if spec.name.endswith("_code"):
        base = spec.name[: -len("_code")]
        if base:
            return base[0].upper() + base[1:]
    return spec.name


def _ask_string(spec: VariableSpec, default: Any) -> str:
    text = spec.prompt or f"Enter {spec.name}"
    if default is None or default == "":
        return typer.prompt(text)
    return typer.prompt(text, default=str(default), show_default=True)


def _ask_bool(spec: VariableSpec, default: Any) -> bool:
    text = spec.prompt or f"{spec.name}?"
    return typer.confirm(text, default=bool(default))


def _ask_int(spec: VariableSpec, default: Any) -> int:
    text = spec.prompt or f"Enter number for {spec.name}"
    answer = typer.prompt(text, default=str(default if default is not None else 0))
    return parse_int(answer)


def _ask_choice(spec: VariableSpec, default: Any) -> str:
    typer.echo(f"{spec.prompt or display_name(spec)}:")
    for choice in spec.choices:
        typer.echo(f'  "{choice}": "{spec.label_for(choice)}"')

    fallback = default if default in spec.choices else spec.choices[0]
    answer = typer.prompt("Enter value", default=fallback).strip()
    if not answer:
        return fallback
    if answer not in spec.choices:
        logger.warning("Invalid value %r for %s, using default.", answer, spec.name)
        return fallback
    return answer


def ask(spec: VariableSpec, default: Any) -> Any:
    """Prompt for a single variable and return its typed value."""
    if spec.kind is VariableKind.BOOLEAN:
        return _ask_bool(spec, default)
    if spec.kind is VariableKind.INTEGER:
        return _ask_int(spec, default)
    if spec.kind is VariableKind.ENUMERATION and spec.choices:
        return _ask_choice(spec, default)
    return _ask_string(spec, default)


def collect_interactive(
    specs: Sequence[VariableSpec],
    bindings: dict[str, Any],
    *,
    fixed: Iterable[str] = (),
    skip: Iterable[str] = (),
) -> dict[str, Any]:
    """Prompt for every variable not in ``skip``, in manifest order.

    Derived defaults are re-resolved after each answer, so a prompt for a
    variable whose default depends on an earlier answer offers the updated
    value.

    Args:
        specs: Variable specs in manifest order
        bindings: Resolved bindings to use as prompt defaults
        fixed: Names whose value must not be re-evaluated between prompts
        skip: Names already supplied by the caller; they are not prompted

    Returns:
        Bindings including every answer
    """
    pinned = set(fixed)
    skipped = set(skip)
    current = dict(bindings)
    for spec in specs:
        if spec.name in skipped:
            continue
        try:
            current[spec.name] = ask(spec, current.get(spec.name))
        except (typer.Abort, EOFError) as exc:
            raise VariableValueError(f"Input aborted at '{spec.name}'") from exc
        pinned.add(spec.name)
        current = resolve_defaults(specs, current, pinned=pinned)
    return current
