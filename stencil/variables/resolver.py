"""Fixpoint evaluation of interdependent variable defaults."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

from ..core.models import VariableSpec
from ..rendering.engine import render_string

logger = logging.getLogger(__name__)


def initial_bindings(specs: Sequence[VariableSpec]) -> dict[str, Any]:
    """Pre-fill bindings with each spec's literal default."""
    return {spec.name: spec.fallback_value() for spec in specs}


def _evaluate(spec: VariableSpec, bindings: Mapping[str, Any]) -> Any:
    try:
        return render_string(spec.default, bindings)
    except Exception as exc:
        # Runtime errors raised by the expression count as render failures
        # too; the literal text stays bound.
        logger.debug("Default for '%s' not evaluated yet: %s", spec.name, exc)
        return spec.default


def resolve_defaults(
    specs: Sequence[VariableSpec],
    initial: Mapping[str, Any] | None = None,
    pinned: Iterable[str] = (),
) -> dict[str, Any]:
    """Evaluate expression defaults until a pass changes nothing.

    Every pass walks the specs in order and renders expression defaults
    against the live bindings, so a value assigned earlier in a pass is
    visible to later specs in the same pass. The loop stops after a pass with
    no change, or after ``2 * len(specs)`` passes. Cycles do not raise; they
    keep whatever values they hold when the budget runs out.

    Args:
        specs: Variable specs in manifest order
        initial: Bindings to start from
        pinned: Names whose current binding must never be re-evaluated

    Returns:
        Bindings whose keys are exactly the spec names
    """
    bindings: dict[str, Any] = dict(initial or {})
    fixed = set(pinned)

    max_passes = max(len(specs), 1) * 2
    passes = 0
    for passes in range(1, max_passes + 1):
        changed = False
        for spec in specs:
            if spec.name in fixed and spec.name in bindings:
                continue
            if spec.is_expression:
                value = _evaluate(spec, bindings)
                if spec.name not in bindings or bindings[spec.name] != value:
                    bindings[spec.name] = value
                    changed = True
            elif spec.name not in bindings:
                bindings[spec.name] = spec.fallback_value()
                changed = True
        if not changed:
            break
    else:
        logger.debug("Default resolution stopped at pass budget %d", max_passes)

    logger.debug("Resolved %d default(s) in %d pass(es)", len(specs), passes)

    names = {spec.name for spec in specs}
    dropped = sorted(set(bindings) - names)
    if dropped:
        logger.debug("Dropping bindings with no declared variable: %s", dropped)
    return {spec.name: bindings[spec.name] for spec in specs}
