"""Jinja2 environment construction and inline expression rendering."""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping

from jinja2 import DictLoader, StrictUndefined
from jinja2.sandbox import SandboxedEnvironment

logger = logging.getLogger(__name__)


def new_environment(
    arena: MutableMapping[str, str] | None = None,
) -> SandboxedEnvironment:
    """Build an isolated sandboxed Jinja2 environment.

    Args:
        arena: Template sources keyed by registered name. The loader reads
            from this mapping, so names added later are resolvable too.

    Returns:
        Environment that fails on any undefined name
    """
    loader = DictLoader(arena if arena is not None else {})
    return SandboxedEnvironment(
        loader=loader,
        undefined=StrictUndefined,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


_INLINE_ENV = new_environment()


def render_string(source: str, context: Mapping[str, Any]) -> str:
    """Render an inline template string against a context.

    Raises:
        jinja2.TemplateError: On syntax errors or undefined names
    """
    return _INLINE_ENV.from_string(source).render(**context)
