"""Execution of template extension hooks.

Hooks are Python scripts in the template's ``hooks/`` directory. A script
defines ``run(vars, ctx)`` and returns a mapping with optional ``vars``
(updated bindings) and ``files`` (``{"path": ..., "content": ...}`` entries).
Each invocation executes the script in a fresh module namespace, so one stage
never observes state left behind by another.
"""

from __future__ import annotations

import copy
import logging
import runpy
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from pydantic import ValidationError

from ..core.errors import HookError
from ..core.models import HookResult

logger = logging.getLogger(__name__)


class HookStage(str, Enum):
    PRE_PROMPT = "pre_prompt"
    PRE_GEN = "pre_gen_project"
    POST_GEN = "post_gen_project"

    @property
    def script_name(self) -> str:
        return f"{self.value}.py"


def hook_script(template_root: Path, stage: HookStage) -> Path | None:
    path = template_root / "hooks" / stage.script_name
    if path.is_file() and not path.is_symlink():
        return path
    return None


def _parse_result(stage: HookStage, raw: Any) -> HookResult:
    if raw is None:
        return HookResult()
    if not isinstance(raw, Mapping):
        raise HookError(f"Hook {stage.value} must return a mapping, got {type(raw).__name__}")
    try:
        return HookResult.model_validate(dict(raw))
    except ValidationError as exc:
        raise HookError(f"Hook {stage.value} returned malformed result: {exc}") from exc


class ScriptHookRunner:
    """Runs hook scripts from a template's ``hooks/`` directory."""

    def __init__(self, template_root: Path) -> None:
        self.template_root = template_root

    def __call__(
        self,
        stage: HookStage,
        bindings: Mapping[str, Any],
        context: Mapping[str, Any],
    ) -> HookResult:
        """Invoke the hook for a stage.

        Args:
            stage: Lifecycle stage to run
            bindings: Current variable bindings (copied, never mutated)
            context: Stage context (``stage``, and ``output`` for generation)

        Returns:
            Parsed hook result; empty when the template has no hook for the stage
        """
        script = hook_script(self.template_root, stage)
        if script is None:
            return HookResult()

        logger.info("Running hook: %s", stage.value)
        try:
            namespace = runpy.run_path(
                str(script), run_name=f"stencil_hook_{stage.value}"
            )
        except Exception as exc:
            raise HookError(f"Hook {stage.value} failed to load: {exc}") from exc

        entry = namespace.get("run")
        if not callable(entry):
            raise HookError(f"Hook {script.name} does not define run(vars, ctx)")

        try:
            raw = entry(copy.deepcopy(dict(bindings)), dict(context))
        except Exception as exc:
            raise HookError(f"Hook {stage.value} raised: {exc}") from exc

        result = _parse_result(stage, raw)
        logger.debug(
            "Hook %s returned %d file(s)%s",
            stage.value,
            len(result.files),
            " and updated vars" if result.vars else "",
        )
        return result
