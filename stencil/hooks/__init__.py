"""Template extension hooks."""

from .runner import HookStage, ScriptHookRunner

__all__ = ["HookStage", "ScriptHookRunner"]
