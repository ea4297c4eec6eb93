"""Run orchestration: resolve, register, stage, promote.

Output is rendered into a private staging directory first and only copied to
the real destination once rendering and every hook stage succeeded. A failure
before promotion leaves the destination untouched. Promotion itself is not
transactional: if it fails part way, files already copied stay in place.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, Sequence

from ..core.errors import OutputWriteError, StencilError, UnsafePathError
from ..core.models import (
    HookResult,
    Manifest,
    MaterializeResult,
    RunState,
    TemplateItem,
)
from ..hooks.runner import HookStage
from ..manifest.loader import compile_copy_filter
from ..safety.paths import PORTABLE_DEFAULT, PathSafetyGuard, is_safe_rel_path
from ..variables.resolver import initial_bindings, resolve_defaults
from .io import atomic_write_bytes, atomic_write_text, source_mode
from .registry import TemplateRegistry, prepare_context

logger = logging.getLogger(__name__)

HookRunner = Callable[[HookStage, Mapping[str, Any], Mapping[str, Any]], HookResult]
Collector = Callable[..., dict[str, Any]]


class Materializer:
    """Materializes one template tree into one output root.

    Args:
        template_root: Working copy of the template
        output_root: Real destination directory
        manifest: Parsed manifest of the template
        overrides: Typed values fixed by the caller; never prompted or re-evaluated
        hooks: Hook runner, or None to skip every hook stage
        collect: Interactive collector called as
            ``collect(specs, bindings, fixed=..., skip=...)``, or None
        portable: Apply Windows path-segment rules
    """

    def __init__(
        self,
        template_root: Path,
        output_root: Path,
        manifest: Manifest,
        *,
        overrides: Mapping[str, Any] | None = None,
        hooks: HookRunner | None = None,
        collect: Collector | None = None,
        portable: bool = PORTABLE_DEFAULT,
    ) -> None:
        self.template_root = template_root
        self.output_root = output_root
        self.manifest = manifest
        self.overrides = dict(overrides or {})
        self.hooks = hooks
        self.collect = collect
        self.portable = portable
        self.state = RunState.INIT

    def _transition(self, state: RunState) -> None:
        logger.debug("Run state: %s -> %s", self.state.value, state.value)
        self.state = state

    def _hook(
        self, stage: HookStage, bindings: Mapping[str, Any], context: Mapping[str, Any]
    ) -> HookResult:
        if self.hooks is None:
            return HookResult()
        return self.hooks(stage, bindings, context)

    def run(self) -> MaterializeResult:
        """Execute the full run.

        Raises:
            StencilError: On the first failing stage; the run is left ABORTED
        """
        try:
            copy_filter = compile_copy_filter(self.manifest)
            with tempfile.TemporaryDirectory(prefix="stencil-stage-") as staging:
                staging_out = Path(staging) / "out"
                staging_out.mkdir()

                self._transition(RunState.RESOLVE_VARIABLES)
                bindings = self.resolve_variables()
                context = prepare_context(bindings)
                pre_gen = self._hook(
                    HookStage.PRE_GEN,
                    context,
                    {"stage": HookStage.PRE_GEN.value, "output": str(staging_out)},
                )
                if pre_gen.vars:
                    declared = {spec.name for spec in self.manifest.variables}
                    _warn_unknown("pre_gen_project hook", pre_gen.vars, declared)
                    accepted = {k: v for k, v in pre_gen.vars.items() if k in declared}
                    context = prepare_context({**context, **accepted})
                snapshot = MappingProxyType(context)

                self._transition(RunState.REGISTER_TEMPLATES)
                registry = TemplateRegistry(
                    self.template_root, copy_filter, portable=self.portable
                )
                items = registry.build(snapshot)
                project_dir = registry.project_dir(snapshot)

                self._transition(RunState.STAGE_RENDER)
                self.stage(registry, items, snapshot, staging_out, project_dir, pre_gen)

                self._transition(RunState.PROMOTE)
                files = self.promote(staging_out)
        except StencilError:
            self._transition(RunState.ABORTED)
            raise
        except OSError as exc:
            self._transition(RunState.ABORTED)
            raise OutputWriteError(f"Filesystem error during {self.state.value}: {exc}") from exc
        except Exception:
            self._transition(RunState.ABORTED)
            raise

        self._transition(RunState.DONE)
        logger.info("Generated successfully: %s", self.output_root)
        return MaterializeResult(
            output_root=self.output_root,
            project_dir=project_dir,
            files=files,
            bindings=dict(snapshot),
        )

    def resolve_variables(self) -> dict[str, Any]:
        """Produce bindings from defaults, the pre-prompt hook, overrides and input."""
        specs = self.manifest.variables
        names = {spec.name for spec in specs}
        bindings = initial_bindings(specs)
        fixed: set[str] = set()

        result = self._hook(
            HookStage.PRE_PROMPT, bindings, {"stage": HookStage.PRE_PROMPT.value}
        )
        if result.vars:
            _warn_unknown("pre_prompt hook", result.vars, names)
            bindings.update(result.vars)
            fixed.update(names & set(result.vars))

        _warn_unknown("override", self.overrides, names)
        bindings.update(self.overrides)
        skip = names & set(self.overrides)
        fixed |= skip

        bindings = resolve_defaults(specs, bindings, pinned=fixed)
        if self.collect is not None:
            bindings = self.collect(specs, bindings, fixed=fixed, skip=skip)
        return bindings

    def stage(
        self,
        registry: TemplateRegistry,
        items: Sequence[TemplateItem],
        context: Mapping[str, Any],
        staging_out: Path,
        project_dir: str,
        pre_gen: HookResult,
    ) -> None:
        """Render every item and hook file into the staging directory."""
        guard = PathSafetyGuard(staging_out, portable=self.portable)
        project_root = guard.resolve(project_dir)
        project_root.mkdir(parents=True, exist_ok=True)
        project_guard = PathSafetyGuard(project_root, portable=self.portable)
        written: set[PurePosixPath] = set()

        self._write_hook_files(HookStage.PRE_GEN, pre_gen, project_guard, project_dir, written)

        logger.info("Rendering templates...")
        for item in items:
            target = guard.resolve(item.output_path)
            mode = source_mode(item.source_path)
            if item.copy_raw:
                atomic_write_bytes(target, item.source_path.read_bytes(), mode=mode)
            else:
                atomic_write_text(target, registry.render(item, context), mode=mode)
            if item.output_path in written:
                logger.warning("Rendered file overwrites hook output: %s", item.output_path)
            written.add(item.output_path)

        post_gen = self._hook(
            HookStage.POST_GEN,
            context,
            {"stage": HookStage.POST_GEN.value, "output": str(staging_out)},
        )
        if post_gen.vars:
            logger.debug("Ignoring vars returned by post_gen_project hook")
        self._write_hook_files(HookStage.POST_GEN, post_gen, project_guard, project_dir, written)

    def _write_hook_files(
        self,
        stage: HookStage,
        result: HookResult,
        guard: PathSafetyGuard,
        project_dir: str,
        written: set[PurePosixPath],
    ) -> None:
        for hook_file in result.files:
            if not is_safe_rel_path(hook_file.path, portable=self.portable):
                raise UnsafePathError(
                    f"{stage.value} hook returned unsafe path: {hook_file.path!r}"
                )
            target = guard.resolve(hook_file.path)
            rel = PurePosixPath(project_dir) / target.relative_to(guard.canonical_root).as_posix()
            if rel in written:
                logger.warning("%s hook overwrites existing output: %s", stage.value, rel)
            atomic_write_text(target, hook_file.content)
            written.add(rel)

    def promote(self, staging_out: Path) -> list[PurePosixPath]:
        """Copy the staged tree into the output root, re-validating every path."""
        self.output_root.mkdir(parents=True, exist_ok=True)
        guard = PathSafetyGuard(self.output_root, portable=self.portable)
        promoted: list[PurePosixPath] = []

        for dirpath, dirnames, filenames in os.walk(staging_out):
            dirnames.sort()
            current = Path(dirpath)
            for name in dirnames:
                rel = PurePosixPath((current / name).relative_to(staging_out).as_posix())
                target = guard.resolve(rel)
                if target.exists() and not target.is_dir():
                    raise OutputWriteError(f"Output path exists and is not a directory: {target}")
                target.mkdir(exist_ok=True)
            for name in sorted(filenames):
                source = current / name
                rel = PurePosixPath(source.relative_to(staging_out).as_posix())
                target = guard.resolve(rel)
                atomic_write_bytes(target, source.read_bytes(), mode=source_mode(source))
                promoted.append(rel)

        logger.info("Promoted %d file(s) to %s", len(promoted), self.output_root)
        return promoted


def _warn_unknown(origin: str, values: Mapping[str, Any], names: Iterable[str]) -> None:
    unknown = sorted(set(values) - set(names))
    if unknown:
        logger.warning("Ignoring %s value(s) for undeclared variable(s): %s", origin, unknown)


__all__ = ["Collector", "HookRunner", "Materializer"]
