"""Template discovery, path rendering and registration.

A template tree holds a single project directory whose name renders from
``project_slug``. Every file below it becomes a :class:`TemplateItem`: its
path segments are rendered and safety-checked, and render-eligible content is
registered by rendered name in a per-run arena so ``extends``/``include``
directives resolve across files.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Mapping

from jinja2 import TemplateSyntaxError

from ..core.errors import (
    TemplateLayoutError,
    TemplateRenderError,
    UnsafePathError,
    VariableValueError,
)
from ..core.models import TemplateItem
from ..manifest.copy_filter import CopyFilter
from ..manifest.loader import MANIFEST_NAMES
from ..safety.paths import PORTABLE_DEFAULT, is_safe_path_segment
from ..variables.slug import sanitize_slug
from .engine import new_environment, render_string

logger = logging.getLogger(__name__)

PROJECT_SLUG = "project_slug"
HOOKS_DIR = "hooks"
VCS_DIRS = frozenset({".git", ".svn"})

_EXTENDS = re.compile(r"\{%[-+]?\s*extends\b")


@dataclass
class _PendingTemplate:
    name: str
    content: str
    source: Path

    @property
    def has_extends(self) -> bool:
        return bool(_EXTENDS.search(self.content))


def prepare_context(bindings: Mapping[str, Any]) -> dict[str, Any]:
    """Copy bindings for rendering, normalizing ``project_slug``.

    Falls back to ``project_title`` then ``project_name`` when no slug is
    bound.

    Raises:
        VariableValueError: When the slug normalizes to an empty string
    """
    context = dict(bindings)
    source = context.get(PROJECT_SLUG)
    if not isinstance(source, str):
        source = context.get("project_title") or context.get("project_name") or "project"
    slug = sanitize_slug(str(source))
    if not slug:
        raise VariableValueError("Invalid 'project_slug' after normalization: empty")
    context[PROJECT_SLUG] = slug
    return context


def is_project_dir_template(name: str) -> bool:
    return "{{" in name and "}}" in name and PROJECT_SLUG in name


def find_project_dir(template_root: Path) -> str:
    """Return the unrendered name of the single project directory.

    Raises:
        TemplateLayoutError: When there is no such directory, or more than one
    """
    candidates = sorted(
        entry.name
        for entry in template_root.iterdir()
        if entry.is_dir() and not entry.is_symlink() and is_project_dir_template(entry.name)
    )
    if not candidates:
        raise TemplateLayoutError(
            "Main project directory using '{{ project_slug }}' not found at template root"
        )
    if len(candidates) > 1:
        raise TemplateLayoutError(
            "Multiple main project directories detected. "
            "Only one '{{ project_slug }}' directory is supported."
        )
    return candidates[0]


class TemplateRegistry:
    """Owns the template arena and discovered items for a single run."""

    def __init__(
        self,
        template_root: Path,
        copy_filter: CopyFilter,
        *,
        portable: bool = PORTABLE_DEFAULT,
    ) -> None:
        self.template_root = template_root
        self.copy_filter = copy_filter
        self.portable = portable
        self.arena: dict[str, str] = {}
        self.env = new_environment(self.arena)
        self.items: list[TemplateItem] = []
        self.project_dir_template = find_project_dir(template_root)

    def discover(self) -> list[PurePosixPath]:
        """List template-relative paths of every file under the project directory."""
        found: list[PurePosixPath] = []
        project_root = self.template_root / self.project_dir_template
        for dirpath, dirnames, filenames in os.walk(project_root):
            current = Path(dirpath)
            kept = []
            for name in sorted(dirnames):
                if name in VCS_DIRS:
                    continue
                if (current / name).is_symlink():
                    logger.warning("Skipping symlinked directory in template: %s", current / name)
                    continue
                kept.append(name)
            dirnames[:] = kept

            for name in sorted(filenames):
                path = current / name
                if path.is_symlink():
                    logger.warning("Skipping symlink in template: %s", path)
                    continue
                found.append(PurePosixPath(path.relative_to(self.template_root).as_posix()))

        skipped = [
            entry.name
            for entry in self.template_root.iterdir()
            if entry.name not in {self.project_dir_template, HOOKS_DIR, *MANIFEST_NAMES, *VCS_DIRS}
        ]
        if skipped:
            logger.debug("Ignoring content outside the project directory: %s", sorted(skipped))
        return found

    def render_path(self, rel: PurePosixPath, context: Mapping[str, Any]) -> PurePosixPath:
        """Render every segment of a template-relative path.

        Raises:
            TemplateRenderError: When a segment fails to render
            UnsafePathError: When a rendered segment is not a plain name
        """
        rendered: list[str] = []
        for segment in rel.parts:
            try:
                out = render_string(segment, context)
            except Exception as exc:
                raise TemplateRenderError(
                    f"Failed to render path segment {segment!r}: {exc}",
                    source=self.template_root / rel,
                ) from exc
            if not is_safe_path_segment(out, portable=self.portable):
                raise UnsafePathError(f"Unsafe rendered path segment: {out!r} (from {segment!r})")
            rendered.append(out)
        return PurePosixPath(*rendered)

    def build(self, context: Mapping[str, Any]) -> list[TemplateItem]:
        """Discover, render names, classify and register every template file."""
        items: list[TemplateItem] = []
        pending: list[_PendingTemplate] = []
        seen: dict[str, PurePosixPath] = {}

        for rel in self.discover():
            output_path = self.render_path(rel, context)
            name = output_path.as_posix()
            if name in seen:
                raise TemplateLayoutError(
                    f"Template files {seen[name]} and {rel} both render to {name}"
                )
            seen[name] = rel

            source = self.template_root / rel
            inner = PurePosixPath(*rel.parts[1:]).as_posix()
            copy_raw = self.copy_filter.is_match(inner)

            if not copy_raw:
                try:
                    content = source.read_text(encoding="utf-8")
                except UnicodeDecodeError:
                    logger.debug("Copying non-UTF-8 file verbatim: %s", rel)
                    copy_raw = True
                else:
                    pending.append(_PendingTemplate(name=name, content=content, source=source))

            items.append(
                TemplateItem(
                    name=name,
                    output_path=output_path,
                    source_path=source,
                    copy_raw=copy_raw,
                )
            )

        self.register(pending)
        self.items = items
        logger.info(
            "Registered %d template(s), %d raw copy file(s)",
            len(pending),
            sum(1 for item in items if item.copy_raw),
        )
        return items

    def register(self, pending: list[_PendingTemplate]) -> None:
        """Add sources to the arena, bases before templates that extend them."""
        for template in sorted(pending, key=lambda t: t.has_extends):
            self.arena[template.name] = template.content
            try:
                self.env.get_template(template.name)
            except TemplateSyntaxError as exc:
                raise TemplateRenderError(
                    f"Failed to add template {template.name}: {exc}",
                    source=template.source,
                ) from exc

    def render(self, item: TemplateItem, context: Mapping[str, Any]) -> str:
        """Render a registered template file."""
        try:
            return self.env.get_template(item.name).render(**context)
        except Exception as exc:
            raise TemplateRenderError(
                f"Failed to render file {item.source_path}: {exc}",
                source=item.source_path,
            ) from exc

    def project_dir(self, context: Mapping[str, Any]) -> str:
        """Rendered name of the project directory."""
        return self.render_path(PurePosixPath(self.project_dir_template), context).as_posix()
