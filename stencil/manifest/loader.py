"""Template manifest parsing."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from ..core.errors import ManifestError
from ..core.models import Manifest, VariableKind, VariableSpec
from .copy_filter import CopyFilter

logger = logging.getLogger(__name__)

MANIFEST_NAMES = ("stencil.json", "stencil.yaml", "stencil.yml")
PROMPT_KEY = "__prompt__"


def find_manifest(template_root: Path) -> Path | None:
    for name in MANIFEST_NAMES:
        candidate = template_root / name
        if candidate.is_file():
            return candidate
    return None


def _read(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestError(f"Failed to read template manifest: {path}") from exc

    try:
        if path.suffix == ".json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ManifestError(f"Failed to parse template manifest {path.name}: {exc}") from exc


def _choice_spec(name: str, value: dict[str, Any]) -> VariableSpec | None:
    labels = {k: v for k, v in value.items() if k != PROMPT_KEY and isinstance(v, str)}
    if not labels:
        return None
    prompt = value.get(PROMPT_KEY)
    choices = list(labels)
    return VariableSpec(
        name=name,
        kind=VariableKind.ENUMERATION,
        default=choices[0],
        choices=choices,
        choice_labels=labels,
        prompt=prompt if isinstance(prompt, str) else None,
    )


def parse_variable(name: str, value: Any) -> VariableSpec | None:
    """Derive a variable spec from a manifest entry, typed by its value."""
    if isinstance(value, bool):
        return VariableSpec(name=name, kind=VariableKind.BOOLEAN, default=value)
    if isinstance(value, int):
        return VariableSpec(name=name, kind=VariableKind.INTEGER, default=value)
    if isinstance(value, str):
        return VariableSpec(name=name, kind=VariableKind.STRING, default=value)
    if isinstance(value, list):
        choices = [item for item in value if isinstance(item, str)]
        if not choices:
            return None
        return VariableSpec(
            name=name,
            kind=VariableKind.ENUMERATION,
            default=choices[0],
            choices=choices,
        )
    if isinstance(value, dict):
        return _choice_spec(name, value)
    return None


def parse_manifest(data: Any) -> Manifest:
    if data is None:
        return Manifest()
    if not isinstance(data, dict):
        raise ManifestError("Template manifest root must be a mapping")

    copy_without_render = data.get("_copy_without_render", [])
    if not isinstance(copy_without_render, list):
        raise ManifestError("_copy_without_render must be a list of patterns")

    variables: list[VariableSpec] = []
    for key, value in data.items():
        if not isinstance(key, str):
            raise ManifestError(f"Variable names must be strings, got: {key!r}")
        if key.startswith("_"):
            continue
        spec = parse_variable(key, value)
        if spec is None:
            logger.warning("Skipping variable '%s' with unsupported value", key)
            continue
        variables.append(spec)

    return Manifest(
        variables=variables,
        copy_without_render=[p for p in copy_without_render if isinstance(p, str)],
    )


def load_manifest(template_root: Path) -> Manifest:
    """Load the manifest at the template root.

    Returns:
        Parsed manifest, or an empty one when the template has none
    """
    path = find_manifest(template_root)
    if path is None:
        logger.debug("No manifest in %s", template_root)
        return Manifest()

    manifest = parse_manifest(_read(path))
    logger.debug(
        "Loaded %s: %d variable(s), %d copy pattern(s)",
        path.name,
        len(manifest.variables),
        len(manifest.copy_without_render),
    )
    return manifest


def compile_copy_filter(manifest: Manifest) -> CopyFilter:
    return CopyFilter.compile(manifest.copy_without_render)
