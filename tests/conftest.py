from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Callable, Union

import pytest

Content = Union[str, bytes]

PROJECT_DIR = "{{ project_slug }}"


def write_tree(root: Path, files: dict[str, Content]) -> None:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")


def make_symlink(link: Path, target: Path, target_is_directory: bool = False) -> None:
    try:
        os.symlink(target, link, target_is_directory=target_is_directory)
    except (OSError, NotImplementedError):
        pytest.skip("symlinks are not supported here")


@pytest.fixture
def make_template(tmp_path: Path) -> Callable[..., Path]:
    """Build a template tree with an optional stencil.json manifest."""

    def _make(
        files: dict[str, Content],
        manifest: dict | None = None,
        name: str = "template",
    ) -> Path:
        root = tmp_path / name
        root.mkdir()
        write_tree(root, files)
        if manifest is not None:
            (root / "stencil.json").write_text(json.dumps(manifest), encoding="utf-8")
        return root

    return _make


@pytest.fixture
def isolated_tempdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Route tempfile into a private directory so leftovers can be inspected."""
    import tempfile

    scratch = tmp_path / "scratch"
    scratch.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(scratch))
    return scratch
