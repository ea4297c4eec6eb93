from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import Any, Callable

import pytest

from stencil.core.errors import (
    GlobPatternError,
    SymlinkTraversalError,
    TemplateRenderError,
    UnsafePathError,
)
from stencil.core.models import RunState
from stencil.hooks.runner import ScriptHookRunner
from stencil.manifest.loader import load_manifest
from stencil.rendering.materializer import Materializer
from tests.conftest import PROJECT_DIR, make_symlink

BASIC_FILES = {
    f"{PROJECT_DIR}/README.md": "# {{ project_slug }}\n{{ greeting }}, world\n",
}
BASIC_MANIFEST = {"project_slug": "placeholder", "greeting": "hello"}


def _materializer(template: Path, output: Path, **kwargs: Any) -> Materializer:
    kwargs.setdefault("portable", False)
    return Materializer(template, output, load_manifest(template), **kwargs)


def test_end_to_end_renders_single_project_directory(
    make_template: Callable[..., Path], tmp_path: Path
) -> None:
    template = make_template(BASIC_FILES, manifest=BASIC_MANIFEST)
    output = tmp_path / "out"

    materializer = _materializer(
        template, output, overrides={"project_slug": "demo-app", "greeting": "hi"}
    )
    result = materializer.run()

    assert [p.name for p in output.iterdir()] == ["demo_app"]
    readme = (output / "demo_app" / "README.md").read_text()
    assert readme == "# demo_app\nhi, world\n"
    assert "{{" not in readme
    assert result.project_dir == "demo_app"
    assert result.files == [PurePosixPath("demo_app/README.md")]
    assert result.bindings["project_slug"] == "demo_app"
    assert materializer.state is RunState.DONE


def test_derived_defaults_flow_into_output(
    make_template: Callable[..., Path], tmp_path: Path
) -> None:
    template = make_template(
        {f"{PROJECT_DIR}/pkg.txt": "{{ package }}"},
        manifest={
            "project_name": "Fancy Tool",
            "project_slug": "{{ project_name|lower|replace(' ', '-') }}",
            "package": "{{ project_slug }}_pkg",
        },
    )

    _materializer(template, tmp_path / "out").run()

    assert (tmp_path / "out" / "fancy_tool" / "pkg.txt").read_text() == "fancy-tool_pkg"


def test_copy_raw_file_is_byte_identical(
    make_template: Callable[..., Path], tmp_path: Path
) -> None:
    raw = b"{{ looks_like_jinja }}\r\n{% raw %}\x00\x01"
    template = make_template(
        {f"{PROJECT_DIR}/static/data.tpl": raw, **BASIC_FILES},
        manifest={**BASIC_MANIFEST, "_copy_without_render": ["static/**"]},
    )

    _materializer(template, tmp_path / "out", overrides={"project_slug": "demo"}).run()

    assert (tmp_path / "out" / "demo" / "static" / "data.tpl").read_bytes() == raw


def test_file_mode_is_preserved(make_template: Callable[..., Path], tmp_path: Path) -> None:
    template = make_template(
        {f"{PROJECT_DIR}/run.sh": "#!/bin/sh\necho {{ project_slug }}\n"},
        manifest=BASIC_MANIFEST,
    )
    (template / PROJECT_DIR / "run.sh").chmod(0o755)

    _materializer(template, tmp_path / "out").run()

    assert (tmp_path / "out" / "placeholder" / "run.sh").stat().st_mode & 0o111


def test_render_failure_leaves_destination_untouched(
    make_template: Callable[..., Path], tmp_path: Path, isolated_tempdir: Path
) -> None:
    template = make_template(
        {**BASIC_FILES, f"{PROJECT_DIR}/broken.txt": "{{ undefined_name }}"},
        manifest=BASIC_MANIFEST,
    )
    output = tmp_path / "out"
    materializer = _materializer(template, output)

    with pytest.raises(TemplateRenderError):
        materializer.run()

    assert not output.exists()
    assert list(isolated_tempdir.iterdir()) == []
    assert materializer.state is RunState.ABORTED


def test_staging_is_removed_after_success(
    make_template: Callable[..., Path], tmp_path: Path, isolated_tempdir: Path
) -> None:
    template = make_template(BASIC_FILES, manifest=BASIC_MANIFEST)

    _materializer(template, tmp_path / "out").run()

    assert list(isolated_tempdir.iterdir()) == []


def test_invalid_glob_fails_before_any_work(
    make_template: Callable[..., Path], tmp_path: Path
) -> None:
    template = make_template(
        BASIC_FILES, manifest={**BASIC_MANIFEST, "_copy_without_render": ["*.[ch]"]}
    )
    output = tmp_path / "out"
    calls: list[str] = []

    def hooks(stage, bindings, context):  # type: ignore[no-untyped-def]
        calls.append(stage.value)
        raise AssertionError("hooks must not run")

    with pytest.raises(GlobPatternError):
        _materializer(template, output, hooks=hooks).run()

    assert calls == []
    assert not output.exists()


def test_existing_files_outside_project_survive(
    make_template: Callable[..., Path], tmp_path: Path
) -> None:
    template = make_template(BASIC_FILES, manifest=BASIC_MANIFEST)
    output = tmp_path / "out"
    output.mkdir()
    (output / "keep.txt").write_text("mine")

    _materializer(template, output).run()

    assert (output / "keep.txt").read_text() == "mine"
    assert (output / "placeholder" / "README.md").exists()


def test_promotion_refuses_symlink_in_destination(
    make_template: Callable[..., Path], tmp_path: Path
) -> None:
    template = make_template(BASIC_FILES, manifest=BASIC_MANIFEST)
    output = tmp_path / "out"
    output.mkdir()
    outside = tmp_path / "outside"
    outside.mkdir()
    make_symlink(output / "placeholder", outside, target_is_directory=True)

    with pytest.raises(SymlinkTraversalError):
        _materializer(template, output).run()

    assert list(outside.iterdir()) == []


def test_hooks_run_in_order_and_write_under_project_dir(
    make_template: Callable[..., Path], tmp_path: Path
) -> None:
    template = make_template(
        {
            **BASIC_FILES,
            "hooks/pre_prompt.py": (
                "def run(vars, ctx):\n"
                "    return {'vars': {'greeting': 'howdy', 'unknown': 1}}\n"
            ),
            "hooks/pre_gen_project.py": (
                "def run(vars, ctx):\n"
                "    return {\n"
                "        'vars': {'license': 'MIT', 'build_id': 7},\n"
                "        'files': [{'path': 'bootstrap/config.json', 'content': vars['greeting']}],\n"
                "    }\n"
            ),
            "hooks/post_gen_project.py": (
                "def run(vars, ctx):\n"
                "    return {'files': [{'path': 'POST.md', 'content': ctx['stage'] + ':' + vars['license']}]}\n"
            ),
        },
        manifest={**BASIC_MANIFEST, "license": "GPL"},
    )
    output = tmp_path / "out"

    result = _materializer(template, output, hooks=ScriptHookRunner(template)).run()

    project = output / "placeholder"
    assert (project / "README.md").read_text() == "# placeholder\nhowdy, world\n"
    assert (project / "bootstrap" / "config.json").read_text() == "howdy"
    assert (project / "POST.md").read_text() == "post_gen_project:MIT"
    assert result.bindings["license"] == "MIT"
    assert "unknown" not in result.bindings
    assert "build_id" not in result.bindings
    assert not (output / "hooks").exists()


def test_unsafe_hook_path_aborts_without_touching_destination(
    make_template: Callable[..., Path], tmp_path: Path
) -> None:
    template = make_template(
        {
            **BASIC_FILES,
            "hooks/post_gen_project.py": (
                "def run(vars, ctx):\n"
                "    return {'files': [{'path': '../escape.txt', 'content': 'x'}]}\n"
            ),
        },
        manifest=BASIC_MANIFEST,
    )
    output = tmp_path / "out"

    with pytest.raises(UnsafePathError):
        _materializer(template, output, hooks=ScriptHookRunner(template)).run()

    assert not output.exists()
    assert not (tmp_path / "escape.txt").exists()


def test_rendered_file_overwriting_hook_output_warns(
    make_template: Callable[..., Path],
    tmp_path: Path,
    caplog: pytest.LogCaptureFixture,
) -> None:
    template = make_template(
        {
            **BASIC_FILES,
            "hooks/pre_gen_project.py": (
                "def run(vars, ctx):\n"
                "    return {'files': [{'path': 'README.md', 'content': 'from hook'}]}\n"
            ),
        },
        manifest=BASIC_MANIFEST,
    )
    output = tmp_path / "out"

    with caplog.at_level(logging.WARNING):
        _materializer(template, output, hooks=ScriptHookRunner(template)).run()

    assert (output / "placeholder" / "README.md").read_text().startswith("# placeholder")
    assert "overwrites hook output" in caplog.text


def test_collector_receives_fixed_and_skipped_names(
    make_template: Callable[..., Path], tmp_path: Path
) -> None:
    template = make_template(BASIC_FILES, manifest=BASIC_MANIFEST)
    seen: dict[str, Any] = {}

    def collect(specs, bindings, *, fixed, skip):  # type: ignore[no-untyped-def]
        seen.update(fixed=set(fixed), skip=set(skip), bindings=dict(bindings))
        return {**bindings, "greeting": "typed"}

    _materializer(
        template, tmp_path / "out", overrides={"project_slug": "cli"}, collect=collect
    ).run()

    assert seen["skip"] == {"project_slug"}
    assert seen["fixed"] == {"project_slug"}
    assert seen["bindings"] == {"project_slug": "cli", "greeting": "hello"}
    assert "typed, world" in (tmp_path / "out" / "cli" / "README.md").read_text()


def test_runtime_render_error_aborts_and_names_file(
    make_template: Callable[..., Path], tmp_path: Path
) -> None:
    template = make_template(
        {**BASIC_FILES, f"{PROJECT_DIR}/calc.txt": "{{ 1 // 0 }}"},
        manifest=BASIC_MANIFEST,
    )
    output = tmp_path / "out"
    materializer = _materializer(template, output)

    with pytest.raises(TemplateRenderError, match="calc.txt"):
        materializer.run()

    assert materializer.state is RunState.ABORTED
    assert not output.exists()


def test_unexpected_error_still_marks_run_aborted(
    make_template: Callable[..., Path], tmp_path: Path
) -> None:
    template = make_template(BASIC_FILES, manifest=BASIC_MANIFEST)

    def hooks(stage, bindings, context):  # type: ignore[no-untyped-def]
        raise RuntimeError("hook runner crashed")

    materializer = _materializer(template, tmp_path / "out", hooks=hooks)

    with pytest.raises(RuntimeError, match="hook runner crashed"):
        materializer.run()

    assert materializer.state is RunState.ABORTED


@pytest.mark.parametrize("path", ["/etc/passwd", "a/../../escape.txt", "sub//x.txt"])
def test_hook_paths_are_checked_before_resolution(
    make_template: Callable[..., Path], tmp_path: Path, path: str
) -> None:
    template = make_template(
        {
            **BASIC_FILES,
            "hooks/pre_gen_project.py": (
                "def run(vars, ctx):\n"
                f"    return {{'files': [{{'path': {path!r}, 'content': 'x'}}]}}\n"
            ),
        },
        manifest=BASIC_MANIFEST,
    )
    output = tmp_path / "out"

    with pytest.raises(UnsafePathError, match="pre_gen_project hook returned unsafe path"):
        _materializer(template, output, hooks=ScriptHookRunner(template)).run()

    assert not output.exists()
