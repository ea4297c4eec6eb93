"""Main CLI application."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from ..core.errors import StencilError
from ..core.settings import Settings
from ..hooks.runner import ScriptHookRunner
from ..manifest.loader import load_manifest
from ..rendering.materializer import Materializer
from ..sources.loader import open_template
from ..variables.prompts import collect_interactive
from ..variables.resolver import initial_bindings, resolve_defaults
from .parsers import parse_overrides

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="stencil",
    help="Materialize a Jinja2 project template into a concrete project tree.",
    no_args_is_help=True,
)

SourceArg = Annotated[
    str,
    typer.Argument(help="Template directory or git URL.", metavar="SOURCE"),
]
VarsOption = Annotated[
    Optional[list[str]],
    typer.Option(
        "--var",
        help="Set a variable without prompting (format: KEY=VALUE). Repeatable.",
        metavar="KEY=VALUE",
    ),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable verbose logging."),
]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )


@app.command()
def generate(
    source: SourceArg,
    output: Annotated[
        Optional[Path],
        typer.Option(
            "--output",
            "-o",
            help="Output root directory (default: STENCIL_OUTPUT_DIR or cwd).",
            metavar="DIR",
        ),
    ] = None,
    variables: VarsOption = None,
    no_input: Annotated[
        bool,
        typer.Option("--no-input", help="Use defaults instead of prompting."),
    ] = False,
    no_hooks: Annotated[
        bool,
        typer.Option("--no-hooks", help="Do not run template hook scripts."),
    ] = False,
    verbose: VerboseOption = False,
) -> None:
    """Render a template into the output directory."""
    _configure_logging(verbose)
    settings = Settings()
    output_root = output if output is not None else settings.output_dir
    interactive = not (no_input or settings.no_input)
    run_hooks = settings.run_hooks and not no_hooks

    logger.debug("Starting stencil")
    try:
        with open_template(source, clone_depth=settings.clone_depth) as template_root:
            manifest = load_manifest(template_root)
            overrides = parse_overrides(variables or [], manifest)
            materializer = Materializer(
                template_root,
                output_root,
                manifest,
                overrides=overrides,
                hooks=ScriptHookRunner(template_root) if run_hooks else None,
                collect=collect_interactive if interactive else None,
                portable=settings.portable_names,
            )
            result = materializer.run()
    except StencilError as exc:
        logger.error("Error: %s", exc)
        raise typer.Exit(code=1) from exc

    logger.debug(f"Completed: {len(result.files)} file(s) written")


@app.command("variables")
def show_variables(
    source: SourceArg,
    variables: VarsOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Print each template variable with its resolved default."""
    _configure_logging(verbose)
    settings = Settings()

    try:
        with open_template(source, clone_depth=settings.clone_depth) as template_root:
            manifest = load_manifest(template_root)
            overrides = parse_overrides(variables or [], manifest)
            specs = manifest.variables
            bindings = {**initial_bindings(specs), **overrides}
            resolved = resolve_defaults(specs, bindings, pinned=overrides)
    except StencilError as exc:
        logger.error("Error: %s", exc)
        raise typer.Exit(code=1) from exc

    for spec in specs:
        typer.echo(f"{spec.name} ({spec.kind.value}) = {resolved[spec.name]!r}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
