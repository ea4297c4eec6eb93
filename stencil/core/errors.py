"""Exception hierarchy for materialization failures."""

from __future__ import annotations

from pathlib import Path


class StencilError(Exception):
    """Base class for every fatal materialization error."""


class ManifestError(StencilError):
    """Raised when the template manifest cannot be parsed."""


class GlobPatternError(StencilError):
    """Raised when a copy-without-render pattern is invalid."""


class TemplateLayoutError(StencilError):
    """Raised when the template tree does not have a usable project directory."""


class VariableValueError(StencilError):
    """Raised when a supplied variable value does not fit its kind."""


class TemplateSourceError(StencilError):
    """Raised when the template cannot be acquired."""


class PathSafetyError(StencilError):
    """Raised when a path could write outside the output root."""


class UnsafePathError(PathSafetyError):
    """Raised for empty, reserved, or traversing path segments."""


class SymlinkTraversalError(PathSafetyError):
    """Raised when resolution would descend through a symlink."""


class RootEscapeError(PathSafetyError):
    """Raised when a resolved path lies outside the canonical root."""


class TemplateRenderError(StencilError):
    """Raised when a template file or path segment fails to render."""

    def __init__(self, message: str, source: Path | str | None = None) -> None:
        super().__init__(message)
        self.source = source


class HookError(StencilError):
    """Raised when an extension hook fails or returns malformed output."""


class OutputWriteError(StencilError):
    """Raised when staging or promotion cannot write a file."""
