"""Resolution of untrusted relative paths under a fixed canonical root.

Every write made during a run goes through :class:`PathSafetyGuard`: rendered
template names, hook-supplied file paths, and the staging-to-destination
promotion. A guard captures the symlink-resolved root once, then refuses any
relative path that uses traversal markers, absolute anchors, reserved names,
or descends through an existing symlink.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePath, PureWindowsPath

from ..core.errors import RootEscapeError, SymlinkTraversalError, UnsafePathError

logger = logging.getLogger(__name__)

_WINDOWS_RESERVED = frozenset(
    {"CON", "PRN", "AUX", "NUL"}
    | {f"COM{i}" for i in range(1, 10)}
    | {f"LPT{i}" for i in range(1, 10)}
)
_WINDOWS_FORBIDDEN = frozenset('<>:"|?*')

PORTABLE_DEFAULT = os.name == "nt"


def is_safe_path_segment(segment: str, *, portable: bool = PORTABLE_DEFAULT) -> bool:
    """Return True when a single path segment is a plain file or directory name.

    Args:
        segment: Candidate name
        portable: Also apply Windows rules (reserved device names, trailing
            dot or space, and characters such as ``:``)
    """
    if not segment or segment in {".", ".."}:
        return False
    if "/" in segment or "\\" in segment or "\x00" in segment:
        return False
    if portable:
        if any(ch in _WINDOWS_FORBIDDEN or ord(ch) < 32 for ch in segment):
            return False
        if segment.endswith((" ", ".")):
            return False
        # Reserved even with an extension, e.g. "nul.txt"
        if segment.split(".", 1)[0].upper() in _WINDOWS_RESERVED:
            return False
    return True


def _split(rel: str | PurePath, portable: bool) -> list[str]:
    text = rel.as_posix() if isinstance(rel, PurePath) else str(rel)
    text = text.replace("\\", "/")
    if not text:
        raise UnsafePathError("Empty relative path")
    if text.startswith("/") or (portable and PureWindowsPath(text).drive):
        raise UnsafePathError(f"Absolute path not allowed: {text}")
    return text.split("/")


def is_safe_rel_path(rel: str | PurePath, *, portable: bool = PORTABLE_DEFAULT) -> bool:
    try:
        segments = _split(rel, portable)
    except UnsafePathError:
        return False
    return all(is_safe_path_segment(seg, portable=portable) for seg in segments)


class PathSafetyGuard:
    """Resolves relative paths under a canonical root captured at creation.

    The root must already exist; its symlink-resolved location becomes the
    trust boundary for every later :meth:`resolve` call.
    """

    def __init__(self, root: Path, *, portable: bool = PORTABLE_DEFAULT) -> None:
        self.canonical_root = Path(root).resolve(strict=True)
        self.portable = portable

    def check_segment(self, segment: str) -> str:
        if not is_safe_path_segment(segment, portable=self.portable):
            raise UnsafePathError(f"Unsafe path segment: {segment!r}")
        return segment

    def resolve(self, rel: str | PurePath) -> Path:
        """Turn a relative path into an absolute path under the canonical root.

        Raises:
            UnsafePathError: On empty, absolute, or traversing components
            SymlinkTraversalError: When any existing component is a symlink
            RootEscapeError: When the existing target resolves outside the root
        """
        current = self.canonical_root
        for segment in _split(rel, self.portable):
            self.check_segment(segment)
            current = current / segment
            if os.path.lexists(current) and current.is_symlink():
                raise SymlinkTraversalError(
                    f"Refusing to traverse symlink component: {current}"
                )

        if current.exists():
            resolved = current.resolve()
            if not resolved.is_relative_to(self.canonical_root):
                raise RootEscapeError(f"Resolved path escapes root: {current}")
        return current

    def __repr__(self) -> str:
        return f"PathSafetyGuard({str(self.canonical_root)!r})"
