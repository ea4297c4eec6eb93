"""Template acquisition into a private working copy."""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .._utils import run_logged, tool_available
from ..core.errors import TemplateSourceError
from .vcs import sync_working_copy

logger = logging.getLogger(__name__)

_URL_PREFIXES = ("http://", "https://", "ssh://", "git@", "git://")
_TRANSIENT_MARKERS = (
    "could not resolve host",
    "connection timed out",
    "connection reset",
    "operation timed out",
    "early eof",
    "the remote end hung up unexpectedly",
    "temporary failure in name resolution",
)


class TransientCloneError(Exception):
    """Raised when git clone fails for a reason worth retrying."""


def is_remote(source: str) -> bool:
    return source.startswith(_URL_PREFIXES) or source.endswith(".git")


def _is_transient(exc: subprocess.CalledProcessError) -> bool:
    message = ((exc.stderr or "") + (exc.output or "")).lower()
    return any(marker in message for marker in _TRANSIENT_MARKERS)


def _log_clone_retry(retry_state: RetryCallState) -> None:
    attempt = retry_state.attempt_number
    sleep_for = (
        f"; waiting {retry_state.next_action.sleep:.0f}s"
        if retry_state.next_action and retry_state.next_action.sleep is not None
        else ""
    )
    logger.warning("git clone: retrying after network failure (attempt %d/3)%s", attempt, sleep_for)


@retry(
    reraise=True,
    retry=retry_if_exception_type(TransientCloneError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    before_sleep=_log_clone_retry,
)
def clone_repository(url: str, dest: Path, depth: int = 1) -> None:
    if dest.exists():
        shutil.rmtree(dest)
    try:
        run_logged(["git", "clone", "--depth", str(depth), url, str(dest)])
    except subprocess.CalledProcessError as exc:
        if _is_transient(exc):
            raise TransientCloneError(str(exc)) from exc
        raise


def copy_template(src_root: Path, dest: Path) -> None:
    """Copy a template tree, excluding VCS metadata and keeping symlinks as links."""
    shutil.copytree(
        src_root,
        dest,
        symlinks=True,
        ignore=shutil.ignore_patterns(".git", ".svn"),
    )


@contextmanager
def open_template(source: str, *, clone_depth: int = 1) -> Iterator[Path]:
    """Yield a private working copy of a local or remote template.

    Every temporary directory created here is removed when the context exits.

    Raises:
        TemplateSourceError: When the template cannot be cloned or found
    """
    with tempfile.TemporaryDirectory(prefix="stencil-template-") as tmp:
        workdir = Path(tmp)
        if is_remote(source):
            if not tool_available("git"):
                raise TemplateSourceError("git is not available on PATH")
            origin = workdir / "repo"
            logger.info("Cloning template: %s", source)
            try:
                clone_repository(source, origin, depth=clone_depth)
            except (TransientCloneError, subprocess.CalledProcessError, OSError) as exc:
                raise TemplateSourceError(f"git clone failed for: {source}") from exc
        else:
            origin = Path(source).expanduser()
            if not origin.is_dir():
                raise TemplateSourceError(f"Template path does not exist: {origin}")

        sync_working_copy(origin)

        template = workdir / "template"
        try:
            copy_template(origin, template)
        except (OSError, shutil.Error) as exc:
            raise TemplateSourceError(f"Failed to copy template {origin}: {exc}") from exc
        logger.debug("Template working copy: %s", template)
        yield template
