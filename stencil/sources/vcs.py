"""Best-effort version-control refresh of a template checkout."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Any, Callable

from .._utils import run_logged, tool_available

logger = logging.getLogger(__name__)


def has_gitmodules(repo: Path) -> bool:
    return (repo / ".gitmodules").exists()


def has_svn_meta(repo: Path) -> bool:
    return (repo / ".svn").exists()


def git_submodule_sync(repo: Path, recursive: bool = True) -> None:
    cmd = ["git", "-C", str(repo), "submodule", "sync"]
    if recursive:
        cmd.append("--recursive")
    run_logged(cmd)


def git_submodule_update_init(
    repo: Path, recursive: bool = True, jobs: int | None = None
) -> None:
    cmd = ["git", "-C", str(repo), "submodule", "update", "--init"]
    if recursive:
        cmd.append("--recursive")
    if jobs is not None:
        cmd.append(f"--jobs={jobs}")
    run_logged(cmd)


def svn_update(repo: Path) -> None:
    run_logged(["svn", "update", str(repo)])


def _attempt(description: str, tool: str, action: Callable[..., None], *args: Any) -> bool:
    if not tool_available(tool):
        logger.warning("%s skipped: %s is not available on PATH", description, tool)
        return False
    try:
        action(*args)
    except (subprocess.CalledProcessError, OSError) as exc:
        logger.warning("%s failed: %s", description, exc)
        return False
    return True


def sync_working_copy(repo: Path) -> None:
    """Refresh submodules and SVN metadata in place.

    Failures are logged as warnings and never abort the run.
    """
    if has_gitmodules(repo):
        if _attempt("git submodule sync", "git", git_submodule_sync, repo):
            logger.debug("Submodules synced in %s", repo)
        if _attempt("git submodule update --init", "git", git_submodule_update_init, repo):
            logger.debug("Submodules initialized in %s", repo)
    if has_svn_meta(repo):
        if _attempt("svn update", "svn", svn_update, repo):
            logger.debug("SVN working copy updated: %s", repo)
