from __future__ import annotations

import logging
import shutil
import subprocess
from typing import Iterable, Literal

logger = logging.getLogger(__name__)


def run_logged(
    cmd: Iterable[str],
    *,
    check: bool = True,
    echo: Literal["always", "on_error", "never"] = "on_error",
    **kwargs: object,
) -> subprocess.CompletedProcess[str]:
    """
    Run a subprocess with captured output, logging it according to ``echo``.
    Returns the CompletedProcess; raises CalledProcessError when check=True.
    """
    cmd_list = list(cmd)
    logger.debug("Running: %s", " ".join(cmd_list))
    result = subprocess.run(
        cmd_list,
        capture_output=True,
        text=True,
        **kwargs,  # type: ignore[arg-type]
    )
    if echo == "always" or (echo == "on_error" and result.returncode != 0):
        for stream in (result.stdout, result.stderr):
            if stream and stream.strip():
                logger.info("%s", stream.rstrip())
    if check and result.returncode != 0:
        raise subprocess.CalledProcessError(
            result.returncode, result.args, output=result.stdout, stderr=result.stderr
        )
    return result


def tool_available(name: str) -> bool:
    return shutil.which(name) is not None
