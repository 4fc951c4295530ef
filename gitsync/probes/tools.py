"""Subprocess execution utilities."""

import logging
import os
import subprocess
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

# Env vars that are inherited from the os; everything else is dropped
ALLOWED_ENV_VARS = ["PATH", "http_proxy", "https_proxy", "no_proxy", "HOME", "GNUPGHOME"]

# Never let a child process sit waiting on a credentials prompt
FORCED_ENV = {"GIT_TERMINAL_PROMPT": "0"}


class SubprocessError(Exception):
    """Raised when subprocess fails."""

    def __init__(self, message: str, returncode: int = 1, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class CommandTimeoutError(SubprocessError):
    """Raised when subprocess runs past its timeout and is killed."""

    def __init__(self, message: str, timeout: Optional[float] = None):
        super().__init__(message, returncode=-1)
        self.timeout = timeout


def restricted_env(extra: Optional[dict[str, str]] = None) -> dict[str, str]:
    """
    Build the environment for a child process.

    Args:
        extra: Additional variables to set

    Returns:
        Allow-listed variables from os.environ plus the forced settings
    """
    env = dict(FORCED_ENV)
    for key in ALLOWED_ENV_VARS:
        value = os.environ.get(key)
        if value is not None:
            env[key] = value
    if extra:
        env.update(extra)
    return env


def run_command(
    cmd: list[str],
    cwd: Optional[Union[str, Path]] = None,
    timeout: Optional[float] = None,
    env: Optional[dict[str, str]] = None,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    """
    Run a subprocess command and capture its output.

    Args:
        cmd: Command and arguments as list (safe, no shell injection)
        cwd: Working directory (optional)
        timeout: Seconds before the process is killed (None waits forever)
        env: Extra environment variables on top of the restricted set
        check: Raise exception on non-zero exit

    Returns:
        CompletedProcess with results

    Raises:
        SubprocessError: If command fails and check=True
        CommandTimeoutError: If the timeout expires
    """
    logger.debug(f"Running: {' '.join(cmd)} (cwd={cwd})")

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=False,
            cwd=cwd,
            timeout=timeout,
            env=restricted_env(env),
        )
    except subprocess.TimeoutExpired as e:
        error_msg = f"Command timed out after {timeout}s: {' '.join(cmd)}"
        logger.warning(error_msg)
        raise CommandTimeoutError(error_msg, timeout=timeout) from e

    if check and result.returncode != 0:
        error_msg = f"Command failed: {' '.join(cmd)}"
        if result.stderr:
            error_msg += f"\n{result.stderr}"
        logger.debug(error_msg)
        raise SubprocessError(error_msg, returncode=result.returncode, stderr=result.stderr)

    logger.debug(f"Exit code: {result.returncode}")
    return result
