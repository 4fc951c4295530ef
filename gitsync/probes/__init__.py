"""Probes for external tools."""

from gitsync.probes.tools import (
    CommandTimeoutError,
    SubprocessError,
    run_command,
)

__all__ = [
    "CommandTimeoutError",
    "SubprocessError",
    "run_command",
]
