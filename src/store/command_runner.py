"""External host command execution.

This module runs host tools such as ``zfs``, ``mount`` and ``jail`` and
maps non-zero exits onto domain errors with the captured stderr.
"""

from __future__ import annotations

import subprocess
from typing import Callable, Sequence

from core.errors import JmakeCommandError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)

CommandRunner = Callable[[Sequence[str]], str]


def run_command(command: Sequence[str]) -> str:
    """Run a host command and return its standard output.

    Args:
        command: Argument vector, program first.

    Returns:
        Captured stdout with trailing whitespace removed.

    Raises:
        JmakeCommandError: If the program is missing or exits non-zero.
    """
    argv = [str(part) for part in command]
    _LOGGER.debug("command_started", argv=argv)
    try:
        result = subprocess.run(argv, check=False, capture_output=True, text=True)
    except OSError as error:
        raise JmakeCommandError(
            f"Failed to execute '{argv[0]}': {error}. Check that the tool is installed and on PATH."
        ) from error
    if result.returncode != 0:
        stderr = result.stderr.strip() or result.stdout.strip()
        raise JmakeCommandError(
            f"Command '{' '.join(argv)}' exited with status {result.returncode}: {stderr}"
        )
    return result.stdout.rstrip()
