"""Bind-mount facility.

This module passes host directories into an image tree through
``nullfs`` mounts and releases them again.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, Sequence

from core.logging_config import get_logger
from store.command_runner import CommandRunner, run_command

_LOGGER = get_logger(__name__)


class MountFacility(Protocol):
    """Bind-mount operations consumed by the builder."""

    def mount(self, source: Path, target: Path, options: Sequence[str] = ()) -> None: ...

    def unmount(self, target: Path, force: bool = False) -> None: ...


class NullfsMounter:
    """Mount facility implemented with ``mount -t nullfs`` and ``umount``."""

    def __init__(self, runner: CommandRunner = run_command) -> None:
        self._run = runner

    def mount(self, source: Path, target: Path, options: Sequence[str] = ()) -> None:
        """Mount ``source`` onto ``target``.

        Args:
            source: Host directory to pass through.
            target: Existing directory inside the image tree.
            options: Mount options such as ``ro``.
        """
        command = ["mount", "-t", "nullfs"]
        if options:
            command.extend(["-o", ",".join(options)])
        command.extend([str(source), str(target)])
        self._run(command)
        _LOGGER.info("mount_attached", source=str(source), target=str(target), options=list(options))

    def unmount(self, target: Path, force: bool = False) -> None:
        """Release the mount at ``target``."""
        command = ["umount"]
        if force:
            command.append("-f")
        command.append(str(target))
        self._run(command)
        _LOGGER.info("mount_released", target=str(target), force=force)
