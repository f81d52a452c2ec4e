"""Workdir instruction.

Moves the manifest working directory and checkpoints the image dataset
before doing so. Reverting rolls the whole dataset back to the
checkpoint, which also erases changes made by any later step.
"""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Any

from builder.build_context import BuildContext
from builder.build_step import BuildStep, container_path
from core.constants import DEFAULT_WORKDIR
from core.errors import JmakeConfigurationError, JmakeStepExecutionError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


def checkpoint_name(index: int, directory: Path) -> str:
    """Return the deterministic snapshot name of a workdir checkpoint."""
    return str(uuid.uuid5(uuid.NAMESPACE_DNS, f"{index} {directory}"))


class WorkdirStep(BuildStep):
    """Checkpoint the dataset, then create and enter a working directory."""

    instruction = "workdir"

    def __init__(self, context: BuildContext) -> None:
        super().__init__(context)
        self._snapshot_name: str | None = None
        self._previous_workdir: str | None = None

    @classmethod
    def parse_args(cls, args: Any) -> str:
        """Accept one relative path; root when omitted."""
        if args is None:
            return DEFAULT_WORKDIR
        if isinstance(args, str):
            return args or DEFAULT_WORKDIR
        raise JmakeConfigurationError(
            f"Invalid workdir argument {args!r}. Use a single path string."
        )

    @property
    def snapshot_name(self) -> str | None:
        return self._snapshot_name

    def perform(self) -> None:
        try:
            self._enter_workdir()
        except BaseException:
            self._discard_partial_state()
            raise

    def revert(self) -> None:
        if self._snapshot_name is None:
            return
        store = self._context.host.store
        store.rollback_to_snapshot(self._context.dataset, self._snapshot_name)
        store.destroy(self._context.dataset, self._snapshot_name)
        if self._previous_workdir is not None:
            self._context.manifest.workdir = self._previous_workdir
        _LOGGER.info(
            "workdir_checkpoint_restored",
            dataset=self._context.dataset,
            snapshot=self._snapshot_name,
        )
        self._snapshot_name = None

    def _enter_workdir(self) -> None:
        manifest = self._context.manifest
        workdir = container_path(manifest.workdir, self._parsed_args)
        directory = self._context.rootfs_path / workdir.lstrip("/")
        snapshot_name = checkpoint_name(self._context.index, directory)
        self._context.host.store.take_snapshot(self._context.dataset, snapshot_name)
        self._snapshot_name = snapshot_name
        self._previous_workdir = manifest.workdir
        _LOGGER.info("workdir_checkpoint_taken", workdir=workdir, snapshot=snapshot_name)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise JmakeStepExecutionError(
                f"Failed to create workdir {workdir} at {directory}: {error}. "
                "Check that no file occupies the path in the base image."
            ) from error
        manifest.workdir = workdir
