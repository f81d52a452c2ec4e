"""Copy-on-write dataset and snapshot store.

This module exposes the dataset operations the builder needs behind a
small protocol, and implements it on top of the ``zfs`` command.
"""

from __future__ import annotations

from typing import Protocol

from core.logging_config import get_logger
from store.command_runner import CommandRunner, run_command

_LOGGER = get_logger(__name__)


class SnapshotStore(Protocol):
    """Copy-on-write dataset operations consumed by the builder."""

    def exists(self, name: str) -> bool: ...

    def get_property(self, name: str, key: str) -> str: ...

    def clone_from_snapshot(self, source: str, snapshot: str, new_name: str) -> None: ...

    def take_snapshot(self, dataset: str, name: str) -> None: ...

    def rollback_to_snapshot(self, dataset: str, name: str) -> None: ...

    def destroy(self, dataset: str, snapshot: str | None = None) -> None: ...

    def ensure_dataset(self, name: str) -> None: ...

    def ensure_snapshot(self, dataset: str, name: str) -> None: ...


class ZfsSnapshotStore:
    """Snapshot store implementation backed by the ``zfs`` command.

    Datasets are addressed by hierarchical names such as ``zroot/a/b``;
    snapshots by ``dataset@name``.
    """

    def __init__(self, runner: CommandRunner = run_command) -> None:
        self._run = runner

    def exists(self, name: str) -> bool:
        """Return whether a dataset or snapshot exists."""
        output = self._run(["zfs", "list", "-H", "-o", "name", "-t", "all"])
        return name in output.splitlines()

    def get_property(self, name: str, key: str) -> str:
        """Return one property value of a dataset, e.g. its mountpoint."""
        return self._run(["zfs", "get", "-H", "-o", "value", key, name])

    def clone_from_snapshot(self, source: str, snapshot: str, new_name: str) -> None:
        """Clone ``source@snapshot`` into a new dataset."""
        self._run(["zfs", "clone", "-p", _snapshot_path(source, snapshot), new_name])
        _LOGGER.info("dataset_cloned", source=source, snapshot=snapshot, dataset=new_name)

    def take_snapshot(self, dataset: str, name: str) -> None:
        """Create a snapshot on a dataset; fails if it already exists."""
        self._run(["zfs", "snapshot", _snapshot_path(dataset, name)])
        _LOGGER.info("snapshot_taken", dataset=dataset, snapshot=name)

    def rollback_to_snapshot(self, dataset: str, name: str) -> None:
        """Roll a dataset back, discarding newer snapshots."""
        self._run(["zfs", "rollback", "-r", _snapshot_path(dataset, name)])
        _LOGGER.info("dataset_rolled_back", dataset=dataset, snapshot=name)

    def destroy(self, dataset: str, snapshot: str | None = None) -> None:
        """Destroy a dataset with its descendants, or a single snapshot."""
        if snapshot is None:
            self._run(["zfs", "destroy", "-r", dataset])
        else:
            self._run(["zfs", "destroy", _snapshot_path(dataset, snapshot)])
        _LOGGER.info("dataset_destroyed", dataset=dataset, snapshot=snapshot)

    def ensure_dataset(self, name: str) -> None:
        """Create a dataset and its parents when absent."""
        if not self.exists(name):
            self._run(["zfs", "create", "-p", name])
            _LOGGER.info("dataset_created", dataset=name)

    def ensure_snapshot(self, dataset: str, name: str) -> None:
        """Create a snapshot when absent."""
        if not self.exists(_snapshot_path(dataset, name)):
            self.take_snapshot(dataset, name)


def _snapshot_path(dataset: str, snapshot: str) -> str:
    return f"{dataset}@{snapshot}"
