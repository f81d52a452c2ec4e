"""Unit tests for the zfs-backed snapshot store."""

from __future__ import annotations

from typing import Sequence

from store.snapshot_store import ZfsSnapshotStore


class _ScriptedRunner:
    def __init__(self, outputs: dict[str, str] | None = None) -> None:
        self._outputs = outputs or {}
        self.commands: list[list[str]] = []

    def __call__(self, command: Sequence[str]) -> str:
        argv = list(command)
        self.commands.append(argv)
        return self._outputs.get(argv[1], "")


def test_exists_matches_listed_names() -> None:
    """Existence checks should match full dataset names only."""
    runner = _ScriptedRunner({"list": "tank\ntank/containers\ntank/containers/base@jmake"})
    store = ZfsSnapshotStore(runner)

    assert (store.exists("tank/containers"), store.exists("tank/contain")) == (True, False)


def test_clone_from_snapshot_runs_zfs_clone() -> None:
    """Clones should create missing parents."""
    runner = _ScriptedRunner()
    store = ZfsSnapshotStore(runner)

    store.clone_from_snapshot("tank/base", "jmake", "tank/app")

    assert runner.commands == [["zfs", "clone", "-p", "tank/base@jmake", "tank/app"]]


def test_rollback_discards_newer_snapshots() -> None:
    """Rollback should pass -r so intermediate snapshots do not block it."""
    runner = _ScriptedRunner()
    store = ZfsSnapshotStore(runner)

    store.rollback_to_snapshot("tank/app", "abc")

    assert runner.commands == [["zfs", "rollback", "-r", "tank/app@abc"]]


def test_destroy_distinguishes_dataset_and_snapshot() -> None:
    """Destroy should be recursive for datasets and exact for snapshots."""
    runner = _ScriptedRunner()
    store = ZfsSnapshotStore(runner)

    store.destroy("tank/app")
    store.destroy("tank/app", "abc")

    assert runner.commands == [
        ["zfs", "destroy", "-r", "tank/app"],
        ["zfs", "destroy", "tank/app@abc"],
    ]


def test_get_property_returns_value() -> None:
    """Property lookups should return the raw zfs value."""
    runner = _ScriptedRunner({"get": "/tank/app"})
    store = ZfsSnapshotStore(runner)

    mountpoint = store.get_property("tank/app", "mountpoint")

    assert mountpoint == "/tank/app" and runner.commands[0][-2:] == ["mountpoint", "tank/app"]


def test_ensure_dataset_skips_existing_dataset() -> None:
    """Ensure should not create datasets that already exist."""
    runner = _ScriptedRunner({"list": "tank/volumes"})
    store = ZfsSnapshotStore(runner)

    store.ensure_dataset("tank/volumes")

    assert [command[1] for command in runner.commands] == ["list"]


def test_ensure_snapshot_creates_missing_snapshot() -> None:
    """Ensure should take the snapshot when it is not listed."""
    runner = _ScriptedRunner({"list": "tank/base"})
    store = ZfsSnapshotStore(runner)

    store.ensure_snapshot("tank/base", "jmake")

    assert runner.commands[-1] == ["zfs", "snapshot", "tank/base@jmake"]
