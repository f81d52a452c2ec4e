"""Per-step build context.

This module bundles the paths, shared manifest, step arguments and host
collaborators handed to each build step.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from core.config import JmakeConfig
from core.manifest import Manifest
from store.command_runner import CommandRunner, run_command
from store.jail_runtime import SandboxRuntime
from store.mounts import MountFacility
from store.snapshot_store import SnapshotStore


@dataclass(frozen=True)
class HostServices:
    """Host collaborators shared by one build.

    Attributes:
        config: Runtime configuration.
        store: Copy-on-write dataset store.
        mounter: Bind-mount facility.
        sandbox: Jail runtime.
        runner: Command runner for auxiliary host tools.
    """

    config: JmakeConfig
    store: SnapshotStore
    mounter: MountFacility
    sandbox: SandboxRuntime
    runner: CommandRunner = run_command


@dataclass(frozen=True)
class BuildContext:
    """Immutable inputs of one build step.

    The manifest is shared by reference across the whole build and is
    mutated in place by steps.

    Attributes:
        index: Step position; the initial workdir step uses 0.
        dataset: Target dataset name.
        dataset_path: Mount point of the target dataset.
        rootfs_path: Image root filesystem under the dataset.
        context_path: Build-context directory visible to steps.
        manifest: Shared build manifest.
        args: Raw instruction arguments.
        host: Host collaborators.
    """

    index: int
    dataset: str
    dataset_path: Path
    rootfs_path: Path
    context_path: Path
    manifest: Manifest
    args: Any
    host: HostServices
