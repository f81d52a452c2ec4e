"""Image build orchestration.

This module sequences one image build: clone the base dataset, mount the
build context, start the jail, run the workdir and manifest steps, stop
the jail, persist the manifest and snapshot the result. Every unit runs
through one transactional invoker, so a failure at any point unwinds
everything done before it, including the initial clone.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from builder.build_context import BuildContext, HostServices
from builder.step_registry import create_step, validate_instructions
from builder.transaction import FunctionAction, TransactionalInvoker
from builder.workdir_step import WorkdirStep
from core.config import JmakeConfig
from core.constants import (
    BASE_RELEASE_RULES,
    CONTEXT_MOUNT_OPTIONS,
    DEFAULT_WORKDIR,
    INHERITED_NETWORK_MODE,
    INITIAL_WORKDIR_STEP_INDEX,
    MANIFEST_FILE_NAME,
    MOUNTPOINT_PROPERTY,
    ROOTFS_DIR_NAME,
)
from core.errors import JmakeConfigurationError, JmakeConflictError
from core.logging_config import get_logger
from core.manifest import Manifest, load_manifest, load_manifest_json
from core.types import BuildOptions, BuildResult
from store.base_images import resolve_base_image
from store.jail_runtime import JailRuntime, SandboxRuntime
from store.mounts import NullfsMounter
from store.snapshot_store import ZfsSnapshotStore

_LOGGER = get_logger(__name__)


class _JailLifecycle:
    """Track whether the build jail is running so stop is idempotent."""

    def __init__(self, sandbox: SandboxRuntime, name: str) -> None:
        self._sandbox = sandbox
        self._name = name
        self._running = False

    def start(self) -> None:
        self._sandbox.start(self._name)
        self._running = True

    def stop(self) -> None:
        if not self._running:
            return
        self._sandbox.stop(self._name)
        self._running = False


class ImageBuildRunner:
    """Runner for one transactional image build."""

    def __init__(self, options: BuildOptions, host: HostServices) -> None:
        self._options = options
        self._host = host
        self._manifest = load_manifest(options.manifest_path)
        validate_instructions(self._manifest)
        self._source_context = _resolve_context_dir(options.context_path)
        self._dataset = f"{host.config.containers_location}/{self._manifest.name}"
        self._jail = _JailLifecycle(host.sandbox, self._manifest.name)

    @property
    def manifest(self) -> Manifest:
        return self._manifest

    @property
    def dataset(self) -> str:
        return self._dataset

    def run(self) -> BuildResult:
        """Build the image and return its summary.

        Raises:
            JmakeConflictError: If the target exists and force is not set.
            JmakeNotFoundError: If the base image cannot be resolved.
            JmakeError: The first failure of any build unit, after rollback.
        """
        manifest = self._manifest
        store = self._host.store
        snapshot_name = self._host.config.snapshot_name
        self._prepare_target()
        base_dataset = resolve_base_image(
            str(manifest.from_image), self._host.config, store, self._host.runner
        )
        store.ensure_snapshot(base_dataset, snapshot_name)
        _LOGGER.info(
            "build_started", image=manifest.name, dataset=self._dataset, base=base_dataset
        )
        with TransactionalInvoker() as invoker:
            invoker.submit(
                FunctionAction(
                    run=lambda: store.clone_from_snapshot(
                        base_dataset, snapshot_name, self._dataset
                    ),
                    compensate=lambda: store.destroy(self._dataset),
                    name="clone_dataset",
                )
            )
            dataset_path, base_path = invoker.submit(
                FunctionAction(
                    run=lambda: (
                        Path(store.get_property(self._dataset, MOUNTPOINT_PROPERTY)),
                        Path(store.get_property(base_dataset, MOUNTPOINT_PROPERTY)),
                    ),
                    name="resolve_mountpoints",
                )
            )
            rootfs_path = dataset_path / ROOTFS_DIR_NAME
            base_manifest = invoker.submit(
                FunctionAction(
                    run=lambda: load_manifest_json(base_path / MANIFEST_FILE_NAME),
                    name="load_base_manifest",
                )
            )
            jail_rules = _inherit_base_rules(manifest, base_manifest, rootfs_path)
            self._prepare_sandbox(invoker, rootfs_path, jail_rules)
            self._run_steps(invoker, dataset_path, rootfs_path)
            manifest_path = self._finalize(invoker, dataset_path)
        result = BuildResult(
            image_name=manifest.name,
            dataset=self._dataset,
            snapshot=f"{self._dataset}@{snapshot_name}",
            manifest_path=str(manifest_path),
            steps_completed=len(manifest.building),
        )
        _LOGGER.info(
            "build_completed",
            image=result.image_name,
            snapshot=result.snapshot,
            steps_completed=result.steps_completed,
            volumes=[volume.name for volume in manifest.volumes],
        )
        return result

    def _prepare_target(self) -> None:
        store = self._host.store
        if not store.exists(self._dataset):
            return
        if not self._options.force:
            raise JmakeConflictError(
                f"Dataset '{self._manifest.name}' already exists at {self._dataset}. "
                "Use --force to rebuild it."
            )
        store.destroy(self._dataset)
        _LOGGER.info("existing_dataset_destroyed", dataset=self._dataset)

    def _prepare_sandbox(
        self,
        invoker: TransactionalInvoker,
        rootfs_path: Path,
        jail_rules: dict[str, Any],
    ) -> None:
        name = self._manifest.name
        sandbox = self._host.sandbox
        mounter = self._host.mounter
        invoker.submit(
            FunctionAction(
                run=lambda: sandbox.write_config(name, jail_rules),
                compensate=lambda: sandbox.remove_config(name),
                release=lambda: sandbox.remove_config(name),
                name="write_jail_config",
            )
        )
        context_mount = self._context_mount_path(rootfs_path)

        def _mount_context() -> None:
            context_mount.mkdir(parents=True, exist_ok=True)
            mounter.mount(self._source_context, context_mount, CONTEXT_MOUNT_OPTIONS)

        invoker.submit(
            FunctionAction(
                run=_mount_context,
                compensate=lambda: mounter.unmount(context_mount, force=True),
                release=lambda: mounter.unmount(context_mount, force=True),
                name="mount_context",
            )
        )
        invoker.submit(
            FunctionAction(run=self._jail.start, compensate=self._jail.stop, name="start_jail")
        )

    def _run_steps(
        self, invoker: TransactionalInvoker, dataset_path: Path, rootfs_path: Path
    ) -> None:
        manifest = self._manifest
        declared_workdir = manifest.workdir
        manifest.workdir = DEFAULT_WORKDIR
        initial_context = self._step_context(
            INITIAL_WORKDIR_STEP_INDEX, dataset_path, rootfs_path, declared_workdir
        )
        invoker.submit(WorkdirStep(initial_context))
        for position, instruction in enumerate(manifest.building, start=1):
            context = self._step_context(position, dataset_path, rootfs_path, instruction.args)
            invoker.submit(create_step(instruction, context))

    def _finalize(self, invoker: TransactionalInvoker, dataset_path: Path) -> Path:
        store = self._host.store
        snapshot_name = self._host.config.snapshot_name
        manifest_path = dataset_path / MANIFEST_FILE_NAME
        invoker.submit(FunctionAction(run=self._jail.stop, name="stop_jail"))
        invoker.submit(
            FunctionAction(
                run=lambda: self._manifest.to_file(manifest_path),
                compensate=lambda: manifest_path.unlink(missing_ok=True),
                name="persist_manifest",
            )
        )
        invoker.submit(
            FunctionAction(
                run=lambda: store.take_snapshot(self._dataset, snapshot_name),
                compensate=lambda: store.destroy(self._dataset, snapshot_name),
                name="snapshot_image",
            )
        )
        return manifest_path

    def _step_context(
        self, index: int, dataset_path: Path, rootfs_path: Path, args: Any
    ) -> BuildContext:
        return BuildContext(
            index=index,
            dataset=self._dataset,
            dataset_path=dataset_path,
            rootfs_path=rootfs_path,
            context_path=self._context_mount_path(rootfs_path),
            manifest=self._manifest,
            args=args,
            host=self._host,
        )

    def _context_mount_path(self, rootfs_path: Path) -> Path:
        return rootfs_path / self._host.config.context_mount_path


def build_image(options: BuildOptions, config: JmakeConfig) -> BuildResult:
    """Build an image on the local host.

    Args:
        options: Build options.
        config: Runtime configuration.

    Returns:
        Summary of the built image.
    """
    host = HostServices(
        config=config,
        store=ZfsSnapshotStore(),
        mounter=NullfsMounter(),
        sandbox=JailRuntime(config),
    )
    return ImageBuildRunner(options, host).run()


def validate_manifest(manifest_path: str) -> Manifest:
    """Load a manifest and check its instructions without touching the host."""
    manifest = load_manifest(manifest_path)
    validate_instructions(manifest)
    return manifest


def _resolve_context_dir(context_path: str) -> Path:
    resolved = Path(context_path).expanduser().resolve()
    if not resolved.is_dir():
        raise JmakeConfigurationError(
            f"Build context {resolved} is not a directory. "
            "Pass an existing directory with --context."
        )
    return resolved


def _inherit_base_rules(
    manifest: Manifest, base_manifest: Manifest, rootfs_path: Path
) -> dict[str, Any]:
    """Copy release rules from the base image and derive jail parameters."""
    for rule in BASE_RELEASE_RULES:
        value = base_manifest.rules.get(rule)
        if not value:
            raise JmakeConfigurationError(
                f"Base image '{manifest.from_image}' does not set '{rule}' in its rules. "
                "Rebuild the base image with osreldate and osrelease rules."
            )
        manifest.rules[rule] = value
    manifest.rules["persist"] = True
    jail_rules = dict(manifest.rules)
    jail_rules["ip4.addr"] = []
    jail_rules["ip6.addr"] = []
    jail_rules["ip4"] = INHERITED_NETWORK_MODE
    jail_rules["ip6"] = INHERITED_NETWORK_MODE
    jail_rules["path"] = str(rootfs_path)
    return jail_rules
