"""Volume instruction.

Binds a persistent backing dataset onto a directory of the image. The
backing dataset name is derived from the image dataset and the mount
target, so rebuilding the same image converges on the same volume.
"""

from __future__ import annotations

import os
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from builder.build_context import BuildContext
from builder.build_step import BuildStep, container_path, resolve_container_path
from core.constants import MOUNTPOINT_PROPERTY
from core.errors import JmakeConfigurationError, JmakeStepExecutionError
from core.logging_config import get_logger
from core.manifest import VolumeMount

_LOGGER = get_logger(__name__)
_ALLOWED_KEYS = {"name", "to"}


@dataclass(frozen=True)
class VolumeArgs:
    """Normalized volume arguments."""

    name: str | None
    to: str


def derive_volume_name(dataset: str, to: str) -> str:
    """Return the deterministic backing dataset name for a volume.

    Args:
        dataset: Target image dataset.
        to: Mount target as written in the manifest.

    Returns:
        UUIDv5 string in the DNS namespace.
    """
    return str(uuid.uuid5(uuid.NAMESPACE_DNS, f"{dataset} {to}"))


class VolumeStep(BuildStep):
    """Attach a persistent volume to the image tree."""

    instruction = "volume"

    def __init__(self, context: BuildContext) -> None:
        super().__init__(context)
        self._volume: VolumeMount | None = None
        self._created_dataset: str | None = None
        self._mount_path: Path | None = None

    @classmethod
    def parse_args(cls, args: Any) -> VolumeArgs:
        """Accept ``to`` or ``{name?, to}``."""
        if isinstance(args, str):
            args = {"to": args}
        if not isinstance(args, Mapping):
            raise JmakeConfigurationError(
                f"Invalid volume arguments {args!r}. Use '<to>' or '{{name, to}}'."
            )
        unknown_keys = sorted(set(args) - _ALLOWED_KEYS)
        if unknown_keys:
            raise JmakeConfigurationError(
                f"Volume arguments contain unknown fields: {', '.join(map(str, unknown_keys))}."
            )
        to = args.get("to")
        if not isinstance(to, str) or not to:
            raise JmakeConfigurationError(
                "Volume argument 'to' is undefined. Set 'to' to the mount target path."
            )
        name = args.get("name")
        if name is not None and (not isinstance(name, str) or not name or "/" in name):
            raise JmakeConfigurationError(
                f"Invalid volume name {name!r}. Use a plain dataset name without '/'."
            )
        return VolumeArgs(name=name, to=to)

    @property
    def volume_name(self) -> str:
        return self._parsed_args.name or derive_volume_name(
            self._context.dataset, self._parsed_args.to
        )

    def perform(self) -> None:
        try:
            self._attach_volume()
        except BaseException:
            self._discard_partial_state()
            raise

    def revert(self) -> None:
        host = self._context.host
        if self._mount_path is not None:
            host.mounter.unmount(self._mount_path, force=True)
            self._mount_path = None
        if self._created_dataset is not None:
            host.store.destroy(self._created_dataset)
            self._created_dataset = None
        volumes = self._context.manifest.volumes
        if self._volume is not None and self._volume in volumes:
            volumes.remove(self._volume)
        self._volume = None

    def release(self) -> None:
        if self._mount_path is not None:
            self._context.host.mounter.unmount(self._mount_path, force=True)
            self._mount_path = None

    def _attach_volume(self) -> None:
        host = self._context.host
        manifest = self._context.manifest
        volumes_location = host.config.volumes_location
        host.store.ensure_dataset(volumes_location)
        self._volume = VolumeMount(name=self.volume_name, to=self._parsed_args.to)
        manifest.volumes.append(self._volume)
        mount_path = resolve_container_path(
            self._context.rootfs_path, manifest.workdir, self._parsed_args.to
        )
        mount_path.mkdir(parents=True, exist_ok=True)
        volume_dataset = f"{volumes_location}/{self._volume.name}"
        if host.store.exists(volume_dataset):
            backing_path = Path(host.store.get_property(volume_dataset, MOUNTPOINT_PROPERTY))
        else:
            host.store.ensure_dataset(volume_dataset)
            self._created_dataset = volume_dataset
            backing_path = Path(host.store.get_property(volume_dataset, MOUNTPOINT_PROPERTY))
            _seed_backing_store(mount_path, backing_path)
        target_stat = mount_path.stat()
        os.chown(backing_path, target_stat.st_uid, target_stat.st_gid)
        host.mounter.mount(backing_path, mount_path)
        self._mount_path = mount_path
        _LOGGER.info(
            "volume_attached",
            volume=self._volume.name,
            target=container_path(manifest.workdir, self._parsed_args.to),
            seeded=self._created_dataset is not None,
        )


def _seed_backing_store(mount_path: Path, backing_path: Path) -> None:
    try:
        shutil.copytree(mount_path, backing_path, symlinks=True, dirs_exist_ok=True)
    except OSError as error:
        raise JmakeStepExecutionError(
            f"Failed to seed volume store {backing_path} from {mount_path}: {error}. "
            "Check free space on the volumes dataset."
        ) from error
