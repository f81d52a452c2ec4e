"""Runtime configuration model for Jmake.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    DEFAULT_CONTAINERS_LOCATION,
    DEFAULT_CONTEXT_MOUNT_PATH,
    DEFAULT_JAIL_CONF_DIR,
    DEFAULT_SNAPSHOT_NAME,
    DEFAULT_VOLUMES_LOCATION,
)
from core.errors import JmakeConfigurationError


@dataclass(frozen=True)
class JmakeConfig:
    """Validated runtime configuration.

    Attributes:
        containers_location: Parent dataset holding built and base images.
        volumes_location: Parent dataset holding persistent volume stores.
        snapshot_name: Snapshot marking a finished, cloneable image.
        jail_conf_dir: Directory where per-build jail configs are written.
        context_mount_path: Rootfs-relative mount point of the build context.
    """

    containers_location: str
    volumes_location: str
    snapshot_name: str
    jail_conf_dir: Path
    context_mount_path: str

    @classmethod
    def from_env(cls) -> "JmakeConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            JmakeConfigurationError: If environment values are invalid.
        """
        containers_location = _parse_dataset_name(
            "JMAKE_CONTAINERS_LOCATION",
            os.getenv("JMAKE_CONTAINERS_LOCATION", DEFAULT_CONTAINERS_LOCATION),
        )
        volumes_location = _parse_dataset_name(
            "JMAKE_VOLUMES_LOCATION",
            os.getenv("JMAKE_VOLUMES_LOCATION", DEFAULT_VOLUMES_LOCATION),
        )
        snapshot_name = _parse_snapshot_name(
            os.getenv("JMAKE_SNAPSHOT_NAME", DEFAULT_SNAPSHOT_NAME)
        )
        jail_conf_dir = os.getenv("JMAKE_JAIL_CONF_DIR", DEFAULT_JAIL_CONF_DIR)
        context_mount_path = os.getenv("JMAKE_CONTEXT_MOUNT_PATH", DEFAULT_CONTEXT_MOUNT_PATH)
        return cls(
            containers_location=containers_location,
            volumes_location=volumes_location,
            snapshot_name=snapshot_name,
            jail_conf_dir=Path(jail_conf_dir).expanduser().resolve(),
            context_mount_path=context_mount_path.strip("/") or DEFAULT_CONTEXT_MOUNT_PATH,
        )


def _parse_dataset_name(variable: str, raw_value: str) -> str:
    """Normalize a dataset location value.

    Args:
        variable: Environment variable name for error messages.
        raw_value: Raw string from environment.

    Returns:
        Dataset name without surrounding slashes.

    Raises:
        JmakeConfigurationError: If value is empty or names a snapshot.
    """
    normalized_value = raw_value.strip().strip("/")
    if not normalized_value or "@" in normalized_value:
        raise JmakeConfigurationError(
            f"Invalid {variable} value: expected dataset name, got '{raw_value}'. "
            f"Set {variable} to a pool-relative path such as 'zroot/jmake'."
        )
    return normalized_value


def _parse_snapshot_name(raw_value: str) -> str:
    normalized_value = raw_value.strip()
    if not normalized_value or "@" in normalized_value or "/" in normalized_value:
        raise JmakeConfigurationError(
            f"Invalid JMAKE_SNAPSHOT_NAME value: got '{raw_value}'. "
            "Use a plain snapshot name without '@' or '/'."
        )
    return normalized_value
