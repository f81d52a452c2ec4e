"""Base image resolution.

This module maps a manifest ``from`` reference onto a local dataset and
fetches missing base images from the remote package repository.
"""

from __future__ import annotations

from core.config import JmakeConfig
from core.errors import JmakeCommandError, JmakeNotFoundError
from core.logging_config import get_logger
from core.manifest import parse_base_image
from store.command_runner import CommandRunner, run_command
from store.snapshot_store import SnapshotStore

_LOGGER = get_logger(__name__)


def base_image_dataset(reference: str, config: JmakeConfig) -> str:
    """Return the dataset name holding a base image.

    Args:
        reference: Manifest ``from`` value.
        config: Runtime configuration.

    Returns:
        Dataset name under the containers location.
    """
    parsed = parse_base_image(reference)
    return f"{config.containers_location}/{parsed.image}"


def resolve_base_image(
    reference: str,
    config: JmakeConfig,
    store: SnapshotStore,
    runner: CommandRunner = run_command,
) -> str:
    """Ensure a base image dataset exists locally.

    Args:
        reference: Manifest ``from`` value.
        config: Runtime configuration.
        store: Snapshot store used for existence checks.
        runner: Command runner used for package installs.

    Returns:
        Base image dataset name.

    Raises:
        JmakeNotFoundError: If the image is neither local nor installable.
    """
    dataset = base_image_dataset(reference, config)
    if store.exists(dataset):
        return dataset
    _LOGGER.info("base_image_fetch_started", image=reference, dataset=dataset)
    try:
        runner(["pkg", "install", "-y", reference])
    except JmakeCommandError as error:
        raise JmakeNotFoundError(
            f"Base image '{reference}' not found in the remote repository: {error}. "
            "Check the 'from' field or the package repository configuration."
        ) from error
    if not store.exists(dataset):
        raise JmakeNotFoundError(
            f"Base image '{reference}' was installed but dataset {dataset} is missing. "
            "Check that the image package targets JMAKE_CONTAINERS_LOCATION."
        )
    _LOGGER.info("base_image_fetched", image=reference, dataset=dataset)
    return dataset
