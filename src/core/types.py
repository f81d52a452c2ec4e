"""Shared typed models.

This module defines immutable request and result models used by the
CLI, the builder, and the public SDK surface.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.constants import DEFAULT_CONTEXT_PATH, DEFAULT_MANIFEST_PATH


@dataclass(frozen=True)
class BuildOptions:
    """Image build command options.

    Attributes:
        manifest_path: Path to the YAML build manifest.
        context_path: Host directory mounted read-only into the build.
        force: Destroy an existing target dataset instead of failing.
    """

    manifest_path: str = DEFAULT_MANIFEST_PATH
    context_path: str = DEFAULT_CONTEXT_PATH
    force: bool = False


@dataclass(frozen=True)
class BuildResult:
    """Summary of a finished image build.

    Attributes:
        image_name: Manifest name of the built image.
        dataset: Dataset holding the built image.
        snapshot: Final snapshot marking the image as cloneable.
        manifest_path: Persisted manifest location inside the dataset.
        steps_completed: Number of manifest instructions performed.
    """

    image_name: str
    dataset: str
    snapshot: str
    manifest_path: str
    steps_completed: int
