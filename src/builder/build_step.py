"""Build step contract and path resolution.

Every build instruction is a ``BuildStep`` that performs exactly one
mutation of the image tree or manifest and records what ``revert()``
needs to undo it. Paths taken from instructions are always anchored under
the image root or the build context so they cannot escape either tree.
"""

from __future__ import annotations

import posixpath
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, ClassVar

from builder.build_context import BuildContext
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


class BuildStep(ABC):
    """Reversible unit of the build pipeline."""

    instruction: ClassVar[str]

    def __init__(self, context: BuildContext) -> None:
        self._context = context
        self._parsed_args = self.parse_args(context.args)

    @property
    def context(self) -> BuildContext:
        return self._context

    @classmethod
    @abstractmethod
    def parse_args(cls, args: Any) -> Any:
        """Validate raw instruction arguments.

        Raises:
            JmakeConfigurationError: If arguments have an unsupported shape.
        """

    @abstractmethod
    def perform(self) -> None:
        """Apply the step mutation and record revert state."""

    @abstractmethod
    def revert(self) -> None:
        """Undo exactly the mutation applied by ``perform()``."""

    def release(self) -> None:
        """Release scoped resources once the build has committed."""

    def describe(self) -> str:
        return f"{self.instruction}#{self._context.index}"

    def _discard_partial_state(self) -> None:
        try:
            self.revert()
        except Exception as error:
            _LOGGER.warning(
                "partial_step_cleanup_failed",
                step=self.describe(),
                error=str(error),
            )


def anchor_path(path: str) -> str:
    """Normalize a path to a root-relative form.

    ``..`` segments are resolved, and any that would climb above ``/`` are
    dropped.
    """
    return posixpath.normpath(posixpath.join("/", path)).lstrip("/")


def container_path(workdir: str, destination: str) -> str:
    """Resolve a container-side destination against the current workdir.

    Args:
        workdir: Current manifest workdir.
        destination: Destination from an instruction. Absolute values are
            treated as relative to the workdir, and ``..`` climbs from the
            workdir but never above the image root.

    Returns:
        Absolute, normalized container path.
    """
    joined = posixpath.join(anchor_path(workdir), destination.lstrip("/"))
    return posixpath.normpath("/" + joined)


def resolve_container_path(rootfs_path: Path, workdir: str, destination: str) -> Path:
    """Resolve a destination to a host path under the image root."""
    return rootfs_path / container_path(workdir, destination).lstrip("/")


def resolve_context_path(context_path: Path, source: str) -> Path:
    """Resolve a source to a host path under the build context."""
    return context_path / anchor_path(source)
