"""Copy instruction.

Copies a file or directory tree from the build context into the image.
Before copying, every image entry the copy would replace is stashed aside
and every path it would create is recorded, so revert undoes exactly this
step: created paths are removed and replaced entries are restored.
Directories that already existed are merged into, never removed.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Mapping, Sequence

from builder.build_context import BuildContext
from builder.build_step import BuildStep, resolve_container_path, resolve_context_path
from core.errors import JmakeConfigurationError, JmakeStepExecutionError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class CopyArgs:
    """Normalized copy arguments."""

    source: str
    destination: str


class CopyStep(BuildStep):
    """Copy a context path into the image, overwriting silently."""

    instruction = "copy"

    def __init__(self, context: BuildContext) -> None:
        super().__init__(context)
        self._created: list[Path] = []
        self._stashed: list[tuple[Path, Path]] = []
        self._stash_dir: Path | None = None

    @classmethod
    def parse_args(cls, args: Any) -> CopyArgs:
        """Accept ``path``, ``[source, destination]`` or ``{source, destination}``."""
        if isinstance(args, str) and args:
            return CopyArgs(source=args, destination=args)
        if isinstance(args, Mapping):
            return _args_from_pair(args.get("source"), args.get("destination"))
        if isinstance(args, Sequence) and not isinstance(args, (str, bytes)) and len(args) == 2:
            return _args_from_pair(args[0], args[1])
        raise JmakeConfigurationError(
            f"Invalid copy arguments {args!r}. Use 'path' or '[source, destination]'."
        )

    def perform(self) -> None:
        manifest = self._context.manifest
        source = resolve_context_path(self._context.context_path, self._parsed_args.source)
        destination = resolve_container_path(
            self._context.rootfs_path, manifest.workdir, self._parsed_args.destination
        )
        if not source.exists():
            raise JmakeStepExecutionError(
                f"Copy source {self._parsed_args.source} not found in build context "
                f"{self._context.context_path}. Add it to the context directory."
            )
        if destination == self._context.rootfs_path and not source.is_dir():
            raise JmakeStepExecutionError(
                f"Cannot copy file {self._parsed_args.source} over the image root. "
                "Give a destination file name."
            )
        try:
            self._copy(source, destination)
        except OSError as error:
            self._discard_partial_state()
            raise JmakeStepExecutionError(
                f"Failed to copy {source} to {destination}: {error}. "
                "Check free space and permissions on the image dataset."
            ) from error
        except BaseException:
            self._discard_partial_state()
            raise
        _LOGGER.info(
            "path_copied",
            source=str(source),
            destination=str(destination),
            created=len(self._created),
            replaced=len(self._stashed),
        )

    def revert(self) -> None:
        for path in reversed(self._created):
            if os.path.lexists(path):
                _remove_path(path)
        self._created = []
        for original, stashed in reversed(self._stashed):
            original.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(stashed), str(original))
        self._stashed = []
        self._drop_stash()
        _LOGGER.info("copied_path_removed", step=self.describe())

    def release(self) -> None:
        self._drop_stash()

    def _copy(self, source: Path, destination: Path) -> None:
        self._record_missing_parents(destination.parent)
        destination.parent.mkdir(parents=True, exist_ok=True)
        for source_is_dir, target in _copy_plan(source, destination):
            if source_is_dir and _is_real_dir(target):
                continue
            if os.path.lexists(target):
                self._stash(target)
            self._created.append(target)
        if source.is_dir():
            shutil.copytree(
                source,
                destination,
                symlinks=True,
                dirs_exist_ok=True,
                copy_function=shutil.copy2,
            )
        else:
            shutil.copy2(source, destination)

    def _record_missing_parents(self, directory: Path) -> None:
        rootfs_path = self._context.rootfs_path
        missing: list[Path] = []
        while directory != rootfs_path and not os.path.lexists(directory):
            missing.append(directory)
            directory = directory.parent
        if missing:
            self._created.append(missing[-1])

    def _stash(self, target: Path) -> None:
        if self._stash_dir is None:
            self._stash_dir = Path(tempfile.mkdtemp(prefix="jmake-copy-"))
        stashed = self._stash_dir / str(len(self._stashed))
        shutil.move(str(target), str(stashed))
        self._stashed.append((target, stashed))

    def _drop_stash(self) -> None:
        if self._stash_dir is not None:
            shutil.rmtree(self._stash_dir, ignore_errors=True)
            self._stash_dir = None


def _args_from_pair(source: object, destination: object) -> CopyArgs:
    if isinstance(source, str) and source and isinstance(destination, str) and destination:
        return CopyArgs(source=source, destination=destination)
    raise JmakeConfigurationError(
        "Invalid copy arguments: 'source' and 'destination' must be non-empty strings."
    )


def _copy_plan(source: Path, destination: Path) -> Iterator[tuple[bool, Path]]:
    """Yield image targets of a copy, parents before children.

    Each target comes with whether its source is a directory the copy
    descends into. Nested symlinks are copied as links, not descended.
    """
    yield source.is_dir(), destination
    if not source.is_dir():
        return
    for root, dir_names, file_names in os.walk(source):
        relative_root = Path(root).relative_to(source)
        for name in sorted(dir_names) + sorted(file_names):
            yield _is_real_dir(Path(root) / name), destination / relative_root / name


def _is_real_dir(path: Path) -> bool:
    return path.is_dir() and not path.is_symlink()


def _remove_path(path: Path) -> None:
    if _is_real_dir(path):
        shutil.rmtree(path)
    else:
        path.unlink()
