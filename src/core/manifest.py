"""Build manifest model and file loaders.

This module loads the declarative YAML build file and persisted JSON
manifests into one mutable ``Manifest`` object. Build steps mutate the
manifest in place; the final state is serialized next to the built image.
"""

from __future__ import annotations

import copy
import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Sequence, cast

from core.constants import BASE_IMAGE_PATTERN, DEFAULT_WORKDIR
from core.errors import JmakeConfigurationError, JmakeDependencyError

_ALLOWED_ROOT_KEYS = {"name", "from", "workdir", "volumes", "rules", "building"}
_NAME_PATTERN = re.compile(r"^[\w.-]+$")


@dataclass
class VolumeMount:
    """Persistent volume attached to the image.

    Attributes:
        name: Backing dataset name under the volumes location.
        to: Container-side mount target.
    """

    name: str
    to: str


@dataclass(frozen=True)
class BuildInstruction:
    """One ``{instruction: args}`` row of the manifest ``building`` list."""

    name: str
    args: Any


@dataclass(frozen=True)
class BaseImageReference:
    """Parsed ``from`` field of a manifest."""

    image: str
    version: str | None


@dataclass
class Manifest:
    """Mutable build manifest shared by every step of one build.

    Attributes:
        name: Image name, also the target dataset leaf name.
        from_image: Base image reference, ``from`` in manifest files.
        workdir: Current container-side working directory.
        volumes: Volumes registered by the build, in declaration order.
        rules: Jail parameters for the image.
        building: Ordered build instructions.
    """

    name: str
    from_image: str | None = None
    workdir: str = DEFAULT_WORKDIR
    volumes: list[VolumeMount] = field(default_factory=list)
    rules: dict[str, Any] = field(default_factory=dict)
    building: list[BuildInstruction] = field(default_factory=list)

    def clone(self) -> "Manifest":
        """Return an independent deep copy of this manifest."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        """Serialize manifest into its persisted JSON shape."""
        return {
            "name": self.name,
            "from": self.from_image,
            "workdir": self.workdir,
            "volumes": [{"name": volume.name, "to": volume.to} for volume in self.volumes],
            "rules": dict(self.rules),
            "building": [{row.name: row.args} for row in self.building],
        }

    def to_file(self, manifest_path: Path) -> None:
        """Write manifest JSON to disk.

        Args:
            manifest_path: Destination file path.
        """
        payload = json.dumps(self.to_dict(), indent=2, sort_keys=True)
        manifest_path.write_text(payload + "\n", encoding="utf-8")


def load_manifest(manifest_path: str | Path) -> Manifest:
    """Load and validate a YAML build manifest.

    Args:
        manifest_path: Path to the build file, usually ``jmakefile.yml``.

    Returns:
        Validated manifest.

    Raises:
        JmakeDependencyError: If PyYAML is unavailable.
        JmakeConfigurationError: If file is unreadable or schema checks fail.
    """
    manifest_file = Path(manifest_path).expanduser().resolve()
    payload = _load_yaml_payload(manifest_file)
    manifest = _parse_manifest(payload, str(manifest_file))
    if not manifest.from_image:
        raise JmakeConfigurationError(
            f"Manifest {manifest_file} has an empty 'from' field. "
            "Set 'from' to the base image name, e.g. 'freebsd-13.2'."
        )
    return manifest


def load_manifest_json(manifest_path: str | Path) -> Manifest:
    """Load a manifest persisted next to a built image.

    Args:
        manifest_path: Path to ``manifest.json``.

    Returns:
        Parsed manifest.

    Raises:
        JmakeConfigurationError: If file is missing or invalid.
    """
    manifest_file = Path(manifest_path)
    if not manifest_file.exists():
        raise JmakeConfigurationError(
            f"Image manifest not found at {manifest_file}. "
            "Rebuild the base image so it carries a manifest.json."
        )
    try:
        payload = json.loads(manifest_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as error:
        raise JmakeConfigurationError(
            f"Failed to read image manifest at {manifest_file}: {error}. "
            "Rebuild the base image to regenerate it."
        ) from error
    return _parse_manifest(payload, str(manifest_file))


def parse_base_image(reference: str) -> BaseImageReference:
    """Split a ``from`` reference into image name and optional version.

    Args:
        reference: Raw ``from`` value such as ``freebsd-13.2``.

    Returns:
        Parsed reference.

    Raises:
        JmakeConfigurationError: If reference has an invalid shape.
    """
    matches = re.match(BASE_IMAGE_PATTERN, reference)
    if matches is None:
        raise JmakeConfigurationError(
            f"Invalid 'from' value '{reference}'. Use '<image>' or '<image>-<version>'."
        )
    return BaseImageReference(image=matches.group(1), version=matches.group(3))


def _load_yaml_payload(manifest_file: Path) -> object:
    try:
        import yaml  # type: ignore[import-untyped]
    except ImportError as error:  # pragma: no cover - dependency failure
        raise JmakeDependencyError(
            "YAML manifest support requires PyYAML. Install with 'pip install pyyaml'."
        ) from error
    if not manifest_file.exists():
        raise JmakeConfigurationError(
            f"Manifest file does not exist at {manifest_file}. Provide a valid YAML file path."
        )
    try:
        payload = cast(object, yaml.safe_load(manifest_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise JmakeConfigurationError(
            f"Failed to read manifest at {manifest_file}: {error}. Check file permissions."
        ) from error
    except yaml.YAMLError as error:
        raise JmakeConfigurationError(
            f"Failed to parse YAML manifest at {manifest_file}: {error}. Fix YAML syntax."
        ) from error
    if payload is None:
        raise JmakeConfigurationError(
            f"Manifest at {manifest_file} is empty. Define 'name', 'from' and 'building'."
        )
    return payload


def _parse_manifest(payload: object, source: str) -> Manifest:
    root_mapping = _expect_mapping(payload, f"manifest {source}")
    _validate_root_keys(root_mapping, source)
    return Manifest(
        name=_parse_name(root_mapping, source),
        from_image=_optional_string(root_mapping, "from", source),
        workdir=_optional_string(root_mapping, "workdir", source) or DEFAULT_WORKDIR,
        volumes=_parse_volumes(root_mapping.get("volumes"), source),
        rules=dict(_expect_mapping(root_mapping.get("rules") or {}, f"{source} rules")),
        building=_parse_building(root_mapping.get("building"), source),
    )


def _parse_name(root_mapping: Mapping[str, object], source: str) -> str:
    raw_name = root_mapping.get("name")
    if not isinstance(raw_name, str) or not _NAME_PATTERN.match(raw_name):
        raise JmakeConfigurationError(
            f"Manifest {source} field 'name' must be a non-empty string of "
            "letters, digits, '.', '_' or '-'."
        )
    return raw_name


def _parse_volumes(raw_volumes: object, source: str) -> list[VolumeMount]:
    if raw_volumes is None:
        return []
    volumes: list[VolumeMount] = []
    for index, raw_volume in enumerate(_expect_sequence(raw_volumes, f"{source} volumes")):
        volume_mapping = _expect_mapping(raw_volume, f"{source} volume #{index + 1}")
        name = volume_mapping.get("name")
        to = volume_mapping.get("to")
        if not isinstance(name, str) or not isinstance(to, str):
            raise JmakeConfigurationError(
                f"Invalid {source} volume #{index + 1}: 'name' and 'to' must be strings."
            )
        volumes.append(VolumeMount(name=name, to=to))
    return volumes


def _parse_building(raw_building: object, source: str) -> list[BuildInstruction]:
    if raw_building is None:
        return []
    instructions: list[BuildInstruction] = []
    for index, raw_row in enumerate(_expect_sequence(raw_building, f"{source} building")):
        context = f"{source} building step #{index + 1}"
        row_mapping = _expect_mapping(raw_row, context)
        if len(row_mapping) != 1:
            raise JmakeConfigurationError(
                f"Invalid {context}: expected exactly one instruction key, "
                f"got {len(row_mapping)}."
            )
        ((name, args),) = row_mapping.items()
        instructions.append(BuildInstruction(name=name, args=args))
    return instructions


def _expect_mapping(value: object, context: str) -> Mapping[str, object]:
    if isinstance(value, Mapping):
        normalized_mapping = {}
        for key, payload in value.items():
            if not isinstance(key, str):
                raise JmakeConfigurationError(
                    f"Invalid {context}: expected string keys, got {type(key).__name__}."
                )
            normalized_mapping[key] = payload
        return normalized_mapping
    raise JmakeConfigurationError(
        f"Invalid {context}: expected object mapping, got {type(value).__name__}."
    )


def _expect_sequence(value: object, context: str) -> Sequence[object]:
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return value
    raise JmakeConfigurationError(f"Invalid {context}: expected list, got {type(value).__name__}.")


def _optional_string(
    mapping: Mapping[str, object], field_name: str, source: str
) -> str | None:
    raw_value = mapping.get(field_name)
    if raw_value is None:
        return None
    if isinstance(raw_value, str):
        normalized_value = raw_value.strip()
        return normalized_value if normalized_value else None
    raise JmakeConfigurationError(
        f"Manifest {source} field '{field_name}' must be a string when provided."
    )


def _validate_root_keys(root_mapping: Mapping[str, object], source: str) -> None:
    unknown_keys = sorted(set(root_mapping) - _ALLOWED_ROOT_KEYS)
    if unknown_keys:
        raise JmakeConfigurationError(
            f"Manifest {source} contains unknown root fields: {', '.join(unknown_keys)}."
        )
