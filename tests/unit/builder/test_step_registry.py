"""Unit tests for the instruction registry."""

from __future__ import annotations

import pytest

from builder.copy_step import CopyStep
from builder.step_registry import (
    create_step,
    step_class,
    supported_instructions,
    validate_instructions,
)
from core.errors import JmakeConfigurationError
from core.manifest import BuildInstruction, Manifest, load_manifest
from tests.fixture_paths import manifest_fixture
from tests.host_fakes import build_host, step_context


def test_supported_instructions_are_closed_set() -> None:
    assert supported_instructions() == ("copy", "volume", "workdir")


def test_step_class_rejects_unknown_instruction() -> None:
    with pytest.raises(JmakeConfigurationError, match="Unsupported instruction 'run'"):
        step_class("run")


def test_validate_instructions_accepts_valid_manifest() -> None:
    validate_instructions(load_manifest(manifest_fixture("valid")))


def test_validate_instructions_reports_unknown_step_position() -> None:
    """Unknown instructions should be reported with their position."""
    manifest = load_manifest(manifest_fixture("unknown_instruction"))

    with pytest.raises(JmakeConfigurationError, match=r"#2 \(run\)"):
        validate_instructions(manifest)


def test_validate_instructions_rejects_volume_without_target() -> None:
    manifest = load_manifest(manifest_fixture("volume_without_target"))

    with pytest.raises(JmakeConfigurationError, match="'to' is undefined"):
        validate_instructions(manifest)


def test_validate_instructions_rejects_invalid_workdir() -> None:
    manifest = Manifest(name="app", from_image="freebsd")
    manifest.workdir = ["not", "a", "path"]  # type: ignore[assignment]

    with pytest.raises(JmakeConfigurationError):
        validate_instructions(manifest)


def test_create_step_builds_registered_class(tmp_path) -> None:
    host = build_host(tmp_path)
    host.store.ensure_dataset("tank/containers/app")
    context = step_context(host, "tank/containers/app", Manifest(name="app"), "a.txt", index=4)

    step = create_step(BuildInstruction(name="copy", args="a.txt"), context)

    assert isinstance(step, CopyStep) and step.describe() == "copy#4"
