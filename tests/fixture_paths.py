"""Shared fixture path helpers for tests."""

from __future__ import annotations

from pathlib import Path


def fixture_path(relative_path: str) -> Path:
    """Resolve a fixture path relative to tests/fixtures.

    Args:
        relative_path: Path under fixtures root.

    Returns:
        Absolute fixture path.
    """
    tests_root = Path(__file__).resolve().parent
    return tests_root / "fixtures" / relative_path


def manifest_fixture(name: str) -> Path:
    """Resolve a YAML manifest under tests/fixtures/manifests."""
    return fixture_path(f"manifests/{name}.yml")


def context_fixture() -> Path:
    """Return the sample build-context directory."""
    return fixture_path("context")
