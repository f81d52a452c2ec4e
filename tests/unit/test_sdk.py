"""Unit tests for the public SDK surface."""

from __future__ import annotations

import jmake
from tests.fixture_paths import manifest_fixture


def test_sdk_validates_manifest() -> None:
    manifest = jmake.validate_manifest(str(manifest_fixture("valid")))

    assert isinstance(manifest, jmake.Manifest) and manifest.from_image == "freebsd-13.2"


def test_sdk_exposes_transactional_invoker() -> None:
    """Scripted callers can run their own reversible actions."""
    calls: list[str] = []
    with jmake.TransactionalInvoker() as invoker:
        invoker.submit(jmake.FunctionAction(run=lambda: calls.append("run")))

    assert calls == ["run"] and invoker.state == "committed"
