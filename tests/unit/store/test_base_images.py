"""Unit tests for base image resolution."""

from __future__ import annotations

import pytest

from core.errors import JmakeNotFoundError
from store.base_images import base_image_dataset, resolve_base_image
from tests.host_fakes import RecordingRunner, build_host, seed_base_image


def test_base_image_dataset_drops_version(tmp_path) -> None:
    """Versioned references should map onto the image dataset."""
    host = build_host(tmp_path)

    dataset = base_image_dataset("freebsd-13.2", host.config)

    assert dataset == "tank/containers/freebsd"


def test_resolve_base_image_uses_local_dataset(tmp_path) -> None:
    """Existing base images should not trigger a package install."""
    runner = RecordingRunner()
    host = build_host(tmp_path, runner=runner)
    seed_base_image(host)

    dataset = resolve_base_image("freebsd-13.2", host.config, host.store, runner)

    assert dataset == "tank/containers/freebsd" and runner.commands == []


def test_resolve_base_image_fetches_missing_image(tmp_path) -> None:
    """Missing base images should be installed through pkg."""
    host = build_host(tmp_path)
    runner = RecordingRunner(on_run=lambda: seed_base_image(host))

    dataset = resolve_base_image("freebsd", host.config, host.store, runner)

    assert dataset == "tank/containers/freebsd" and runner.commands == [
        ["pkg", "install", "-y", "freebsd"]
    ]


def test_resolve_base_image_raises_when_fetch_fails(tmp_path) -> None:
    """Failed installs should surface as not-found errors."""
    runner = RecordingRunner(fail=True)
    host = build_host(tmp_path, runner=runner)

    with pytest.raises(JmakeNotFoundError):
        resolve_base_image("freebsd", host.config, host.store, runner)

    assert not host.store.exists("tank/containers/freebsd")
