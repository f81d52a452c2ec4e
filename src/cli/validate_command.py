"""Validate command wiring for Jmake CLI."""

from __future__ import annotations

import argparse
from typing import Any

from builder.image_build import validate_manifest
from core.constants import DEFAULT_MANIFEST_PATH


def add_validate_command(subparsers: Any) -> None:
    """Register validate subcommand."""
    parser = subparsers.add_parser(
        "validate",
        help="Check a manifest and its instructions without touching the host",
    )
    parser.add_argument(
        "-m",
        "--manifest",
        default=DEFAULT_MANIFEST_PATH,
        help="Path to the YAML build manifest",
    )


def run_validate_command(args: argparse.Namespace) -> int:
    """Validate the manifest and print a one-line summary."""
    manifest = validate_manifest(args.manifest)
    print(f"{manifest.name}\t{manifest.from_image}\t{len(manifest.building)} steps")
    return 0
