"""Build command wiring for Jmake CLI."""

from __future__ import annotations

import argparse
from typing import Any

from builder.image_build import build_image
from core.config import JmakeConfig
from core.constants import DEFAULT_CONTEXT_PATH, DEFAULT_MANIFEST_PATH
from core.types import BuildOptions


def add_build_command(subparsers: Any) -> None:
    """Register build subcommand."""
    parser = subparsers.add_parser("build", help="Build a jail image from a manifest")
    parser.add_argument(
        "-m",
        "--manifest",
        default=DEFAULT_MANIFEST_PATH,
        help="Path to the YAML build manifest",
    )
    parser.add_argument(
        "-c",
        "--context",
        default=DEFAULT_CONTEXT_PATH,
        help="Build context directory mounted read-only into the image",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Destroy an existing image dataset with the same name",
    )


def run_build_command(config: JmakeConfig, args: argparse.Namespace) -> int:
    """Build the image and print the created dataset."""
    options = BuildOptions(
        manifest_path=args.manifest,
        context_path=args.context,
        force=args.force,
    )
    result = build_image(options, config)
    print(result.dataset)
    return 0
