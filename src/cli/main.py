"""Jmake CLI entry points.

This module exposes image build and manifest validation commands.
It maps argparse commands onto builder calls.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from typing import Sequence

from cli.build_command import add_build_command, run_build_command
from cli.validate_command import add_validate_command, run_validate_command
from core.config import JmakeConfig


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="jmake", description="Transactional jail image builder")
    parser.add_argument(
        "--containers-location",
        help="Override JMAKE_CONTAINERS_LOCATION for this command",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    add_build_command(subparsers)
    add_validate_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the Jmake CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "build":
        return run_build_command(_build_config(args.containers_location), args)
    if args.command == "validate":
        return run_validate_command(args)
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_config(containers_location: str | None) -> JmakeConfig:
    """Build runtime config with optional containers-location override.

    Args:
        containers_location: Optional override dataset name.

    Returns:
        Runtime configuration.
    """
    config = JmakeConfig.from_env()
    if containers_location:
        config = replace(config, containers_location=containers_location.strip("/"))
    return config
