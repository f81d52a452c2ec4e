"""Module entry point for ``python -m cli``."""

from __future__ import annotations

import sys

from cli.main import main
from core.errors import JmakeError


def run() -> int:
    """Run the CLI and map domain errors to exit status 1."""
    try:
        return main()
    except JmakeError as error:
        print(f"error: {error}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(run())
