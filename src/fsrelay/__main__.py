"""Entry point for running fsrelay.

Usage:
    python -m fsrelay --root ./game

Serves the relay on 127.0.0.1:8080 until interrupted.
"""

import sys

from fsrelay.cli import run_cli


def main() -> None:
    """Run the fsrelay server."""
    sys.exit(run_cli(sys.argv[1:]))


if __name__ == "__main__":
    main()
