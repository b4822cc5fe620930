"""Command-line interface for fsrelay."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from fsrelay import __version__
from fsrelay.config import Binding, Config, ConfigError, load_config, resolve_root
from fsrelay.logging import get_logger, setup_logging

log = get_logger()


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="fsrelay",
        description="Relay filesystem changes to a remote peer and apply its writes",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=None,
        help="Increase verbosity (repeat up to 4 times)",
    )
    parser.add_argument(
        "--root",
        type=Path,
        help="Directory to synchronize (default: current directory)",
    )
    parser.add_argument(
        "--binding",
        choices=[b.value for b in Binding],
        help="Transport to expose (default: websocket)",
    )
    parser.add_argument(
        "--log-file",
        help="Append logs to this file",
    )
    return parser


def overrides_from_args(parsed: argparse.Namespace) -> dict[str, Any]:
    """Translate parsed arguments into a config override dict."""
    overrides: dict[str, Any] = {}
    if parsed.root is not None:
        overrides["watch"] = {"root": str(parsed.root)}
    if parsed.binding is not None:
        overrides["server"] = {"binding": parsed.binding}
    logging_overrides: dict[str, Any] = {}
    if parsed.verbose is not None:
        # -v means "more than the default info level"
        logging_overrides["verbose"] = min(2 + parsed.verbose, 4)
    if parsed.log_file:
        logging_overrides["file"] = parsed.log_file
    if logging_overrides:
        overrides["logging"] = logging_overrides
    return overrides


async def _serve(config: Config) -> None:
    from fsrelay.server import RelayServer

    await RelayServer(config).serve()


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    try:
        config = load_config(root=parsed.root, overrides=overrides_from_args(parsed))
    except ConfigError as e:
        setup_logging()
        log.error("%s", e)
        return 2

    setup_logging(config.logging)

    root = resolve_root(config)
    if not root.is_dir():
        log.error("Root %s is not a directory", root)
        return 2

    log.info("Starting fsrelay %s for %s", __version__, root)
    try:
        asyncio.run(_serve(config))
    except KeyboardInterrupt:
        log.info("Interrupted")
    return 0
