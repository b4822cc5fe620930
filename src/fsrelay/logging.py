"""Logging for fsrelay.

Everything logs under the ``fsrelay`` logger through :func:`get_logger`.
Records go to the file named by ``logging.file`` (or ``FSRELAY_LOG``);
without one they go to stderr, but only when stderr is a terminal so
that a relay launched by an editor plugin stays quiet on its pipes.

``--verbose N`` maps onto levels as error(0), warning(1), info(2),
verbose(3) and trace(4).
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fsrelay.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15
for _level, _name in ((TRACE, "TRACE"), (VERBOSE, "VERBOSE")):
    logging.addLevelName(_level, _name)

logger = logging.getLogger("fsrelay")

_initialized = False

_VERBOSITY_LEVELS = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)
_NAMED_LEVELS = {"TRACE": TRACE, "VERBOSE": VERBOSE, "WARN": logging.WARNING}

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class _RelayFormatter(logging.Formatter):
    """``12:00:01 warning fsrelay.relay: ...``"""

    def __init__(self) -> None:
        super().__init__(LOG_FORMAT, datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        return super().format(record)


def resolve_level(config: LoggingConfig | None) -> int:
    """Numeric level for ``config``; ``verbose`` beats ``level``, default INFO."""
    if config is None:
        return logging.INFO
    if config.verbose is not None:
        index = min(max(config.verbose, 0), len(_VERBOSITY_LEVELS) - 1)
        return _VERBOSITY_LEVELS[index]
    if not config.level:
        return logging.INFO
    name = config.level.upper()
    if name in _NAMED_LEVELS:
        return _NAMED_LEVELS[name]
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _open_handler(log_path: str | None) -> logging.Handler | None:
    if log_path:
        try:
            return logging.FileHandler(os.path.expanduser(log_path), mode="a", encoding="utf-8")
        except OSError as e:
            print(f"[fsrelay] Failed to open log file: {e}", file=sys.stderr)
            return logging.StreamHandler(sys.stderr)
    if sys.stderr.isatty():
        return logging.StreamHandler(sys.stderr)
    return None


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Install the fsrelay handler. Only the first call has any effect."""
    global _initialized
    if _initialized:
        return
    _initialized = True

    level = resolve_level(config)
    logger.setLevel(level)

    handler = _open_handler((config.file if config else None) or os.environ.get("FSRELAY_LOG"))
    if handler is None:
        return
    handler.setLevel(level)
    handler.setFormatter(_RelayFormatter())
    logger.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """``fsrelay.<name>``, or the ``fsrelay`` logger itself when ``name`` is empty."""
    return logger.getChild(name) if name else logger
