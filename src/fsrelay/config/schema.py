"""Configuration schema dataclasses for fsrelay.

Defines the structure of configuration at all levels (system, user, project).
All fields have defaults so partial configs merge together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Binding(str, Enum):
    """Which transport shape the server exposes."""

    WEBSOCKET = "websocket"  # one duplex connection at "/"
    HTTP = "http"  # POST /write_file + GET /poll


@dataclass
class ServerConfig:
    """Listener configuration.

    Example config.yaml:
        server:
          binding: websocket
          port: 8080
    """

    host: str = "127.0.0.1"
    port: int = 8080
    binding: Binding = Binding.WEBSOCKET


@dataclass
class WatchConfig:
    """Watched tree configuration.

    Example config.yaml:
        watch:
          root: ./game
          queue_size: 256
          ignore_patterns:
            - "*/.git/*"
    """

    root: str | None = None  # Default: current working directory
    queue_size: int = 256  # Bounded hand-off between watcher and relay
    ignore_patterns: list[str] = field(default_factory=list)


@dataclass
class PollConfig:
    """HTTP long-poll configuration."""

    timeout: float = 30.0  # Seconds before GET /poll returns an empty list


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0..4, wins over level
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object."""

    server: ServerConfig = field(default_factory=ServerConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
    poll: PollConfig = field(default_factory=PollConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Unknown top-level sections, kept for forward compatibility
    extra: dict[str, Any] = field(default_factory=dict)
