"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Environment variable overrides
- Config caching with reset support
- Conversion from dict to typed Config dataclass
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from fsrelay.config.merge import merge_configs
from fsrelay.config.paths import get_config_paths
from fsrelay.config.schema import (
    Binding,
    Config,
    LoggingConfig,
    PollConfig,
    ServerConfig,
    WatchConfig,
)

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("fsrelay.config")

_cached_config: Config | None = None


class ConfigError(Exception):
    """Raised when a configuration value is invalid."""


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides() -> dict[str, Any]:
    """Build config dict from environment variables."""
    overrides: dict[str, Any] = {}

    log_path = os.environ.get("FSRELAY_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    root = os.environ.get("FSRELAY_ROOT")
    if root:
        overrides.setdefault("watch", {})["root"] = root

    return overrides


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' section must be a mapping")
    return value


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert merged dict to typed Config dataclass.

    Raises:
        ConfigError: If a value has the wrong type or is out of range.
    """
    server_data = _section(data, "server")
    binding_raw = server_data.get("binding", Binding.WEBSOCKET.value)
    try:
        binding = Binding(binding_raw)
    except ValueError as e:
        raise ConfigError(
            f"server.binding must be one of {[b.value for b in Binding]}, got {binding_raw!r}"
        ) from e
    try:
        port = int(server_data.get("port", 8080))
    except (TypeError, ValueError) as e:
        raise ConfigError("server.port must be an integer") from e
    server = ServerConfig(
        host=str(server_data.get("host", "127.0.0.1")),
        port=port,
        binding=binding,
    )

    watch_data = _section(data, "watch")
    try:
        queue_size = int(watch_data.get("queue_size", 256))
    except (TypeError, ValueError) as e:
        raise ConfigError("watch.queue_size must be an integer") from e
    if queue_size <= 0:
        raise ConfigError("watch.queue_size must be positive")
    ignore_patterns = watch_data.get("ignore_patterns", [])
    if not isinstance(ignore_patterns, list):
        raise ConfigError("watch.ignore_patterns must be a list")
    root = watch_data.get("root")
    watch = WatchConfig(
        root=str(root) if root else None,
        queue_size=queue_size,
        ignore_patterns=[p for p in ignore_patterns if isinstance(p, str)],
    )

    poll_data = _section(data, "poll")
    try:
        timeout = float(poll_data.get("timeout", 30.0))
    except (TypeError, ValueError) as e:
        raise ConfigError("poll.timeout must be numeric") from e
    if timeout <= 0:
        raise ConfigError("poll.timeout must be positive")
    poll = PollConfig(timeout=timeout)

    log_data = _section(data, "logging")
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=log_data.get("verbose"),
        file=log_data.get("file"),
    )

    known_keys = {"server", "watch", "poll", "logging"}
    extra = {k: v for k, v in data.items() if k not in known_keys}

    return Config(
        server=server,
        watch=watch,
        poll=poll,
        logging=logging_config,
        extra=extra,
    )


def load_config(
    root: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
    reload: bool = False,
) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Explicit overrides (command line)
    2. Environment variables
    3. Project config ($root/.fsrelay/config.yaml)
    4. User config
    5. System config

    Args:
        root: Synchronized root used to find the project config.
            Defaults to FSRELAY_ROOT or the current directory.
        overrides: Config dict applied last.
        reload: Force reload even if cached.
    """
    global _cached_config

    if _cached_config is not None and not reload and root is None and not overrides:
        return _cached_config

    project_root = root or os.environ.get("FSRELAY_ROOT") or Path.cwd()

    configs: list[dict[str, Any]] = []
    for path in get_config_paths(project_root):
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()
    if env_config:
        configs.append(env_config)

    if overrides:
        configs.append(overrides)

    merged = merge_configs(*configs)
    watch_data = merged.get("watch")
    if watch_data is None or isinstance(watch_data, dict):
        merged["watch"] = {"root": str(project_root), **(watch_data or {})}

    config = dict_to_config(merged)

    if root is None and not overrides:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it if needed."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config."""
    global _cached_config
    _cached_config = None


def resolve_root(config: Config) -> Path:
    """Absolute, symlink-resolved base directory for the relay."""
    root = Path(config.watch.root) if config.watch.root else Path.cwd()
    return root.expanduser().resolve()
