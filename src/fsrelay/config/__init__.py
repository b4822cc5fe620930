"""Configuration management for fsrelay.

Hierarchical YAML configuration with:
- System-level config (/etc/fsrelay/ or %PROGRAMDATA%)
- User-level config (~/.config/fsrelay/ or %APPDATA%)
- Project-level config ($root/.fsrelay/)
- Environment variable overrides
- Command-line overrides (highest priority)

Example usage:
    from fsrelay.config import load_config, resolve_root

    config = load_config(root="/path/to/project")
    print(config.server.binding, resolve_root(config))
"""

from fsrelay.config.loader import (
    ConfigError,
    get_config,
    load_config,
    reset_config,
    resolve_root,
)
from fsrelay.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from fsrelay.config.schema import (
    Binding,
    Config,
    LoggingConfig,
    PollConfig,
    ServerConfig,
    WatchConfig,
)

__all__ = [
    "Config",
    "ConfigError",
    "load_config",
    "get_config",
    "reset_config",
    "resolve_root",
    "Binding",
    "ServerConfig",
    "WatchConfig",
    "PollConfig",
    "LoggingConfig",
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "get_project_config_path",
]
