"""Where fsrelay looks for config.yaml.

Three layers, lowest priority first:

    system   /etc/fsrelay/                      %PROGRAMDATA%\\fsrelay\\
    user     $XDG_CONFIG_HOME/fsrelay/,         %APPDATA%\\fsrelay\\
             ~/.config/fsrelay/ or ~/.fsrelay/
    project  <root>/.fsrelay/

A path is returned whether or not the file exists; the loader skips
missing files.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "fsrelay"
PROJECT_DIR = ".fsrelay"


def _windows_dir(env_var: str) -> Path | None:
    base = os.environ.get(env_var)
    return Path(base) / APP_NAME if base else None


def get_system_config_path() -> Path | None:
    if sys.platform == "win32":
        directory = _windows_dir("PROGRAMDATA")
    else:
        directory = Path("/etc") / APP_NAME
    return directory / CONFIG_FILENAME if directory else None


def get_user_config_path() -> Path | None:
    if sys.platform == "win32":
        directory = _windows_dir("APPDATA")
    elif os.environ.get("XDG_CONFIG_HOME"):
        directory = Path(os.environ["XDG_CONFIG_HOME"]) / APP_NAME
    elif (Path.home() / ".config").exists():
        directory = Path.home() / ".config" / APP_NAME
    else:
        # No XDG layout on this machine; fall back to a dot directory
        directory = Path.home() / PROJECT_DIR
    return directory / CONFIG_FILENAME if directory else None


def get_project_config_path(root: str | Path) -> Path:
    """config.yaml inside the synchronized root's .fsrelay directory."""
    return Path(root) / PROJECT_DIR / CONFIG_FILENAME


def get_config_paths(root: str | Path | None = None) -> list[Path]:
    """Config files to merge, lowest priority first.

    The project layer is only included when ``root`` is given.
    """
    candidates = [get_system_config_path(), get_user_config_path()]
    if root:
        candidates.append(get_project_config_path(root))
    return [path for path in candidates if path is not None]
