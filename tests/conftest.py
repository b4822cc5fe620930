"""Root pytest configuration for all tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from fsrelay.config import reset_config
from fsrelay.watching import WatchSession

pytest_plugins = ("pytest_asyncio",)


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """An empty, fully resolved directory to synchronize."""
    path = tmp_path / "root"
    path.mkdir()
    return path.resolve()


@pytest.fixture(autouse=True)
def reset_state():
    """Forget cached config and any watch roots a test left claimed."""
    reset_config()
    yield
    reset_config()
    WatchSession._active_roots.clear()
