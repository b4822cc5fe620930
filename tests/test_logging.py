"""Tests for logging configuration."""

from __future__ import annotations

import io
import logging
from pathlib import Path

import pytest

import fsrelay.logging as relay_logging
from fsrelay.config import LoggingConfig
from fsrelay.logging import TRACE, VERBOSE, get_logger, resolve_level, setup_logging


@pytest.fixture
def fresh_logger(monkeypatch: pytest.MonkeyPatch):
    """Let setup_logging run again and drop any handlers it adds."""
    monkeypatch.setattr(relay_logging, "_initialized", False)
    logger = relay_logging.logger
    handlers = list(logger.handlers)
    level = logger.level
    yield logger
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers = handlers
    logger.setLevel(level)


class TestResolveLevel:
    """Tests for picking the effective level."""

    def test_default_is_info(self) -> None:
        assert resolve_level(None) == logging.INFO
        assert resolve_level(LoggingConfig()) == logging.INFO

    @pytest.mark.parametrize(
        ("verbose", "level"),
        [(0, logging.ERROR), (1, logging.WARNING), (2, logging.INFO), (3, VERBOSE), (4, TRACE)],
    )
    def test_verbosity(self, verbose: int, level: int) -> None:
        assert resolve_level(LoggingConfig(verbose=verbose)) == level

    def test_named_level_case_insensitive(self) -> None:
        assert resolve_level(LoggingConfig(level="debug")) == logging.DEBUG

    def test_unknown_named_level_is_info(self) -> None:
        assert resolve_level(LoggingConfig(level="chatty")) == logging.INFO

    def test_out_of_range_verbosity_clamped(self) -> None:
        assert resolve_level(LoggingConfig(verbose=9)) == TRACE
        assert resolve_level(LoggingConfig(verbose=-1)) == logging.ERROR

    def test_verbose_wins_over_level(self) -> None:
        assert resolve_level(LoggingConfig(level="ERROR", verbose=4)) == TRACE


class TestSetupLogging:
    """Tests for handler installation."""

    def test_file_handler(self, fresh_logger: logging.Logger, tmp_path: Path) -> None:
        log_file = tmp_path / "relay.log"
        setup_logging(LoggingConfig(level="DEBUG", file=str(log_file)))

        get_logger("relay").debug("hello %s", "file")
        for handler in fresh_logger.handlers:
            handler.flush()

        assert fresh_logger.level == logging.DEBUG
        assert "debug fsrelay.relay: hello file" in log_file.read_text()

    def test_env_log_file(
        self, fresh_logger: logging.Logger, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        log_file = tmp_path / "env.log"
        monkeypatch.setenv("FSRELAY_LOG", str(log_file))

        setup_logging()
        get_logger().info("from env")
        for handler in fresh_logger.handlers:
            handler.flush()

        assert "from env" in log_file.read_text()

    def test_unopenable_file_falls_back_to_stderr(
        self, fresh_logger: logging.Logger, tmp_path: Path
    ) -> None:
        setup_logging(LoggingConfig(file=str(tmp_path / "missing" / "relay.log")))

        added = fresh_logger.handlers[-1]
        assert not isinstance(added, logging.FileHandler)

    def test_no_file_and_piped_stderr_adds_nothing(
        self, fresh_logger: logging.Logger, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("FSRELAY_LOG", raising=False)
        monkeypatch.setattr(relay_logging.sys, "stderr", io.StringIO())
        count = len(fresh_logger.handlers)

        setup_logging()

        assert len(fresh_logger.handlers) == count

    def test_second_call_is_noop(self, fresh_logger: logging.Logger, tmp_path: Path) -> None:
        setup_logging(LoggingConfig(file=str(tmp_path / "a.log")))
        count = len(fresh_logger.handlers)

        setup_logging(LoggingConfig(file=str(tmp_path / "b.log")))

        assert len(fresh_logger.handlers) == count
        assert not (tmp_path / "b.log").exists()


def test_child_loggers_share_root() -> None:
    assert get_logger("watching").name == "fsrelay.watching"
    assert get_logger() is relay_logging.logger
