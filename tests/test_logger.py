"""Tests for logging setup."""

import logging

import pytest

from codestats.config.settings import LoggingConfig
from codestats.utils.logger import LoggerManager, get_logger, get_log_stats, set_log_level, setup_logging


@pytest.fixture(autouse=True)
def reset_root_logger():
    yield
    setup_logging(LoggingConfig(enable_console_logging=False))


def test_child_loggers_share_root_handlers():
    root = setup_logging(LoggingConfig(log_level="DEBUG"))

    assert root.name == "codestats"
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert get_logger("cache.redis_manager").name == "codestats.cache.redis_manager"
    assert get_logger("codestats.health_check").name == "codestats.health_check"
    assert not get_logger("cache.redis_manager").handlers


def test_reconfigure_replaces_handlers():
    setup_logging(LoggingConfig())
    root = setup_logging(LoggingConfig(), enable_console_logging=False)

    assert root.handlers == []
    assert get_log_stats()["loguru_sinks"] == 0


def test_file_logging_writes_to_log_dir(tmp_path):
    setup_logging(LoggingConfig(log_dir=str(tmp_path), enable_file_logging=True, enable_console_logging=False))

    get_logger("cache.multi_level_cache").warning("shared tier unavailable")
    for handler in logging.getLogger("codestats").handlers:
        handler.flush()

    assert "shared tier unavailable" in (tmp_path / "codestats.log").read_text(encoding="utf-8")
    assert (tmp_path / "codestats_error.log").read_text(encoding="utf-8") == ""
    assert "codestats.log" in get_log_stats()["log_files"]


def test_set_level():
    setup_logging(LoggingConfig(log_level="INFO", enable_console_logging=False))
    set_log_level("error")

    assert logging.getLogger("codestats").level == logging.ERROR
    assert LoggerManager.get_stats()["log_level"] == "ERROR"
