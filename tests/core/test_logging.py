"""Tests for logging configuration."""

import logging

import pytest

from nounify.core.logging import LOG_FORMAT, QUIET_LOGGERS, configure_logging, get_logger


@pytest.fixture
def root_logger(monkeypatch):
    """Root logger with no handlers; levels restored after the test."""
    root = logging.getLogger()
    saved = {name: logging.getLogger(name).level for name in QUIET_LOGGERS}
    monkeypatch.setattr(root, "handlers", [])
    monkeypatch.setattr(root, "level", root.level)
    yield root
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_installs_stdout_handler_once(self, root_logger):
        configure_logging()
        configure_logging()

        assert len(root_logger.handlers) == 1
        assert root_logger.handlers[0].formatter._fmt == LOG_FORMAT

    def test_level_from_settings(self, monkeypatch, root_logger):
        from nounify.core.config import get_settings

        monkeypatch.setenv("LOG_LEVEL", "debug")
        get_settings.cache_clear()

        configure_logging()

        assert root_logger.level == logging.DEBUG

    def test_explicit_level_wins(self, root_logger):
        configure_logging("error")

        assert root_logger.level == logging.ERROR

    def test_quiets_third_party_loggers(self, root_logger):
        configure_logging("debug")

        assert logging.getLogger("insightface").level == logging.WARNING


def test_get_logger_is_module_logger():
    logger = get_logger("nounify.render.surface")

    assert logger is logging.getLogger("nounify.render.surface")
