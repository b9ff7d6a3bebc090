"""Tests for logging setup and module loggers."""

import logging

from amm_arb import logging_config
from amm_arb.utils import get_logger


def test_get_logger_basic():
    """Test basic get_logger functionality."""
    logger = get_logger(__name__)
    assert isinstance(logger, logging.Logger)
    assert logger.name == __name__


def test_resolve_level_from_environment(monkeypatch):
    monkeypatch.setenv(logging_config.LOG_LEVEL_ENV, "debug")
    assert logging_config.resolve_level() == logging.DEBUG


def test_resolve_level_unknown_falls_back_to_info():
    assert logging_config.resolve_level("chatty") == logging.INFO
    assert logging_config.resolve_level(logging.WARNING) == logging.WARNING


def test_setup_installs_single_console_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        logging_config.setup("warning")
        logging_config.setup("warning")

        assert len(root.handlers) == 1
        assert root.level == logging.WARNING
        assert logging.getLogger("amm_arb").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
