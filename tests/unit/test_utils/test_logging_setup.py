"""Tests for logging setup."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from tuneremote.config.settings import LoggingConfig
from tuneremote.utils.logging import setup_logging


@pytest.fixture(autouse=True)
def restore_logger():
    logger = logging.getLogger("tuneremote")
    handlers, level = list(logger.handlers), logger.level
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)


class TestSetupLogging:
    def test_defaults(self) -> None:
        """Defaults give one stderr handler at INFO."""
        setup_logging()
        logger = logging.getLogger("tuneremote")
        assert logger.level == logging.INFO
        assert len(logger.handlers) == 1

    def test_repeated_setup_does_not_duplicate(self) -> None:
        """Calling setup twice keeps one handler."""
        setup_logging(LoggingConfig(level="DEBUG"))
        setup_logging(LoggingConfig(level="DEBUG"))
        logger = logging.getLogger("tuneremote")
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

    def test_file_handler(self, tmp_path: Path) -> None:
        """A log file adds a file handler."""
        log_file = tmp_path / "tuneremote.log"
        setup_logging(LoggingConfig(file=str(log_file)))

        logging.getLogger("tuneremote.test").warning("hello file")
        for handler in logging.getLogger("tuneremote").handlers:
            handler.flush()

        assert "hello file" in log_file.read_text()

    def test_unknown_level_falls_back_to_info(self) -> None:
        """Unknown level names fall back to INFO."""
        setup_logging(LoggingConfig(level="chatty"))
        assert logging.getLogger("tuneremote").level == logging.INFO
