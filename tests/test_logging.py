"""Tests for logging setup."""

import logging

import pytest

from nelson.utils.logging import LOGGER_NAME, setup_logging


@pytest.fixture(autouse=True)
def restore_logger():
    """Leave the nelson logger as the test found it."""
    logger = logging.getLogger(LOGGER_NAME)
    saved = (logger.level, list(logger.handlers), logger.propagate)
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(saved[0])
    for handler in saved[1]:
        logger.addHandler(handler)
    logger.propagate = saved[2]


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_repeated_setup_does_not_duplicate_handlers(self):
        setup_logging("DEBUG")
        logger = setup_logging("DEBUG")

        assert logger.name == "nelson"
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert logger.propagate is False

    def test_unknown_level_falls_back_to_info(self):
        assert setup_logging("chatty").level == logging.INFO

    def test_env_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        assert setup_logging().level == logging.WARNING

    def test_log_file(self, tmp_path):
        """Test that records are mirrored into the log file."""
        log_file = tmp_path / "logs" / "nelson.log"
        setup_logging("INFO", str(log_file))

        logging.getLogger("nelson.safety.screener").info("screened query q1")
        for handler in logging.getLogger(LOGGER_NAME).handlers:
            handler.flush()

        assert "screened query q1" in log_file.read_text(encoding="utf-8")

    def test_client_loggers_quieted(self):
        setup_logging("DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING
