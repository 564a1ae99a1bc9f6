"""Tests for the logging setup."""

import logging

import pytest

from neo_fuzzy.logger import LOG_FILE_ENV_VAR, LOG_LEVEL_ENV_VAR, configure_logging


@pytest.fixture
def fresh_logger(monkeypatch):
    monkeypatch.setenv(LOG_FILE_ENV_VAR, "")
    name = "neo_fuzzy_logger_test"
    yield logging.getLogger(name), name
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


class TestConfigureLogging:
    def test_level_from_env(self, fresh_logger, monkeypatch):
        logger, name = fresh_logger
        monkeypatch.setenv(LOG_LEVEL_ENV_VAR, "debug")
        configure_logging(name)
        assert logger.level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self, fresh_logger, monkeypatch, caplog):
        logger, name = fresh_logger
        monkeypatch.setenv(LOG_LEVEL_ENV_VAR, "verbose")

        configure_logging(name)

        assert logger.level == logging.INFO
        assert "Unknown log level VERBOSE" in caplog.text

    def test_empty_log_file_disables_file_handler(self, fresh_logger):
        logger, name = fresh_logger
        configure_logging(name)
        assert not any(isinstance(h, logging.FileHandler) for h in logger.handlers)

    def test_configures_once(self, fresh_logger):
        logger, name = fresh_logger
        configure_logging(name)
        configure_logging(name)
        assert len(logger.handlers) == 1
