"""Tests de la configuration de la journalisation."""

import logging

import pytest

from concordimmo.logger import LOGGER_NAME, configure_logging, reset_logging


@pytest.fixture(autouse=True)
def _clean_logger():
    yield
    reset_logging()


def test_console_only():
    logger = configure_logging("debug")
    assert logger.name == LOGGER_NAME
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], logging.StreamHandler)


def test_file_handler(tmp_path):
    logger = configure_logging("INFO", tmp_path / "logs", enable_console=False)
    assert len(logger.handlers) == 1
    logging.getLogger("concordimmo.matching.linker").info("hello")
    logger.handlers[0].flush()
    (log_file,) = (tmp_path / "logs").glob("concordimmo_*.log")
    content = log_file.read_text(encoding="utf-8")
    assert "INFO" in content
    assert "concordimmo.matching.linker" in content
    assert "hello" in content


def test_reconfigure_replaces_handlers():
    configure_logging()
    logger = configure_logging()
    assert len(logger.handlers) == 1


def test_reset_logging():
    configure_logging()
    reset_logging()
    assert logging.getLogger(LOGGER_NAME).handlers == []
