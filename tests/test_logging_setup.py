"""Tests for logging setup."""

import logging

import pytest

from order_autopilot import logging_setup


@pytest.fixture
def package_logger():
    logger = logging.getLogger("order_autopilot")
    saved = (logger.level, logger.handlers[:], logger.propagate)
    yield logger
    logger.setLevel(saved[0])
    logger.handlers[:] = saved[1]
    logger.propagate = saved[2]


def test_setup_logging_is_idempotent(package_logger, monkeypatch) -> None:
    """Test that repeated setup does not stack handlers."""
    monkeypatch.setattr(logging_setup, "_is_configured", False)

    logging_setup.setup_logging("DEBUG")
    logging_setup.setup_logging("ERROR")

    assert len(package_logger.handlers) == 1
    assert package_logger.level == logging.DEBUG
    assert package_logger.propagate is False


def test_setup_logging_reads_environment(package_logger, monkeypatch) -> None:
    """Test LOG_LEVEL fallback and forced reconfiguration."""
    monkeypatch.setattr(logging_setup, "_is_configured", False)
    monkeypatch.setenv("LOG_LEVEL", "warning")

    logging_setup.setup_logging()
    assert package_logger.level == logging.WARNING

    logging_setup.setup_logging("INFO", force=True)
    assert package_logger.level == logging.INFO
    assert len(package_logger.handlers) == 1
