"""Test logging setup."""

import logging

import pytest

from tappha_analytics.utils.logging import (TimezoneAwareFormatter,
                                            configure_module_logger,
                                            setup_logging)


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_logging_replaces_root_handlers(root_logger, tmp_path) -> None:
    log_file = tmp_path / "analytics.log"

    setup_logging(level="debug", timezone="UTC", log_file=str(log_file))

    assert root_logger.level == logging.DEBUG
    assert len(root_logger.handlers) == 2
    assert isinstance(root_logger.handlers[0].formatter, TimezoneAwareFormatter)
    assert logging.getLogger("influxdb_client").level == logging.WARNING
    for handler in root_logger.handlers:
        handler.close()


def test_module_logger_has_single_prefixed_handler() -> None:
    name = "tappha_analytics.tests.module_logger"

    configure_module_logger(name, "pattern", timezone="UTC")
    logger = configure_module_logger(name, "pattern", timezone="UTC", log_level="warning")

    assert logger.propagate is False
    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1
    assert "[PATTERN]" in logger.handlers[0].formatter._fmt


def test_formatter_uses_configured_timezone() -> None:
    formatter = TimezoneAwareFormatter(fmt="%(message)s", timezone="UTC")
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
    record.created = 0.0

    assert formatter.formatTime(record) == "1970-01-01 00:00:00"
