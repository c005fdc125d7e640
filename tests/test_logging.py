"""Tests for logging setup."""

import logging

from resource_api.core.logging import LOGGER_NAME, configure_logging


def _own_handlers() -> list[logging.Handler]:
    return [h for h in logging.getLogger(LOGGER_NAME).handlers if h.get_name() == LOGGER_NAME]


def test_configure_logging_adds_one_named_handler():
    configure_logging("DEBUG")
    configure_logging("WARNING")

    assert len(_own_handlers()) == 1
    assert logging.getLogger(LOGGER_NAME).level == logging.WARNING
