"""Unit tests for logger helpers."""

import logging

from pgadapter.utils.loggings import ROOT_LOGGER_NAME, configure_logging, get_logger


class TestLoggings:
    def test_module_loggers_live_under_package(self):
        assert get_logger("pgadapter.storage.codec").name == "pgadapter.storage.codec"
        assert get_logger("tools").name == "pgadapter.tools"
        assert get_logger().name == ROOT_LOGGER_NAME

    def test_configure_logging_adds_one_handler(self):
        logger = configure_logging("debug")
        handlers = list(logger.handlers)
        configure_logging(logging.WARNING)

        assert logger.handlers == handlers
        assert len(handlers) >= 1
        assert logger.level == logging.WARNING
        assert logger.propagate is False
