"""
Unit tests for the log sink.
"""

import logging

from ai_credit_watch.core.log_sink import LoggingSink, LogLevel, safe_log


class TestLoggingSink:
    """Test forwarding to the logging module."""

    def setup_method(self):
        self.logger = logging.getLogger("tests.log_sink")

    def test_messages_are_tagged(self, caplog):
        sink = LoggingSink(logger=self.logger)

        with caplog.at_level(logging.DEBUG, logger="tests.log_sink"):
            sink.log(LogLevel.INFO, "Account balance fetched successfully: 5 nanos")

        assert caplog.records[0].getMessage() == "[Balance] Account balance fetched successfully: 5 nanos"
        assert caplog.records[0].levelno == logging.INFO

    def test_levels_map_to_logging_levels(self, caplog):
        sink = LoggingSink(logger=self.logger)

        with caplog.at_level(logging.DEBUG, logger="tests.log_sink"):
            sink.log(LogLevel.DEBUG, "d")
            sink.log(LogLevel.WARN, "w")
            sink.log(LogLevel.ERROR, "e")

        assert [r.levelno for r in caplog.records] == [logging.DEBUG, logging.WARNING, logging.ERROR]

    def test_error_stack_is_appended(self, caplog):
        sink = LoggingSink(logger=self.logger, source_tag="")

        with caplog.at_level(logging.ERROR, logger="tests.log_sink"):
            sink.log(LogLevel.ERROR, "Fetch error: boom", "Traceback: line 1")

        assert caplog.records[0].getMessage() == "Fetch error: boom\nTraceback: line 1"


class _BrokenSink:
    def log(self, level, message, stack=None):
        raise OSError("output channel closed")


def test_safe_log_reports_sink_failure(caplog):
    with caplog.at_level(logging.ERROR, logger="ai_credit_watch.core.log_sink"):
        safe_log(_BrokenSink(), LogLevel.INFO, "hello")

    assert "Failed to forward message to log sink" in caplog.text
