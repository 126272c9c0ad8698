"""
Log sink for balance events.

Consumers hand messages to a sink as (level, message, stack). The default
sink forwards them to the standard logging module.
"""

import logging
from enum import Enum
from typing import Optional, Protocol

LOGGER = logging.getLogger(__name__)

DEFAULT_SOURCE_TAG = "[Balance]"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class LogLevel(Enum):
    """Levels accepted by a log sink."""
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


_STDLIB_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class LogSink(Protocol):
    """Anything that accepts (level, message, optional stack trace)."""

    def log(self, level: LogLevel, message: str, stack: Optional[str] = None) -> None:
        ...


class LoggingSink:
    """Sink that writes to a stdlib logger with a source tag prefix."""

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        source_tag: str = DEFAULT_SOURCE_TAG
    ):
        self.logger = logger or logging.getLogger("ai_credit_watch.balance")
        self.source_tag = source_tag

    def log(self, level: LogLevel, message: str, stack: Optional[str] = None) -> None:
        text = f"{self.source_tag} {message}" if self.source_tag else message
        # Unknown levels fall back to INFO
        stdlib_level = _STDLIB_LEVELS.get(level, logging.INFO)
        if stack and level is LogLevel.ERROR:
            text = f"{text}\n{stack}"
        self.logger.log(stdlib_level, text)


def safe_log(
    sink: LogSink,
    level: LogLevel,
    message: str,
    stack: Optional[str] = None
) -> None:
    """Forward to a sink; a failing sink is reported here and never raised."""
    try:
        sink.log(level, message, stack)
    except Exception:
        LOGGER.exception("Failed to forward message to log sink")


def configure_logging(verbose: bool = False) -> None:
    """Configure root logging for command-line use."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT
    )
