from __future__ import annotations

import logging
import sys

"""Logging initialization with labeled prefixes.

Every line the CLI prints goes through the "catalog_import" logger:
- INFO / WARN / ERROR prefixes replace the level names
- SUMMARY (level 25) carries the one-line session summary
- output goes to stdout; module loggers (logging.getLogger(__name__)) are
  children of "catalog_import" and share the handler
"""

__all__ = [
    "LOGGER_NAME",
    "SUMMARY_LEVEL",
    "get_logger",
    "log_summary",
    "reset_logging",
    "set_debug",
    "setup_logging",
]

LOGGER_NAME = "catalog_import"

# Custom SUMMARY level (between INFO=20 and WARNING=30)
SUMMARY_LEVEL = 25

_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """Formats records as "LABEL message"."""

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
        SUMMARY_LEVEL: "SUMMARY",
    }

    def format(self, record: logging.LogRecord) -> str:
        level_label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        return f"{level_label} {record.getMessage()}"


def setup_logging() -> logging.Logger:
    """Configure the application logger (idempotent) and return it."""
    global _logger

    if _logger is not None:
        return _logger

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.INFO)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)

    # Prevent propagation to root logger to avoid duplicate output
    logger.propagate = False

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    """Return the application logger, configuring it on first use."""
    if _logger is None:
        return setup_logging()
    return _logger


def set_debug() -> None:
    logger = get_logger()
    for h in logger.handlers:
        h.setLevel(logging.DEBUG)
    logger.setLevel(logging.DEBUG)
    logger.debug("debug mode enabled")


def log_summary(message: str) -> None:
    """Log `message` at SUMMARY level."""
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Reset the global logger state. Mainly for testing purposes."""
    global _logger
    if _logger is not None:
        for handler in _logger.handlers[:]:
            _logger.removeHandler(handler)
    _logger = None
