"""Logging configuration for the face login engine.

Library modules log under the "face_login" namespace. That namespace logger
is configured once, at the level named by LOG_LEVEL, and module loggers
propagate to it. CLI scripts call setup_logging(__name__) to get a
configured logger of their own.
"""

from __future__ import annotations

import copy
import logging
import sys
from typing import Optional

PACKAGE_LOGGER = "face_login"

# 2025-11-04 15:30:45 | INFO     | face_login.capture | Capture session opened
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ColoredFormatter(logging.Formatter):
    """Colours the level and logger name when the console is a terminal.

    The record is copied before decorating so other handlers (the log file)
    still see plain text.
    """

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"
    BOLD = "\033[1m"

    def __init__(self, fmt: str, datefmt: str, stream=None):
        super().__init__(fmt, datefmt=datefmt)
        self.stream = stream if stream is not None else sys.stdout

    def _use_color(self) -> bool:
        return hasattr(self.stream, "isatty") and self.stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno)
        if color is None or not self._use_color():
            return super().format(record)

        record = copy.copy(record)
        record.levelname = f"{color}{self.BOLD}{record.levelname}{self.RESET}"
        record.name = f"{self.BOLD}{record.name}{self.RESET}"
        return super().format(record)


def _configured_level(level: Optional[str]) -> int:
    if level is None:
        try:
            from face_login.config import get_config

            level = get_config().log_level
        except ValueError:
            # Config errors surface elsewhere; log at INFO meanwhile
            level = "INFO"
    return getattr(logging, level.upper(), logging.INFO)


def setup_logging(
    name: str = PACKAGE_LOGGER,
    level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """Attach console (and optionally file) handlers to a logger.

    A logger that already has handlers is returned unchanged.

    Args:
        name: Logger name, "face_login" for the library namespace or the
              script's __name__
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL. If None, LOG_LEVEL
               is read through Config.
        log_file: Also write plain-text records to this file.

    Returns:
        Configured logger instance.

    Example:
        >>> logger = setup_logging(__name__, log_file="logs/verify.log")
        >>> logger.info("Verification started")
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(_configured_level(level))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ColoredFormatter(LOG_FORMAT, DATE_FORMAT, sys.stdout))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for a library module.

    Modules inside the package share the namespace logger's handlers;
    any other name gets its own via setup_logging().
    """
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        return setup_logging(name)

    setup_logging(PACKAGE_LOGGER)
    return logging.getLogger(name)
