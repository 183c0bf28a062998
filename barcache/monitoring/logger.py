"""Structured logging for the bar cache."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Dict, Optional, Union

from ..core.constants import (
    DEFAULT_LOG_FILE,
    DEFAULT_LOG_LEVEL,
    LOG_MAX_BYTES,
    LOG_BACKUP_COUNT,
)


ROOT_LOGGER_NAME = "barcache"

LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class CacheLogger:
    """
    Structured logger with keyword argument support.

    logger.info("Refreshed", ticker="AAPL", bars=50)
    -> "Refreshed | ticker=AAPL | bars=50"
    """

    def __init__(self, name: str):
        """
        Initialize cache logger.

        Args:
            name: Logger name (typically __name__)
        """
        self.logger = logging.getLogger(name)

    def _format_message(self, msg: str, **kwargs) -> str:
        """Format message with keyword arguments."""
        if kwargs:
            extra = ' | '.join(f'{k}={v}' for k, v in kwargs.items())
            return f"{msg} | {extra}"
        return msg

    def debug(self, msg: str, **kwargs) -> None:
        """Log debug message."""
        self.logger.debug(self._format_message(msg, **kwargs))

    def info(self, msg: str, **kwargs) -> None:
        """Log info message."""
        self.logger.info(self._format_message(msg, **kwargs))

    def warning(self, msg: str, **kwargs) -> None:
        """Log warning message."""
        self.logger.warning(self._format_message(msg, **kwargs))

    def error(self, msg: str, exc_info: bool = False, **kwargs) -> None:
        """Log error message."""
        self.logger.error(self._format_message(msg, **kwargs), exc_info=exc_info)

    def critical(self, msg: str, **kwargs) -> None:
        """Log critical message."""
        self.logger.critical(self._format_message(msg, **kwargs))


def setup_logger(
    log_file: Optional[str] = DEFAULT_LOG_FILE,
    level: Union[int, str] = DEFAULT_LOG_LEVEL
) -> logging.Logger:
    """
    Attach console and rotating file handlers to the package logger.

    Safe to call more than once; existing handlers are replaced.

    Args:
        log_file: Path of the rotating log file, or None for console only
        level: Logging level name or number

    Returns:
        The configured package logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    # Console Handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    # File Handler
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    return root


_loggers: Dict[str, CacheLogger] = {}


def get_logger(name: str) -> CacheLogger:
    """
    Get or create a cache logger.

    Args:
        name: Logger name (typically __name__)

    Returns:
        CacheLogger instance
    """
    if name not in _loggers:
        _loggers[name] = CacheLogger(name)
    return _loggers[name]
