"""
Centralized logging configuration for the Cancellation Decisioning Engine.

Provides colored console output, module-specific loggers, and a small
helper for tagging log lines with the cancellation request they concern.
"""

import logging
import sys
from typing import Optional, Union

from cancellation_engine.core.config import settings


class ColoredFormatter(logging.Formatter):
    """Custom formatter with color-coded log levels for console output."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
    }
    RESET = '\033[0m'
    BOLD = '\033[1m'

    ICONS = {
        'DEBUG': '🔍',
        'INFO': '✅',
        'WARNING': '⚠️',
        'ERROR': '❌',
        'CRITICAL': '🚨',
    }

    def format(self, record):
        # Work on a copy so other handlers see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = (
                f"{self.COLORS[levelname]}{self.BOLD}"
                f"{self.ICONS.get(levelname, '')} {levelname}{self.RESET}"
            )
        record.name = f"{self.BOLD}{record.name}{self.RESET}"
        return super().format(record)


def _resolve_level(level: Optional[Union[int, str]]) -> int:
    if level is None:
        level = settings.LOG_LEVEL
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        return resolved if isinstance(resolved, int) else logging.INFO
    return level


def setup_logger(
    name: str,
    level: Optional[Union[int, str]] = None,
    format_string: Optional[str] = None
) -> logging.Logger:
    """
    Set up a logger with consistent formatting.

    Args:
        name: Logger name (typically __name__ of the module)
        level: Logging level; defaults to settings.LOG_LEVEL
        format_string: Custom format string (optional)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    resolved_level = _resolve_level(level)
    logger.setLevel(resolved_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(resolved_level)

    if format_string is None:
        format_string = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'

    console_handler.setFormatter(ColoredFormatter(format_string, datefmt='%Y-%m-%d %H:%M:%S'))
    logger.addHandler(console_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get or create a logger for the specified module."""
    return setup_logger(name)


def request_tag(request_id: Optional[str]) -> str:
    """Prefix used on every log line that concerns one cancellation request."""
    return f"[REQ={request_id}]"


def log_separator(logger: logging.Logger, char: str = "=", length: int = 80):
    """Log a separator line for visual clarity."""
    logger.info(char * length)
