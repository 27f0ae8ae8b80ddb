"""
colorengine Structured Logging
Centralized logging configuration using loguru.
"""
import sys
from typing import Dict, Any, Optional

from loguru import logger

from colorengine.config import config


LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {message} | {extra}"


def configure_logging(level: Optional[str] = None, serialize: bool = False) -> None:
    """
    Replace loguru's default sink with the structured stdout sink.

    Only entry points call this; importing the library never touches sinks.
    """
    level = (level or config.LOG_LEVEL).upper()
    if not config.validate_log_level(level):
        raise ValueError(f"Unknown log level: {level}")

    logger.remove()
    logger.add(
        sys.stderr,
        format=LOG_FORMAT,
        level=level,
        serialize=serialize,
    )


class StructuredLogger:
    """Structured logger that binds extra fields to each record."""

    def __init__(self, name: str = "colorengine"):
        self._logger = logger.bind(component=name)

    def info(self, message: str, extra: Optional[Dict[str, Any]] = None):
        """Log info message with optional extra data."""
        self._log("info", message, extra)

    def warning(self, message: str, extra: Optional[Dict[str, Any]] = None):
        """Log warning message with optional extra data."""
        self._log("warning", message, extra)

    def error(self, message: str, extra: Optional[Dict[str, Any]] = None):
        """Log error message with optional extra data."""
        self._log("error", message, extra)

    def debug(self, message: str, extra: Optional[Dict[str, Any]] = None):
        """Log debug message with optional extra data."""
        self._log("debug", message, extra)

    def _log(self, level: str, message: str, extra: Optional[Dict[str, Any]]):
        bound = self._logger.bind(**extra) if extra else self._logger
        getattr(bound, level)(message)


# Global logger instance
_logger: Optional[StructuredLogger] = None


def get_logger() -> StructuredLogger:
    """Get or create global logger instance."""
    global _logger
    if _logger is None:
        _logger = StructuredLogger()
    return _logger
