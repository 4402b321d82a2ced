"""Structured logging configuration for the AI chat relay."""

import logging
import sys
from typing import Any

# Context fields promoted to top-level keys when present on a record
CONTEXT_FIELDS = ("user_id", "owner_id", "connection_id")


class StructuredFormatter(logging.Formatter):
    """Key=value structured log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured output."""
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        parts = [f"{k}={v}" for k, v in log_data.items()]
        return " ".join(parts)


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Only configure if not already configured
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)

        try:
            from app.core.config import get_settings

            settings = get_settings()
            if settings.RELAY_ENV == "dev":
                logger.setLevel(logging.DEBUG)
            else:
                logger.setLevel(logging.INFO)
        except Exception:
            # Settings may be incomplete (missing keys); logging must still work
            logger.setLevel(logging.INFO)

    return logger


def log_with_context(logger: logging.Logger, level: int, msg: str, **kwargs: Any) -> None:
    """
    Log with additional context fields.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        msg: Log message
        **kwargs: Context fields; user_id/owner_id/connection_id are promoted
    """
    extra: dict[str, Any] = {}
    for field in CONTEXT_FIELDS:
        if field in kwargs:
            extra[field] = kwargs.pop(field)
    extra["extra_data"] = kwargs

    logger.log(level, msg, extra=extra)
