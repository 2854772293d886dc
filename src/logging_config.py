"""Logging configuration for the Ace Fixings storefront client.

Provides structured logging with two output formats:
- Console: Rich-formatted colored output for interactive use
- JSON: Structured JSON logs for the proxy service behind a log collector
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

from src.config import LogFormat, get_settings

BASE_LOGGER = "acefixings_storefront"

# Standard LogRecord attributes; anything else on a record came from extra=
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging.

    Outputs each log record as a single JSON line. Fields passed through
    ``extra=`` are merged into the top-level object.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str, ensure_ascii=False)


def setup_logging(
    log_level: str | None = None,
    log_format: LogFormat | None = None,
) -> logging.Logger:
    """Configure and return the application logger.

    Args:
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            If None, uses LOG_LEVEL from environment/config.
        log_format: Override log format (CONSOLE or JSON).
            If None, uses LOG_FORMAT from environment/config.

    Returns:
        Configured logger instance for the application.
    """
    settings = get_settings()

    level_str = log_level or settings.log_level
    format_type = log_format or settings.log_format
    level = getattr(logging, level_str.upper(), logging.INFO)

    logger = logging.getLogger(BASE_LOGGER)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = False

    handler: logging.Handler
    if format_type == LogFormat.JSON:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
    else:
        # stderr keeps stdout free for command output
        console = Console(stderr=True)
        handler = RichHandler(
            console=console,
            show_time=True,
            show_level=True,
            show_path=level <= logging.DEBUG,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    handler.setLevel(level)
    logger.addHandler(handler)

    # urllib3 logs full URLs at DEBUG, which include OAuth codes
    logging.getLogger("urllib3").setLevel(max(level, logging.INFO))

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger instance for a specific module.

    Creates a child logger under the main application logger.

    Args:
        name: Optional name for the logger. Typically use __name__.
            If None, returns the main application logger.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Cart refreshed", extra={"cart_id": cart_id})
    """
    if name:
        return logging.getLogger(f"{BASE_LOGGER}.{name}")
    return logging.getLogger(BASE_LOGGER)
