"""Structured JSON logging with correlation ID support.

Domain modules log through plain logging.getLogger(__name__) and attach
structured data as extra={"extra_fields": {...}}. configure_logging()
installs the JSON handler on the package logger so those records come out
in the same shape as the ones from get_logger().
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from .correlation import get_correlation_id

PACKAGE_LOGGER = "stayledger"


class JsonFormatter(logging.Formatter):
    """JSON formatter that includes correlation ID."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = get_correlation_id()
        if correlation_id:
            log_obj["correlationId"] = correlation_id

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_obj.update(record.extra_fields)

        return json.dumps(log_obj, default=str)


def _json_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    return handler


def configure_logging(level: str | None = None) -> logging.Logger:
    """Attach the JSON handler to the package logger (idempotent).

    Level defaults to LOG_LEVEL, then INFO.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel((level or os.environ.get("LOG_LEVEL", "INFO")).upper())

    if not any(isinstance(h.formatter, JsonFormatter) for h in logger.handlers):
        logger.addHandler(_json_handler())

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger configured for JSON output."""
    logger = logging.getLogger(name)

    # Only configure if no handlers (avoid duplicate handlers)
    if not logger.handlers:
        logger.addHandler(_json_handler())
        logger.setLevel(logging.INFO)
        logger.propagate = False

    return logger
