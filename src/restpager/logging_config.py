"""Structured logging configuration for restpager.

- JSON structured logging with StructuredFormatter
- Logger hierarchy under the restpager namespace
- Environment variable control (RESTPAGER_LOG_LEVEL, RESTPAGER_LOG_FORMAT)
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional

LOGGER_NAMESPACE = "restpager"

# Keys redacted in log output; auth headers travel through request extras
SENSITIVE_KEYS = {
    "password", "token", "secret", "apikey", "api_key", "private-token",
    "private_token", "authorization", "credential", "auth", "bearer",
    "oauth_token",
}

_STANDARD_FIELDS = {
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
    "message",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "thread",
    "threadName",
    "exc_info",
    "exc_text",
    "stack_info",
    "taskName",
}


def _redact(value):
    if isinstance(value, dict):
        return {
            k: ("[REDACTED]" if str(k).lower() in SENSITIVE_KEYS else _redact(v))
            for k, v in value.items()
        }
    return value


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter.

    Outputs logs in JSON format with:
    - timestamp: UTC ISO 8601 format with 'Z' suffix
    - level: Log level name (INFO, ERROR, etc.)
    - logger: Logger name (restpager hierarchy)
    - message: Log message
    - context: Extras dict merged from LogRecord attributes

    Sensitive keys (token, authorization, etc.) are redacted, including
    inside nested dicts such as logged request headers.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: LogRecord to format

        Returns:
            JSON string with structured log data
        """
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extras = {
            k: ("[REDACTED]" if k.lower() in SENSITIVE_KEYS else _redact(v))
            for k, v in record.__dict__.items()
            if k not in _STANDARD_FIELDS and not k.startswith("_")
        }

        if extras:
            log_data["context"] = extras

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter, used when RESTPAGER_LOG_FORMAT=text."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def is_restpager_handler(handler: logging.Handler) -> bool:
    """True for handlers installed by configure_logging()."""
    return isinstance(handler, logging.StreamHandler) and isinstance(
        handler.formatter, (StructuredFormatter, TextFormatter)
    )


def configure_logging(
    level: Optional[str] = None, log_format: Optional[str] = None
) -> None:
    """Configure structured logging for all restpager loggers.

    Args:
        level: Optional log level override. If not provided, uses
               RESTPAGER_LOG_LEVEL environment variable (default: INFO).
        log_format: Optional format override (json or text). If not
               provided, uses RESTPAGER_LOG_FORMAT (default: json).

    Environment Variables:
        RESTPAGER_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR). Default: INFO
        RESTPAGER_LOG_FORMAT: Output format (json, text). Default: json
    """
    if level is None:
        level = os.getenv("RESTPAGER_LOG_LEVEL", "INFO")

    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format is None:
        log_format = os.getenv("RESTPAGER_LOG_FORMAT", "json")
    log_format = log_format.lower()

    if log_format == "text":
        formatter = TextFormatter()
    else:
        formatter = StructuredFormatter()

    logger = logging.getLogger(LOGGER_NAMESPACE)
    logger.setLevel(log_level)

    # Only add a handler once, repeated imports must not stack handlers.
    # Handlers attached by others (e.g. capture handlers) are left alone.
    own_handlers = [h for h in logger.handlers if is_restpager_handler(h)]
    if not own_handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    else:
        for handler in own_handlers:
            handler.setFormatter(formatter)

    logger.propagate = False
