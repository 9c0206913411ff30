"""Structured JSON logging for the StellaNow SDK.

Every record becomes one JSON object::

    {"timestamp": "...+00:00", "level": "INFO", "logger": "stellanow_sdk.sink",
     "message": "Retrying connection in 10.0 seconds...", "attempt": 2, "delay": 10.0}

Connection and delivery context (``message_id``, ``attempt``, ``delay``,
``broker``, ``batch_size``) is passed with ``extra={...}`` and always listed
first; any other extra value follows.
"""

import json
import logging
from datetime import UTC, datetime
from typing import Any

SDK_LOGGER_NAME = "stellanow_sdk"

_SDK_FIELDS = ("message_id", "attempt", "delay", "broker", "batch_size")

_BASE_FIELDS = frozenset({"timestamp", "level", "logger", "message", "exception"})

# Attributes every LogRecord carries, including ones added by newer Pythons
_RECORD_ATTRIBUTES: frozenset[str] = frozenset(
    vars(logging.makeLogRecord({})).keys()
) | {"message", "asctime"}


def _context_fields(record: logging.LogRecord) -> dict[str, Any]:
    context = {name: getattr(record, name) for name in _SDK_FIELDS if hasattr(record, name)}
    for name, value in vars(record).items():
        if name in _RECORD_ATTRIBUTES or name in _BASE_FIELDS:
            continue
        context.setdefault(name, value)
    return context


class JSONFormatter(logging.Formatter):
    """Render log records as single-line JSON, timestamped in UTC."""

    def format(self, record: logging.LogRecord) -> str:
        document: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        document.update(_context_fields(record))
        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)

        try:
            return json.dumps(document, default=str)
        except (TypeError, ValueError):
            # Circular structures or non-string keys in an extra value
            return json.dumps({key: str(value) for key, value in document.items()})


def configure_sdk_logger(level: int = logging.INFO) -> logging.Logger:
    """Configure and return the root SDK logger with JSON formatting.

    Child loggers (``stellanow_sdk.sink`` etc.) propagate into it, so calling
    this once is enough. Calling it again only updates the level.

    Args:
        level: The logging level to set. Defaults to logging.INFO.
    """
    logger = logging.getLogger(SDK_LOGGER_NAME)
    if not any(isinstance(h.formatter, JSONFormatter) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


def get_logger(name: str = SDK_LOGGER_NAME) -> logging.Logger:
    """Get an SDK logger, making sure the JSON handler is installed.

    Args:
        name: Logger name. Names outside the ``stellanow_sdk`` namespace are
            placed under it.
    """
    if name != SDK_LOGGER_NAME and not name.startswith(SDK_LOGGER_NAME + "."):
        name = f"{SDK_LOGGER_NAME}.{name}"
    root = logging.getLogger(SDK_LOGGER_NAME)
    if not root.handlers:
        configure_sdk_logger()
    return logging.getLogger(name)
