"""Structured logging configuration for linkcloud.

Log records are emitted as one JSON object per line so gateway traffic can be
parsed by log aggregation systems. Request handlers and the blob service
attach the addressed provider, container and blob through log_context(), so
every record written while an operation runs carries them.

Key Features:
- JSON-formatted logs with extra fields
- Thread-local context, matching the one-worker-per-request model
- Exception logging with full tracebacks
- Configurable log levels and output destinations
"""

import json
import logging
import sys
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, Optional, Union

ROOT_LOGGER_NAME = "linkcloud"

# Thread-local storage for log context
_log_context = threading.local()


def _get_context() -> Dict[str, Any]:
    """Get the current log context for this thread."""
    if not hasattr(_log_context, "data"):
        _log_context.data = {}
    data: Dict[str, Any] = _log_context.data
    return data


class JSONFormatter(logging.Formatter):
    """Formatter that outputs log records as JSON.

    Fields:
    - timestamp: ISO 8601 formatted timestamp
    - level: Log level name
    - logger: Logger name
    - message: Rendered log message
    - filename / lineno: Source location
    - exception: Formatted traceback (if present)
    - Any extra fields passed via extra= or log_context()

    Example output:
        {
            "timestamp": "2025-06-01T10:15:00.123456",
            "level": "WARNING",
            "logger": "linkcloud.error_mapper",
            "message": "Blob a.jpg not found",
            "filename": "error_mapper.py",
            "lineno": 88,
            "operation": "download_blob",
            "provider": "azureblob",
            "container": "pics"
        }
    """

    # Fields that are part of the standard log record
    RESERVED_FIELDS = {
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
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        "getMessage",
    }

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "filename": record.filename,
            "lineno": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Extra fields, falling back to str() for values json can't encode
        for key, value in record.__dict__.items():
            if key not in self.RESERVED_FIELDS and not key.startswith("_"):
                try:
                    json.dumps(value)
                    log_data[key] = value
                except (TypeError, ValueError):
                    log_data[key] = str(value)

        return json.dumps(log_data)


class ContextFilter(logging.Filter):
    """Logging filter that copies context fields onto every record.

    Args:
        context: Static fields added to every record (e.g. the service name)

    Example:
        handler.addFilter(ContextFilter({"service": "linkcloud"}))
    """

    def __init__(self, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__()
        self.context = context or {}

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.context.items():
            setattr(record, key, value)

        for key, value in _get_context().items():
            setattr(record, key, value)

        return True


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Add fields to every log record emitted by this thread within the block.

    Contexts nest; leaving a block restores the enclosing context. Fields
    whose value is None are skipped so optional arguments can be passed
    straight through.

    Example:
        with log_context(operation="upload_blob", provider="azureblob"):
            logger.info("Uploading")  # Includes operation and provider
    """
    context = _get_context()
    old_context = context.copy()

    try:
        context.update({key: value for key, value in kwargs.items() if value is not None})
        yield
    finally:
        context.clear()
        context.update(old_context)


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """Configure the linkcloud logging system.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Whether to use JSON formatting (True) or plain text (False)
        log_file: Optional file path to write logs to (in addition to stdout)

    Returns:
        Configured root logger for linkcloud
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers to avoid duplicates
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    formatter: Union[JSONFormatter, logging.Formatter]
    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(ContextFilter())
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(ContextFilter())
        logger.addHandler(file_handler)

    # Don't propagate to root logger (avoid duplicate logs)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child of the linkcloud logger.

    Args:
        name: Module name (without the 'linkcloud.' prefix)

    Example:
        logger = get_logger("gateway.access")  # Logs as "linkcloud.gateway.access"
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
