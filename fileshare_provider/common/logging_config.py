"""
Structured JSON logging with per-operation correlation IDs.

Provides:
- JSON format for log aggregation
- Operation correlation IDs carried across asyncio tasks
- Duration tracking for storage operations
"""

import logging
import json
import time
import uuid
from contextvars import ContextVar
from typing import Optional
from datetime import datetime, timezone

from fileshare_provider.config.settings import get_settings

# Context variable for the current storage operation (copied into every task)
operation_id_ctx: ContextVar[Optional[str]] = ContextVar(
    "operation_id", default=None)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs logs in JSON format with standardized fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        operation_id = operation_id_ctx.get()
        if operation_id:
            log_data["operation_id"] = operation_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Fields passed as extra={"extra_fields": {...}}
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class PerformanceTracker:
    """
    Context manager for tracking operation duration.

    Usage:
        with PerformanceTracker("destroy_container", logger, container=name):
            ...
    """

    def __init__(
        self,
        operation: str,
        logger: logging.Logger,
        log_level: int = logging.INFO,
        **extra_fields,
    ):
        """
        Initialize performance tracker.

        Args:
            operation: Operation name
            logger: Logger instance
            log_level: Log level for completion message
            **extra_fields: Additional structured fields
        """
        self.operation = operation
        self.logger = logger
        self.log_level = log_level
        self.extra_fields = extra_fields
        self.start_time: Optional[float] = None

    def _fields(self) -> dict:
        fields = {"operation": self.operation, **self.extra_fields}
        operation_id = operation_id_ctx.get()
        if operation_id:
            fields["operation_id"] = operation_id
        return fields

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.debug(
            f"Starting operation: {self.operation}",
            extra={"extra_fields": self._fields()},
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        fields = self._fields()
        fields["duration_ms"] = round(
            (time.perf_counter() - self.start_time) * 1000, 2)

        if exc_type:
            fields["error"] = str(exc_val)
            fields["error_type"] = exc_type.__name__
            self.logger.error(
                f"Operation failed: {self.operation}",
                extra={"extra_fields": fields},
            )
        else:
            self.logger.log(
                self.log_level,
                f"Operation completed: {self.operation}",
                extra={"extra_fields": fields},
            )


def setup_logging(log_level: str = "INFO", json_format: bool = True):
    """
    Configure application logging.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting if True, standard format if False
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # StreamHandler writes to stderr
    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, log_level.upper()))

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # The Azure SDK logs every HTTP request at INFO
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def configure_logging():
    """Apply the configured log level and format (LOG_LEVEL, LOG_JSON)."""
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_format=settings.log_json)


def set_operation_id(operation_id: Optional[str] = None) -> str:
    """
    Set operation ID in context.

    Args:
        operation_id: Operation ID (generated if not provided)

    Returns:
        Operation ID
    """
    if operation_id is None:
        operation_id = uuid.uuid4().hex[:12]
    operation_id_ctx.set(operation_id)
    return operation_id


def get_operation_id() -> Optional[str]:
    """Get current operation ID from context."""
    return operation_id_ctx.get()


def clear_operation_id():
    """Clear operation ID from context."""
    operation_id_ctx.set(None)
