"""
Prometheus metrics for monitoring the storage provider.

Provides counters, histograms, and gauges for tracking:
- Storage operations and their latency
- Name validation rejections
- Stream failures and transferred bytes
"""

import asyncio
import time
from typing import Callable
from functools import wraps
from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
)

from fileshare_provider.config.settings import get_settings

# Create a global registry
REGISTRY = CollectorRegistry()

# ========== Counters ==========

# Facade operations
storage_operations_total = Counter(
    "storage_operations_total",
    "Total number of storage operations",
    ["operation", "status"],  # get_container/..., success/failure
    registry=REGISTRY,
)

# Names rejected before any remote call
name_validation_failures_total = Counter(
    "storage_name_validation_failures_total",
    "Total number of container or file names rejected locally",
    registry=REGISTRY,
)

# Error events emitted on upload/download streams
stream_errors_total = Counter(
    "storage_stream_errors_total",
    "Total number of stream error events",
    ["direction"],  # upload/download
    registry=REGISTRY,
)

bytes_transferred_total = Counter(
    "storage_bytes_transferred_total",
    "Total number of bytes uploaded or downloaded",
    ["direction"],  # upload/download
    registry=REGISTRY,
)

# ========== Histograms ==========

operation_duration_seconds = Histogram(
    "storage_operation_duration_seconds",
    "Time spent in a remote storage operation",
    ["operation"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=REGISTRY,
)

# ========== Gauges ==========

active_streams = Gauge(
    "storage_active_streams",
    "Number of upload/download streams in flight",
    ["direction"],
    registry=REGISTRY,
)


def metrics_enabled() -> bool:
    return get_settings().metrics_enabled


def record_operation(operation: str, status: str, duration: float) -> None:
    """Record one finished storage operation."""
    if not metrics_enabled():
        return
    operation_duration_seconds.labels(operation=operation).observe(duration)
    storage_operations_total.labels(operation=operation, status=status).inc()


# ========== Metric Decorators ==========

def track_operation(operation: str):
    """
    Decorator to track storage operation latency and outcome.

    Args:
        operation: Operation name (get_container, remove_file, ...)
    """
    def decorator(func: Callable):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            start_time = time.time()
            status = "success"
            try:
                return await func(*args, **kwargs)
            except Exception:
                status = "failure"
                raise
            finally:
                record_operation(operation, status, time.time() - start_time)

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = time.time()
            status = "success"
            try:
                return func(*args, **kwargs)
            except Exception:
                status = "failure"
                raise
            finally:
                record_operation(operation, status, time.time() - start_time)

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


def get_metrics() -> bytes:
    """
    Get current metrics in Prometheus format.

    Returns:
        Metrics as bytes
    """
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get content type for metrics response."""
    return CONTENT_TYPE_LATEST
