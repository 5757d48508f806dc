"""Observability facades: logging and in-process metrics."""

from .logging import (
    configure_logging,
    current_log_context,
    get_logger,
    log_context,
    log_exception,
)
from .metrics import (
    get_metrics_summary,
    get_registry,
    increment_counter,
    observe_histogram,
    record_batch_item,
    record_extraction,
    record_rate_limit_retry,
    record_throttle_wait,
)

__all__ = [
    # Logging
    "configure_logging",
    "current_log_context",
    "get_logger",
    "log_context",
    "log_exception",
    # Metrics
    "get_metrics_summary",
    "get_registry",
    "increment_counter",
    "observe_histogram",
    "record_batch_item",
    "record_extraction",
    "record_rate_limit_retry",
    "record_throttle_wait",
]
