"""Observability utilities for the request pipeline.

This package provides:
- Prometheus metrics for dispatch outcomes, latency and backpressure
- Structured logging with contextual information
"""

from request_pipeline.observability.logging import configure_logging, get_logger
from request_pipeline.observability.metrics import (
    record_deprecation_warning,
    record_dispatch,
    record_rejection,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "record_dispatch",
    "record_rejection",
    "record_deprecation_warning",
]
