"""Prometheus metrics for the request pipeline.

Metrics:

- Dispatch counter by mode and terminal state
- Dispatch duration histogram
- In-flight dispatches gauge
- Rejected dispatches counter
- Deprecation warnings counter by feature

Examples:
    Recording a finished dispatch::

        from request_pipeline.observability.metrics import record_dispatch

        record_dispatch(mode="async", state="COMPLETED", duration_seconds=0.012)
"""

from prometheus_client import Counter, Gauge, Histogram

# Labels: mode (sync, async), state (COMPLETED, FAILED, CANCELLED)
dispatches_total = Counter(
    "pipeline_dispatches_total",
    "Total number of dispatches by mode and terminal state",
    ["mode", "state"],
)

dispatch_duration_seconds = Histogram(
    "pipeline_dispatch_duration_seconds",
    "Time from chain start to terminal state, in seconds",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

# Async dispatches submitted but not yet finished
in_flight_dispatches = Gauge(
    "pipeline_in_flight_dispatches",
    "Number of async dispatches submitted and not yet finished",
)

rejected_dispatches = Counter(
    "pipeline_rejected_dispatches_total",
    "Total number of async dispatches rejected by backpressure or shutdown",
)

deprecation_warnings = Counter(
    "pipeline_deprecation_warnings_total",
    "Total number of deprecation warnings emitted",
    ["feature"],
)


def record_dispatch(mode: str, state: str, duration_seconds: float | None = None) -> None:
    """Record a dispatch that reached a terminal state.

    Args:
        mode: Dispatch mode ("sync" or "async")
        state: Terminal state name
        duration_seconds: Execution time, if the chain ran at all

    Examples:
        >>> record_dispatch("sync", "COMPLETED", 0.002)
        >>> record_dispatch("async", "CANCELLED")
    """
    dispatches_total.labels(mode=mode, state=state).inc()
    if duration_seconds is not None:
        dispatch_duration_seconds.observe(duration_seconds)


def increment_in_flight() -> None:
    """Called when an async dispatch is admitted."""
    in_flight_dispatches.inc()


def decrement_in_flight() -> None:
    """Called when an admitted async dispatch reaches a terminal state."""
    in_flight_dispatches.dec()


def record_rejection() -> None:
    rejected_dispatches.inc()


def record_deprecation_warning(feature: str) -> None:
    """Record one emitted deprecation warning.

    Examples:
        >>> record_deprecation_warning("legacy-session-format")
    """
    deprecation_warnings.labels(feature=feature).inc()
