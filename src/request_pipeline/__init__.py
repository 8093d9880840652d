"""
Composable request/response pipeline for Python services.

This package composes middleware around a terminal handler and dispatches
inbound events through the resulting pipeline, synchronously or on a
worker pool. Cookie handling, parameter decoding, request short-circuiting
and deprecation warnings ship as built-in middleware.
"""

__version__ = "0.1.0"

from request_pipeline.config import PipelineConfig
from request_pipeline.core import (
    Context,
    Dispatcher,
    DispatchHandle,
    DispatchResult,
    Middleware,
    Pipeline,
    ShortCircuitMiddleware,
    WrappingMiddleware,
    as_middleware,
    build,
    dispatch,
)
from request_pipeline.exceptions import (
    CancellationError,
    ConfigurationError,
    DispatchRejectedError,
    HandlerError,
    MiddlewareError,
    PipelineError,
)
from request_pipeline.models import Cookie, DispatchState, ErrorKind, InboundEvent

__all__ = [
    "__version__",
    "PipelineConfig",
    "Context",
    "Cookie",
    "InboundEvent",
    "DispatchState",
    "ErrorKind",
    "Middleware",
    "WrappingMiddleware",
    "ShortCircuitMiddleware",
    "as_middleware",
    "Pipeline",
    "build",
    "Dispatcher",
    "DispatchHandle",
    "DispatchResult",
    "dispatch",
    "PipelineError",
    "ConfigurationError",
    "HandlerError",
    "MiddlewareError",
    "CancellationError",
    "DispatchRejectedError",
]
