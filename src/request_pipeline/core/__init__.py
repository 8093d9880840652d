"""Core pipeline logic.

This package contains the framework-agnostic pipeline:
- Context: per-dispatch request/response carrier
- Middleware: the stage interface and its wrapping/short-circuiting shapes
- Pipeline: composition (``build``) and chain execution
- State machine: dispatch lifecycle (CREATED -> RUNNING -> terminal)
- Dispatcher: sync and worker-pool execution

Transport adapters (see ``request_pipeline.adapters``) translate between a
web framework and this core.
"""

from request_pipeline.core.context import Context, Request, Response
from request_pipeline.core.dispatcher import Dispatcher, dispatch
from request_pipeline.core.handler import Handler, not_found
from request_pipeline.core.middleware import (
    Middleware,
    Next,
    ShortCircuitMiddleware,
    WrappingMiddleware,
    as_middleware,
)
from request_pipeline.core.pipeline import Pipeline, build
from request_pipeline.core.state_machine import DispatchHandle, DispatchResult

__all__ = [
    "Context",
    "Request",
    "Response",
    "Handler",
    "not_found",
    "Middleware",
    "Next",
    "WrappingMiddleware",
    "ShortCircuitMiddleware",
    "as_middleware",
    "Pipeline",
    "build",
    "Dispatcher",
    "DispatchHandle",
    "DispatchResult",
    "dispatch",
]
