"""Middleware interface and its two canonical shapes.

Middleware follows continuation-passing style: ``apply`` receives the
context and a ``next`` callable for the downstream stage, and returns the
context carrying the response.

Shapes:
    - ``WrappingMiddleware``: ``before(ctx)``, then ``next(ctx)`` exactly once,
      then ``after(ctx)``.
    - ``ShortCircuitMiddleware``: ``intercept(ctx)`` either returns a context
      (the chain stops there) or ``None`` (the chain continues).

Examples:
    Subclassing a shape::

        class ServerHeader(WrappingMiddleware):
            def after(self, ctx: Context) -> None:
                ctx.response.headers["server"] = "request-pipeline"

    Decorating a plain function::

        @as_middleware
        def timing(ctx: Context, next: Next) -> Context:
            start = time.monotonic()
            ctx = next(ctx)
            ctx.response.headers["x-elapsed"] = f"{time.monotonic() - start:.3f}"
            return ctx
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import overload

from request_pipeline.config import PipelineConfig
from request_pipeline.core.context import Context

# The downstream stage of the chain
Next = Callable[[Context], Context]


class Middleware(ABC):
    """Base class for pipeline middleware.

    Instances are shared across concurrent dispatches and must not keep
    per-request state on ``self``. Use ``ctx.attributes`` instead.

    Attributes:
        name: Stage name used in failure reports. Defaults to the class name.
    """

    name: str | None = None

    @property
    def stage_name(self) -> str:
        return self.name or type(self).__name__

    @abstractmethod
    def apply(self, ctx: Context, next: Next) -> Context:
        """Run this stage.

        Args:
            ctx: The dispatch's context
            next: Continuation invoking the downstream stage

        Returns:
            The context carrying the response
        """

    def on_build(self, config: PipelineConfig) -> "Middleware":
        """Build-time hook, called once per ``build()``.

        Returns the stage to install in the pipeline. The default installs
        ``self`` unchanged.
        """
        return self

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.stage_name!r}>"


class WrappingMiddleware(Middleware):
    """Middleware that always delegates to the next stage exactly once."""

    def before(self, ctx: Context) -> None:
        """Inbound hook, runs before the downstream stage."""

    def after(self, ctx: Context) -> None:
        """Outbound hook, runs after the downstream stage returned."""

    def apply(self, ctx: Context, next: Next) -> Context:
        self.before(ctx)
        ctx = next(ctx)
        self.after(ctx)
        return ctx


class ShortCircuitMiddleware(Middleware):
    """Middleware that may answer a request without calling downstream."""

    @abstractmethod
    def intercept(self, ctx: Context) -> Context | None:
        """Return a context to stop the chain, or None to continue."""

    def apply(self, ctx: Context, next: Next) -> Context:
        answered = self.intercept(ctx)
        if answered is not None:
            return answered
        return next(ctx)


class FunctionMiddleware(Middleware):
    """Adapts a plain ``fn(ctx, next)`` callable to the Middleware interface."""

    def __init__(self, fn: Callable[[Context, Next], Context], name: str | None = None) -> None:
        self.fn = fn
        self.name = name or getattr(fn, "__name__", None)

    def apply(self, ctx: Context, next: Next) -> Context:
        return self.fn(ctx, next)


@overload
def as_middleware(fn: Callable[[Context, Next], Context]) -> FunctionMiddleware: ...


@overload
def as_middleware(
    fn: None = None, *, name: str | None = None
) -> Callable[[Callable[[Context, Next], Context]], FunctionMiddleware]: ...


def as_middleware(fn=None, *, name=None):  # type: ignore[no-untyped-def]
    """Decorator turning a function into a ``FunctionMiddleware``.

    Usable bare (``@as_middleware``) or with a stage name
    (``@as_middleware(name="auth")``).
    """
    if fn is not None:
        return FunctionMiddleware(fn, name=name)

    def decorator(func: Callable[[Context, Next], Context]) -> FunctionMiddleware:
        return FunctionMiddleware(func, name=name)

    return decorator
