"""Terminal handlers.

A handler is any callable taking a ``Context`` and returning it with the
response half filled in. Handlers read the request, write the response,
and never call other handlers. A handler that returns ``None`` is treated
as having written to the context it was given.

Errors escaping a handler are reported as ``HandlerError``; raise
``HandlerError`` directly to choose the message.
"""

from typing import Protocol

from request_pipeline.core.context import Context


class Handler(Protocol):
    """Protocol for terminal handlers."""

    def __call__(self, ctx: Context) -> Context | None: ...


def handler_name(handler: Handler) -> str:
    """Stage name used when reporting errors raised by a handler."""
    name = getattr(handler, "name", None)
    if isinstance(name, str) and name:
        return name
    return getattr(handler, "__name__", None) or type(handler).__name__


def not_found(ctx: Context) -> Context:
    """Default terminal handler: 404 with a plain text body."""
    ctx.response.write_text(f"Not found: {ctx.request.path}", status=404)
    return ctx
