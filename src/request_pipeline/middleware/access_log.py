"""Access logging middleware."""

import time

from request_pipeline.core.context import Context
from request_pipeline.core.middleware import Middleware, Next
from request_pipeline.observability.logging import get_logger

logger = get_logger(__name__)


class AccessLogMiddleware(Middleware):
    """Logs ``request.started`` on the way in and ``request.finished`` on the way out.

    Failed requests only log ``request.started``; the dispatcher logs the
    failure itself.
    """

    name = "access-log"

    def apply(self, ctx: Context, next: Next) -> Context:
        start = time.perf_counter()
        logger.info(
            "request.started",
            dispatch_id=ctx.dispatch_id,
            method=ctx.request.method,
            path=ctx.request.path,
        )

        ctx = next(ctx)

        logger.info(
            "request.finished",
            dispatch_id=ctx.dispatch_id,
            method=ctx.request.method,
            path=ctx.request.path,
            status=ctx.response.status,
            elapsed_ms=round((time.perf_counter() - start) * 1000, 3),
        )
        return ctx
