"""ASGI adapter for Starlette and FastAPI applications.

This module exposes a pipeline as an ASGI application. The adapter:
1. Converts the ASGI request into an ``InboundEvent``
2. Dispatches it (awaiting the handle in async mode, or running the sync
   dispatch in Starlette's threadpool so the event loop is never blocked)
3. Converts the dispatch result back into a Starlette response, with one
   ``set-cookie`` header line per outbound cookie

Failed dispatches become 500 responses, cancelled or rejected dispatches
become 503 responses.

Examples:
    Serving a pipeline directly::

        import uvicorn

        app = PipelineASGIApp(Dispatcher(pipeline))
        uvicorn.run(app)

    Mounting under a FastAPI application::

        from fastapi import FastAPI

        api = FastAPI()
        api.mount("/greet", PipelineASGIApp(Dispatcher(pipeline)))
"""

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request as StarletteRequest
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from request_pipeline.config import DispatchMode
from request_pipeline.core.dispatcher import Dispatcher
from request_pipeline.core.state_machine import DispatchResult
from request_pipeline.exceptions import DispatchRejectedError
from request_pipeline.models import DispatchState, InboundEvent
from request_pipeline.observability.logging import get_logger

logger = get_logger(__name__)


class PipelineASGIApp:
    """ASGI application running every HTTP request through a pipeline.

    Attributes:
        dispatcher: Dispatcher owning the pipeline
        mode: Dispatch mode override. Defaults to the pipeline's configured mode.
    """

    def __init__(self, dispatcher: Dispatcher, mode: DispatchMode | None = None) -> None:
        self.dispatcher = dispatcher
        self.mode = mode

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await self._lifespan(receive, send)
            return
        if scope["type"] != "http":
            raise RuntimeError(f"PipelineASGIApp cannot serve {scope['type']!r} connections")

        request = StarletteRequest(scope, receive)
        event = await self._convert_request(request)
        response = await self._dispatch(event)
        await response(scope, receive, send)

    async def _lifespan(self, receive: Receive, send: Send) -> None:
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                self.dispatcher.shutdown(wait=False)
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def _convert_request(self, request: StarletteRequest) -> InboundEvent:
        """Convert a Starlette request into an InboundEvent.

        Repeated headers are folded into one value: ``Cookie`` headers are
        joined with ``"; "``, all others with ``", "``.
        """
        body = await request.body()

        headers: dict[str, str] = {}
        for key, value in request.headers.items():
            if key in headers:
                separator = "; " if key == "cookie" else ", "
                headers[key] = f"{headers[key]}{separator}{value}"
            else:
                headers[key] = value

        return InboundEvent(
            method=request.method,
            path=request.url.path,
            query_string=request.url.query or "",
            headers=headers,
            body=body,
        )

    async def _dispatch(self, event: InboundEvent) -> Response:
        mode = self.mode or self.dispatcher.pipeline.config.dispatch_mode
        try:
            if mode == "async":
                result = await self.dispatcher.dispatch_async(event)
            else:
                result = await run_in_threadpool(self.dispatcher.dispatch_sync, event)
        except DispatchRejectedError as e:
            logger.warning("asgi.rejected", path=event.path, pending=e.pending)
            return Response(
                content=b"Service busy",
                status_code=503,
                headers={"retry-after": "1"},
                media_type="text/plain",
            )

        return self._convert_result(result)

    def _convert_result(self, result: DispatchResult) -> Response:
        """Convert a dispatch result into a Starlette Response."""
        if result.state is DispatchState.COMPLETED and result.context is not None:
            outbound = result.context.response
            response = Response(
                content=outbound.body,
                status_code=outbound.status,
                headers=outbound.headers,
            )
            for line in outbound.set_cookie_headers:
                response.raw_headers.append((b"set-cookie", line.encode("latin-1")))
            return response

        if result.state is DispatchState.CANCELLED:
            return Response(content=b"Request cancelled", status_code=503, media_type="text/plain")

        return Response(
            content=f"Internal error in stage {result.stage}".encode(),
            status_code=500,
            media_type="text/plain",
        )
