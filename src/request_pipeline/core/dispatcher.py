"""Dispatcher: runs a pipeline against inbound events.

In sync mode the chain runs in the calling thread and ``dispatch``
returns a ``DispatchResult``. In async mode the chain is submitted to a
thread pool of ``worker_count`` workers and ``dispatch`` returns a
``DispatchHandle`` immediately.

Admission is bounded: at most ``max_pending`` async dispatches may be
submitted and not yet finished. Beyond that, ``dispatch`` raises
``DispatchRejectedError`` and nothing is scheduled. The dispatcher never
retries a failed dispatch.

Examples:
    Synchronous dispatch::

        dispatcher = Dispatcher(pipeline)
        result = dispatcher.dispatch(InboundEvent(method="GET", path="/"))
        response = result.unwrap().response

    Asynchronous dispatch with callbacks::

        with Dispatcher(pipeline) as dispatcher:
            handle = dispatcher.dispatch(
                event,
                mode="async",
                on_complete=lambda r: send(r.context.response),
                on_failure=lambda r: log_failure(r.error),
            )
"""

import threading
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from request_pipeline.config import DispatchMode
from request_pipeline.core.context import Context, Request
from request_pipeline.core.pipeline import Pipeline
from request_pipeline.core.state_machine import (
    CompletionCallback,
    DispatchHandle,
    DispatchResult,
)
from request_pipeline.exceptions import (
    ConfigurationError,
    DispatchRejectedError,
    PipelineError,
)
from request_pipeline.models import InboundEvent
from request_pipeline.observability.logging import get_logger
from request_pipeline.observability.metrics import (
    decrement_in_flight,
    increment_in_flight,
    record_rejection,
)

logger = get_logger(__name__)


def coerce_event(event: InboundEvent | Mapping[str, Any]) -> InboundEvent:
    """Accept an InboundEvent or a mapping with the same fields.

    Raises:
        pydantic.ValidationError: If the mapping is not a valid event
    """
    if isinstance(event, InboundEvent):
        return event
    return InboundEvent.model_validate(dict(event))


class Dispatcher:
    """Executes a pipeline, synchronously or on a worker pool.

    Attributes:
        pipeline: The pipeline to run
    """

    def __init__(self, pipeline: Pipeline, executor: ThreadPoolExecutor | None = None) -> None:
        """Initialize the dispatcher.

        Args:
            pipeline: The pipeline to run
            executor: Executor for async mode. When omitted, one with
                ``worker_count`` threads is created on first use and owned by
                this dispatcher.
        """
        self.pipeline = pipeline
        self._executor = executor
        self._owns_executor = executor is None
        self._lock = threading.Lock()
        self._pending: set[DispatchHandle] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        """Async dispatches submitted and not yet finished."""
        with self._lock:
            return len(self._pending)

    def dispatch(
        self,
        event: InboundEvent | Mapping[str, Any],
        mode: DispatchMode | None = None,
        on_complete: CompletionCallback | None = None,
        on_failure: CompletionCallback | None = None,
    ) -> DispatchResult | DispatchHandle:
        """Dispatch one event in the given mode.

        Args:
            event: The inbound event
            mode: "sync" or "async". Defaults to the pipeline's configured
                dispatch mode.
            on_complete: Called once with the result when COMPLETED
            on_failure: Called once with the result when FAILED

        Returns:
            DispatchResult in sync mode, DispatchHandle in async mode

        Raises:
            ConfigurationError: If the mode is unknown
            DispatchRejectedError: If an async dispatch cannot be admitted
        """
        selected = mode or self.pipeline.config.dispatch_mode
        if selected == "sync":
            return self.dispatch_sync(event, on_complete=on_complete, on_failure=on_failure)
        if selected == "async":
            return self.dispatch_async(event, on_complete=on_complete, on_failure=on_failure)
        raise ConfigurationError(f"Unknown dispatch mode: {selected!r}", option="dispatch-mode")

    def dispatch_sync(
        self,
        event: InboundEvent | Mapping[str, Any],
        on_complete: CompletionCallback | None = None,
        on_failure: CompletionCallback | None = None,
    ) -> DispatchResult:
        """Run the chain in the calling thread and return its result."""
        inbound = coerce_event(event)
        handle = DispatchHandle(mode="sync", on_complete=on_complete, on_failure=on_failure)
        self._execute(handle, inbound)
        return handle.result()

    def dispatch_async(
        self,
        event: InboundEvent | Mapping[str, Any],
        on_complete: CompletionCallback | None = None,
        on_failure: CompletionCallback | None = None,
    ) -> DispatchHandle:
        """Schedule the chain on the worker pool and return its handle.

        Raises:
            DispatchRejectedError: If ``max_pending`` dispatches are already
                pending, or the dispatcher has been shut down
        """
        inbound = coerce_event(event)
        handle = DispatchHandle(mode="async", on_complete=on_complete, on_failure=on_failure)
        max_pending = self.pipeline.config.max_pending

        with self._lock:
            if self._closed:
                record_rejection()
                raise DispatchRejectedError("Dispatcher has been shut down", len(self._pending))
            if max_pending and len(self._pending) >= max_pending:
                record_rejection()
                logger.warning(
                    "dispatch.rejected",
                    pending=len(self._pending),
                    max_pending=max_pending,
                )
                raise DispatchRejectedError(
                    f"Too many pending dispatches ({len(self._pending)}/{max_pending})",
                    len(self._pending),
                )
            self._pending.add(handle)
            executor = self._get_executor()
        increment_in_flight()

        try:
            task = executor.submit(self._execute, handle, inbound)
        except RuntimeError as e:
            self._release(handle)
            raise DispatchRejectedError(f"Executor refused the dispatch: {e}") from e

        handle.attach(task)
        task.add_done_callback(lambda _task: self._release(handle))
        return handle

    def _get_executor(self) -> ThreadPoolExecutor:
        # Caller holds self._lock
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.pipeline.config.worker_count,
                thread_name_prefix="pipeline-worker-",
            )
        return self._executor

    def _release(self, handle: DispatchHandle) -> None:
        with self._lock:
            if handle not in self._pending:
                return
            self._pending.discard(handle)
        decrement_in_flight()

    def _execute(self, handle: DispatchHandle, event: InboundEvent) -> None:
        if not handle.start():
            return

        try:
            ctx = Context(Request.from_event(event), dispatch_id=handle.dispatch_id)
            finished = self.pipeline.run(ctx, guard=handle)
        except PipelineError as e:
            handle.fail(e)
        except Exception as e:
            handle.fail(PipelineError(f"Dispatch setup failed: {e}", cause=e))
        else:
            handle.complete(finished)

    def shutdown(self, wait: bool = True, cancel_pending: bool = False) -> None:
        """Stop accepting async dispatches and release the worker pool.

        Args:
            wait: Block until running dispatches finish
            cancel_pending: Cancel every dispatch that has not committed yet
        """
        with self._lock:
            self._closed = True
            pending = list(self._pending)
            executor = self._executor

        if cancel_pending:
            for handle in pending:
                handle.cancel()

        if executor is not None and self._owns_executor:
            executor.shutdown(wait=wait)

    def __enter__(self) -> "Dispatcher":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown(wait=True)


def dispatch(
    pipeline: Pipeline,
    event: InboundEvent | Mapping[str, Any],
    mode: DispatchMode | None = None,
    on_complete: CompletionCallback | None = None,
    on_failure: CompletionCallback | None = None,
) -> DispatchResult | DispatchHandle:
    """Dispatch one event through a pipeline with a single-use dispatcher.

    In async mode the worker pool is shut down without waiting; the
    submitted dispatch still runs to completion.
    """
    dispatcher = Dispatcher(pipeline)
    try:
        return dispatcher.dispatch(
            event, mode=mode, on_complete=on_complete, on_failure=on_failure
        )
    finally:
        dispatcher.shutdown(wait=False)


__all__ = ["Dispatcher", "DispatchHandle", "DispatchResult", "coerce_event", "dispatch"]
