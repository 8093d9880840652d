"""Dispatch lifecycle state machine.

Every dispatch moves through:

    CREATED -> RUNNING -> COMPLETED / FAILED / CANCELLED

and may also go straight from CREATED to CANCELLED when it is cancelled
before a worker picks it up. Terminal states are final.

The ``DispatchHandle`` owns that state for one dispatch. It is also the
``StageGuard`` handed to ``Pipeline.run``: it raises ``CancellationError``
at the next stage boundary once the dispatch has been cancelled, and marks
the commit point when the response is decided (the terminal handler is
entered, or a middleware answers without calling ``next``). After the commit
point ``cancel()`` is a no-op and the dispatch completes normally.

Completion and failure callbacks fire exactly once, from the thread that
finished the chain, and never for a cancelled dispatch.

Examples:
    Waiting for an async dispatch::

        handle = dispatcher.dispatch(event, mode="async")
        result = handle.result(timeout=5)
        if result.ok:
            send(result.context.response)

    Awaiting from a coroutine::

        result = await dispatcher.dispatch(event, mode="async")
"""

import asyncio
import threading
import time
import uuid
from collections.abc import Callable, Generator
from concurrent.futures import Future
from typing import Any

from request_pipeline.core.context import Context
from request_pipeline.exceptions import (
    CancellationError,
    PipelineError,
    StateTransitionError,
)
from request_pipeline.models import DispatchState, ErrorKind
from request_pipeline.observability.logging import get_logger
from request_pipeline.observability.metrics import record_dispatch

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: dict[DispatchState, frozenset[DispatchState]] = {
    DispatchState.CREATED: frozenset({DispatchState.RUNNING, DispatchState.CANCELLED}),
    DispatchState.RUNNING: frozenset(
        {DispatchState.COMPLETED, DispatchState.FAILED, DispatchState.CANCELLED}
    ),
    DispatchState.COMPLETED: frozenset(),
    DispatchState.FAILED: frozenset(),
    DispatchState.CANCELLED: frozenset(),
}


class DispatchResult:
    """Outcome of one dispatch.

    Attributes:
        dispatch_id: Identifier of the dispatch
        state: Terminal state (COMPLETED, FAILED or CANCELLED)
        context: The completed context, set when COMPLETED
        error: The error, set when FAILED or CANCELLED
        duration_ms: Time the chain ran, None if it never started
    """

    def __init__(
        self,
        dispatch_id: str,
        state: DispatchState,
        context: Context | None = None,
        error: PipelineError | None = None,
        duration_ms: float | None = None,
    ) -> None:
        self.dispatch_id = dispatch_id
        self.state = state
        self.context = context
        self.error = error
        self.duration_ms = duration_ms

    @property
    def ok(self) -> bool:
        return self.state is DispatchState.COMPLETED

    @property
    def stage(self) -> str | None:
        """Originating stage of the failure, if any."""
        return self.error.stage if self.error is not None else None

    @property
    def kind(self) -> ErrorKind | None:
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> Context:
        """Return the completed context or raise the recorded error.

        Raises:
            PipelineError: The failure or cancellation of this dispatch
        """
        if self.state is DispatchState.COMPLETED and self.context is not None:
            return self.context
        if self.error is not None:
            raise self.error
        raise PipelineError(f"Dispatch {self.dispatch_id} ended in {self.state.value}")

    def __repr__(self) -> str:
        return (
            f"DispatchResult(state={self.state.value}, stage={self.stage!r}, "
            f"dispatch_id={self.dispatch_id!r})"
        )


CompletionCallback = Callable[[DispatchResult], Any]


class DispatchHandle:
    """State and outcome of one dispatch.

    Attributes:
        dispatch_id: Identifier shared with the dispatch's context
        mode: Dispatch mode the handle was created for
    """

    def __init__(
        self,
        mode: str = "sync",
        on_complete: CompletionCallback | None = None,
        on_failure: CompletionCallback | None = None,
        dispatch_id: str | None = None,
    ) -> None:
        self.dispatch_id = dispatch_id or uuid.uuid4().hex
        self.mode = mode
        self._on_complete = on_complete
        self._on_failure = on_failure
        self._lock = threading.Lock()
        self._state = DispatchState.CREATED
        self._committed = False
        self._started_at: float | None = None
        self._outcome: Future[DispatchResult] = Future()
        self._task: Future[Any] | None = None

    @property
    def state(self) -> DispatchState:
        with self._lock:
            return self._state

    @property
    def committed(self) -> bool:
        with self._lock:
            return self._committed

    def done(self) -> bool:
        return self._outcome.done()

    def attach(self, task: Future[Any]) -> None:
        """Attach the executor future running this dispatch."""
        self._task = task

    def _transition(self, to_state: DispatchState) -> None:
        # Caller holds self._lock
        if to_state not in ALLOWED_TRANSITIONS[self._state]:
            raise StateTransitionError(
                f"Illegal dispatch transition {self._state.value} -> {to_state.value}",
                from_state=self._state.value,
                to_state=to_state.value,
            )
        self._state = to_state

    def _elapsed_ms(self) -> float | None:
        if self._started_at is None:
            return None
        return (time.perf_counter() - self._started_at) * 1000

    def start(self) -> bool:
        """Move CREATED -> RUNNING.

        Returns:
            False if the dispatch was cancelled before it started
        """
        with self._lock:
            if self._state is DispatchState.CANCELLED:
                return False
            self._transition(DispatchState.RUNNING)
            self._started_at = time.perf_counter()
        return True

    def checkpoint(self, stage: str) -> None:
        """Raise CancellationError if the dispatch has been cancelled."""
        with self._lock:
            cancelled = self._state is DispatchState.CANCELLED
        if cancelled:
            raise CancellationError(
                f"Dispatch {self.dispatch_id} cancelled before {stage}", stage=stage
            )

    def commit(self) -> None:
        """Mark the commit point; cancellation is a no-op afterwards."""
        with self._lock:
            if self._state is DispatchState.CANCELLED:
                raise CancellationError(f"Dispatch {self.dispatch_id} cancelled before commit")
            self._committed = True

    def cancel(self) -> bool:
        """Cancel the dispatch if it has not committed to a response.

        A dispatch waiting for a worker never runs. A running dispatch stops
        at the next stage boundary without running outbound logic. Neither
        callback fires.

        Returns:
            True if the dispatch is now CANCELLED, False if it had already
            committed or finished
        """
        with self._lock:
            if self._state.is_terminal or self._committed:
                return False
            self._transition(DispatchState.CANCELLED)
            duration_ms = self._elapsed_ms()

        if self._task is not None:
            self._task.cancel()

        logger.info("dispatch.cancelled", dispatch_id=self.dispatch_id, mode=self.mode)
        record_dispatch(
            self.mode,
            DispatchState.CANCELLED.value,
            None if duration_ms is None else duration_ms / 1000,
        )
        self._outcome.set_result(
            DispatchResult(
                dispatch_id=self.dispatch_id,
                state=DispatchState.CANCELLED,
                error=CancellationError(f"Dispatch {self.dispatch_id} was cancelled"),
                duration_ms=duration_ms,
            )
        )
        return True

    def complete(self, ctx: Context) -> None:
        """Record a completed chain. Ignored if already cancelled."""
        with self._lock:
            if self._state is DispatchState.CANCELLED:
                return
            self._transition(DispatchState.COMPLETED)
            duration_ms = self._elapsed_ms()

        result = DispatchResult(
            dispatch_id=self.dispatch_id,
            state=DispatchState.COMPLETED,
            context=ctx,
            duration_ms=duration_ms,
        )
        logger.debug(
            "dispatch.completed",
            dispatch_id=self.dispatch_id,
            mode=self.mode,
            status=ctx.response.status,
            duration_ms=duration_ms,
        )
        self._finish(result, self._on_complete)

    def fail(self, error: PipelineError) -> None:
        """Record a failed chain. Ignored if already cancelled."""
        with self._lock:
            if self._state is DispatchState.CANCELLED:
                return
            self._transition(DispatchState.FAILED)
            duration_ms = self._elapsed_ms()

        result = DispatchResult(
            dispatch_id=self.dispatch_id,
            state=DispatchState.FAILED,
            error=error,
            duration_ms=duration_ms,
        )
        logger.warning(
            "dispatch.failed",
            dispatch_id=self.dispatch_id,
            mode=self.mode,
            kind=error.kind.value,
            stage=error.stage,
            error=error.message,
        )
        self._finish(result, self._on_failure)

    def _finish(self, result: DispatchResult, callback: CompletionCallback | None) -> None:
        record_dispatch(
            self.mode,
            result.state.value,
            None if result.duration_ms is None else result.duration_ms / 1000,
        )
        self._outcome.set_result(result)

        if callback is None:
            return
        try:
            callback(result)
        except Exception as e:
            logger.error(
                "dispatch.callback_failed",
                dispatch_id=self.dispatch_id,
                state=result.state.value,
                error=str(e),
                error_type=type(e).__name__,
            )

    def result(self, timeout: float | None = None) -> DispatchResult:
        """Block until the dispatch reaches a terminal state.

        Raises:
            TimeoutError: If the timeout elapses first
        """
        return self._outcome.result(timeout=timeout)

    def __await__(self) -> Generator[Any, None, DispatchResult]:
        return asyncio.wrap_future(self._outcome).__await__()

    def __repr__(self) -> str:
        return f"DispatchHandle(dispatch_id={self.dispatch_id!r}, state={self.state.value})"
