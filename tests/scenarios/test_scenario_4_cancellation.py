"""Scenario 4: Cancellation

- A dispatch waiting for a worker can be cancelled and never runs
- A dispatch still inside its middleware can be cancelled; the chain stops
  at the next stage boundary and the handler never runs
- Once the handler has been entered, or a middleware has answered without
  calling next, cancel() is a no-op and the dispatch completes normally,
  firing its callback exactly once
- Cancelled dispatches never fire callbacks
"""

import threading

import pytest

from request_pipeline.core.dispatcher import Dispatcher
from request_pipeline.core.middleware import WrappingMiddleware
from request_pipeline.core.pipeline import build
from request_pipeline.exceptions import CancellationError
from request_pipeline.middleware.cookies import CookieMiddleware
from request_pipeline.middleware.required import RequireCookiesMiddleware
from request_pipeline.models import DispatchState, ErrorKind


class _Gate:
    def __init__(self) -> None:
        self.entered = threading.Event()
        self.release = threading.Event()

    def pass_through(self) -> None:
        self.entered.set()
        assert self.release.wait(timeout=5)


class _GatedMiddleware(WrappingMiddleware):
    name = "gated"

    def __init__(self, gate: _Gate, log: list[str]) -> None:
        self.gate = gate
        self.log = log

    def before(self, ctx):
        self.log.append("gated.in")
        self.gate.pass_through()

    def after(self, ctx):
        self.log.append("gated.out")


def _callbacks():
    completed, failed = [], []
    return completed, failed, {"on_complete": completed.append, "on_failure": failed.append}


def test_cancel_after_handler_entered_is_noop(make_event, execution_log):
    gate = _Gate()

    def handler(ctx):
        execution_log.append("handler")
        gate.pass_through()
        ctx.response.write_text("done")
        return ctx

    completed, failed, callbacks = _callbacks()
    with Dispatcher(build(handler)) as dispatcher:
        handle = dispatcher.dispatch(make_event(), mode="async", **callbacks)
        assert gate.entered.wait(timeout=5)

        assert handle.cancel() is False
        gate.release.set()
        result = handle.result(timeout=5)

    assert result.state is DispatchState.COMPLETED
    assert result.context.response.body == b"done"
    assert len(completed) == 1
    assert failed == []


class _GatedAfter(WrappingMiddleware):
    name = "outer"

    def __init__(self, gate: _Gate, log: list[str]) -> None:
        self.gate = gate
        self.log = log

    def before(self, ctx):
        self.log.append("outer.in")

    def after(self, ctx):
        self.log.append("outer.out")
        self.gate.pass_through()


def test_cancel_after_short_circuit_answer_is_noop(make_event, execution_log):
    gate = _Gate()

    def handler(ctx):
        execution_log.append("handler")
        return ctx

    pipeline = build(
        handler,
        [_GatedAfter(gate, execution_log), CookieMiddleware(), RequireCookiesMiddleware(["session"])],
    )
    completed, failed, callbacks = _callbacks()
    with Dispatcher(pipeline) as dispatcher:
        handle = dispatcher.dispatch(make_event(), mode="async", **callbacks)
        assert gate.entered.wait(timeout=5)

        assert handle.cancel() is False
        gate.release.set()
        result = handle.result(timeout=5)

    assert result.state is DispatchState.COMPLETED
    assert result.context.response.status == 401
    assert execution_log == ["outer.in", "outer.out"]
    assert len(completed) == 1
    assert failed == []


def test_cancel_after_completion_is_noop(make_event):
    completed, failed, callbacks = _callbacks()
    with Dispatcher(build(lambda ctx: ctx)) as dispatcher:
        handle = dispatcher.dispatch(make_event(), mode="async", **callbacks)
        result = handle.result(timeout=5)
        assert handle.cancel() is False

    assert result.state is DispatchState.COMPLETED
    assert handle.state is DispatchState.COMPLETED
    assert len(completed) == 1


def test_cancel_queued_dispatch(make_event, execution_log):
    gate = _Gate()

    def handler(ctx):
        execution_log.append(ctx.request.path)
        if ctx.request.path == "/first":
            gate.pass_through()
        return ctx

    completed, failed, callbacks = _callbacks()
    pipeline = build(handler, options={"worker-count": 1})
    with Dispatcher(pipeline) as dispatcher:
        first = dispatcher.dispatch(make_event(path="/first"), mode="async")
        assert gate.entered.wait(timeout=5)
        queued = dispatcher.dispatch(make_event(path="/queued"), mode="async", **callbacks)

        assert queued.cancel() is True
        gate.release.set()
        first.result(timeout=5)

    result = queued.result(timeout=5)
    assert result.state is DispatchState.CANCELLED
    assert result.kind is ErrorKind.CANCELLED
    assert execution_log == ["/first"]
    assert completed == [] and failed == []


def test_cancel_inside_middleware_stops_before_handler(make_event, execution_log):
    gate = _Gate()

    def handler(ctx):
        execution_log.append("handler")
        return ctx

    completed, failed, callbacks = _callbacks()
    pipeline = build(handler, [_GatedMiddleware(gate, execution_log)])
    with Dispatcher(pipeline) as dispatcher:
        handle = dispatcher.dispatch(make_event(), mode="async", **callbacks)
        assert gate.entered.wait(timeout=5)

        assert handle.cancel() is True
        gate.release.set()
    # Leaving the block waited for the worker to unwind

    result = handle.result(timeout=5)
    assert result.state is DispatchState.CANCELLED
    assert execution_log == ["gated.in"]
    assert completed == [] and failed == []
    with pytest.raises(CancellationError):
        result.unwrap()


def test_second_cancel_returns_false(make_event):
    gate = _Gate()
    pipeline = build(lambda ctx: ctx, [_GatedMiddleware(gate, [])])
    with Dispatcher(pipeline) as dispatcher:
        handle = dispatcher.dispatch(make_event(), mode="async")
        assert gate.entered.wait(timeout=5)
        assert handle.cancel() is True
        assert handle.cancel() is False
        gate.release.set()

    assert handle.state is DispatchState.CANCELLED


def test_shutdown_cancels_pending(make_event):
    gate = _Gate()

    def handler(ctx):
        gate.pass_through()
        return ctx

    pipeline = build(handler, options={"worker-count": 1})
    dispatcher = Dispatcher(pipeline)
    running = dispatcher.dispatch(make_event(), mode="async")
    assert gate.entered.wait(timeout=5)
    queued = [dispatcher.dispatch(make_event(), mode="async") for _ in range(3)]

    dispatcher.shutdown(wait=False, cancel_pending=True)
    gate.release.set()

    assert running.result(timeout=5).state is DispatchState.COMPLETED
    assert all(h.result(timeout=5).state is DispatchState.CANCELLED for h in queued)
