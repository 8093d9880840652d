"""Pipeline composition and chain execution.

``build()`` composes an ordered list of middleware around a terminal
handler. The first middleware is outermost: it runs first on the way in
and last on the way out.

``Pipeline.run()`` executes the chain for one context. Any error raised by
a stage aborts the rest of the chain: no further inbound stages run, and
the stages being unwound do not run their outbound logic. The error is
re-raised as a ``PipelineError`` naming the originating stage.

Examples:
    Building and running a pipeline::

        from request_pipeline.core.pipeline import build
        from request_pipeline.middleware import CookieMiddleware, ParamsMiddleware

        pipeline = build(show_name, [CookieMiddleware(), ParamsMiddleware()])
        result = Dispatcher(pipeline).dispatch(event)
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from request_pipeline.config import PipelineConfig
from request_pipeline.core.context import Context
from request_pipeline.core.handler import Handler, not_found
from request_pipeline.core.handler import handler_name as resolve_handler_name
from request_pipeline.core.middleware import Middleware
from request_pipeline.exceptions import (
    ConfigurationError,
    HandlerError,
    MiddlewareError,
    PipelineError,
)
from request_pipeline.observability.logging import get_logger

logger = get_logger(__name__)


class StageGuard(Protocol):
    """Hooks the dispatcher uses to observe chain progress.

    ``checkpoint`` is called before every stage is entered and may raise
    ``CancellationError``. ``commit`` is called once per run, at the point
    the response is decided: right before the terminal handler runs, or when
    a middleware returns without calling ``next``. After it the dispatch can
    no longer be cancelled, and ``commit`` itself raises
    ``CancellationError`` if a cancel got there first.
    """

    def checkpoint(self, stage: str) -> None: ...

    def commit(self) -> None: ...


class _NoGuard:
    def checkpoint(self, stage: str) -> None:
        return None

    def commit(self) -> None:
        return None


_NO_GUARD = _NoGuard()


@dataclass(frozen=True, slots=True)
class Pipeline:
    """Immutable chain of middleware around one terminal handler.

    Pipelines hold no per-dispatch state and can be shared across threads.

    Attributes:
        middleware: Installed stages, outermost first
        handler: Terminal handler
        config: Configuration resolved at build time
    """

    middleware: tuple[Middleware, ...]
    handler: Handler
    config: PipelineConfig

    @property
    def handler_name(self) -> str:
        return resolve_handler_name(self.handler)

    @property
    def stage_names(self) -> list[str]:
        return [m.stage_name for m in self.middleware] + [self.handler_name]

    def run(self, ctx: Context, guard: StageGuard | None = None) -> Context:
        """Execute the chain for one context.

        Args:
            ctx: Fresh context owned by the calling dispatch
            guard: Optional progress hooks (cancellation, commit point)

        Returns:
            The context returned by the outermost stage

        Raises:
            PipelineError: The first error raised by any stage, with its
                originating stage set
        """
        active_guard = guard or _NO_GUARD
        stages = self.middleware
        failures: list[PipelineError] = []

        def fail(error: PipelineError, stage: str) -> PipelineError:
            if error.stage is None:
                error.stage = stage
            if not failures:
                failures.append(error)
            return failures[0]

        def invoke(index: int, current: Context) -> Context:
            if index == len(stages):
                return call_handler(current)

            stage = stages[index]
            name = stage.stage_name
            next_called = False

            def next_stage(downstream: Context) -> Context:
                nonlocal next_called
                if next_called:
                    raise MiddlewareError(f"Middleware {name} called next more than once")
                next_called = True
                return invoke(index + 1, downstream)

            try:
                active_guard.checkpoint(name)
                result = stage.apply(current, next_stage)
                # A stage answering without calling next has produced the response
                if not next_called:
                    active_guard.commit()
            except PipelineError as e:
                raise fail(e, name)
            except Exception as e:
                raise fail(
                    MiddlewareError(f"Middleware {name} failed: {e}", stage=name, cause=e), name
                ) from e

            # A stage that caught a downstream error still fails the dispatch
            if failures:
                raise failures[0]
            if not isinstance(result, Context):
                raise fail(
                    MiddlewareError(
                        f"Middleware {name} returned {type(result).__name__}, expected Context"
                    ),
                    name,
                )
            return result

        def call_handler(current: Context) -> Context:
            name = self.handler_name
            try:
                active_guard.checkpoint(name)
                active_guard.commit()
                result = self.handler(current)
            except PipelineError as e:
                raise fail(e, name)
            except Exception as e:
                raise fail(
                    HandlerError(f"Handler {name} failed: {e}", stage=name, cause=e), name
                ) from e

            if result is None:
                return current
            if not isinstance(result, Context):
                raise fail(
                    HandlerError(
                        f"Handler {name} returned {type(result).__name__}, expected Context"
                    ),
                    name,
                )
            return result

        return invoke(0, ctx)


def resolve_config(options: PipelineConfig | Mapping[str, Any] | None) -> PipelineConfig:
    """Resolve builder options into a PipelineConfig.

    Raises:
        ConfigurationError: If options are of the wrong type, contain an
            unrecognized key or an invalid value
    """
    if options is None:
        return PipelineConfig()
    if isinstance(options, PipelineConfig):
        return options
    if isinstance(options, Mapping):
        return PipelineConfig.from_dict(options)
    raise ConfigurationError(
        f"Pipeline options must be a PipelineConfig or a mapping, got {type(options).__name__}"
    )


def build(
    handler: Handler | None = None,
    middleware: Sequence[Middleware] = (),
    options: PipelineConfig | Mapping[str, Any] | None = None,
) -> Pipeline:
    """Compose middleware around a handler into an immutable Pipeline.

    Everything is validated before any build hook runs, so a failing build
    constructs nothing. Each middleware's ``on_build`` hook is then called
    exactly once, in order, and the stage it returns is installed.

    Args:
        handler: Terminal handler. Defaults to ``not_found`` when middleware
            is given.
        middleware: Middleware, outermost first
        options: PipelineConfig or mapping of configuration options

    Returns:
        The composed Pipeline

    Raises:
        ConfigurationError: If there is neither a handler nor middleware, an
            entry is not a Middleware, the handler is not callable, or an
            option is unrecognized or invalid
    """
    config = resolve_config(options)
    stages = list(middleware)

    if handler is None and not stages:
        raise ConfigurationError("A pipeline needs a handler or at least one middleware")
    if handler is not None and not callable(handler):
        raise ConfigurationError(f"Handler must be callable, got {type(handler).__name__}")
    for position, stage in enumerate(stages):
        if not isinstance(stage, Middleware):
            raise ConfigurationError(
                f"Middleware at position {position} is {type(stage).__name__}, "
                "expected a Middleware instance"
            )

    installed: list[Middleware] = []
    for stage in stages:
        try:
            bound = stage.on_build(config)
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(
                f"Build hook of {stage.stage_name} failed: {e}"
            ) from e
        if not isinstance(bound, Middleware):
            raise ConfigurationError(
                f"Build hook of {stage.stage_name} returned {type(bound).__name__}"
            )
        installed.append(bound)

    pipeline = Pipeline(
        middleware=tuple(installed),
        handler=handler if handler is not None else not_found,
        config=config,
    )

    logger.debug(
        "pipeline.built",
        stages=pipeline.stage_names,
        dispatch_mode=config.dispatch_mode,
        warn_mode=config.warn_mode,
    )
    return pipeline
