"""Custom exceptions for the request pipeline.

This module defines the exception hierarchy used throughout the pipeline
to signal configuration problems, failures inside pipeline stages, and
cancelled or rejected dispatches.

Stage failures are never raised out of ``Dispatcher.dispatch`` directly.
They are captured on the ``DispatchResult`` together with the name of the
stage that raised them, and re-raised by ``DispatchResult.unwrap()``.

Examples:
    Handling a bad configuration::

        from request_pipeline.exceptions import ConfigurationError

        try:
            pipeline = build(handler, [CookieMiddleware()], {"dispatch-mode": "fast"})
        except ConfigurationError as e:
            logger.error("pipeline.misconfigured", error=e.message)
            raise

    Inspecting a failed dispatch::

        result = dispatcher.dispatch(event)
        if result.state is DispatchState.FAILED:
            logger.warning(
                "dispatch.failed",
                stage=result.error.stage,
                kind=result.error.kind.value,
            )
"""

from request_pipeline.models import ErrorKind


class PipelineError(Exception):
    """Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error description.
        stage: Name of the pipeline stage the error originated in, if any.
        cause: The underlying exception, if this error wraps one.
    """

    kind: ErrorKind = ErrorKind.PIPELINE

    def __init__(
        self,
        message: str,
        stage: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            stage: Originating stage name.
            cause: Underlying exception.
        """
        self.message = message
        self.stage = stage
        self.cause = cause
        super().__init__(message)


class ConfigurationError(PipelineError):
    """Invalid pipeline or dispatcher configuration.

    Raised eagerly by ``build()`` and ``PipelineConfig.from_dict()``, never
    during a dispatch.

    Attributes:
        option: The offending option name, when a single option is at fault.

    Examples:
        Unknown option::

            try:
                PipelineConfig.from_dict({"colour": "blue"})
            except ConfigurationError as e:
                assert e.option == "colour"
    """

    kind = ErrorKind.CONFIGURATION

    def __init__(self, message: str, option: str | None = None) -> None:
        """Initialize the configuration error.

        Args:
            message: Human-readable error description.
            option: The offending option name.
        """
        super().__init__(message)
        self.option = option


class HandlerError(PipelineError):
    """Business-logic failure inside the terminal handler.

    Handlers may raise this directly. Any other exception escaping a handler
    is wrapped in a ``HandlerError`` with the original kept as ``cause``.
    """

    kind = ErrorKind.HANDLER


class MiddlewareError(PipelineError):
    """Failure inside a non-terminal pipeline stage.

    Any exception escaping a middleware's ``apply`` is wrapped in a
    ``MiddlewareError`` naming that middleware as the originating stage.
    """

    kind = ErrorKind.MIDDLEWARE


class CancellationError(PipelineError):
    """The dispatch was cancelled before it completed.

    This marks a terminal state rather than a true failure. It is raised
    inside the chain at the next stage boundary after ``cancel()`` and is
    reported on the ``DispatchResult`` of a CANCELLED dispatch.
    """

    kind = ErrorKind.CANCELLED


class DispatchRejectedError(PipelineError):
    """The dispatcher refused to schedule a dispatch.

    Raised synchronously by ``Dispatcher.dispatch`` in async mode when the
    number of pending dispatches has reached ``max_pending``, or when the
    dispatcher has been shut down. Nothing is scheduled.

    Attributes:
        pending: Number of dispatches pending when the request was rejected.
    """

    kind = ErrorKind.REJECTED

    def __init__(self, message: str, pending: int = 0) -> None:
        """Initialize the rejection error.

        Args:
            message: Human-readable error description.
            pending: Number of dispatches pending at rejection time.
        """
        super().__init__(message)
        self.pending = pending


class StateTransitionError(PipelineError):
    """An illegal dispatch state transition was attempted.

    Indicates a bug in the dispatcher, never a user error.

    Attributes:
        from_state: The current state.
        to_state: The requested state.
    """

    def __init__(self, message: str, from_state: str, to_state: str) -> None:
        """Initialize the transition error.

        Args:
            message: Human-readable error description.
            from_state: The current state.
            to_state: The requested state.
        """
        super().__init__(message)
        self.from_state = from_state
        self.to_state = to_state
