"""Deprecation warnings for pipeline features.

``DeprecationMiddleware`` reports use of a deprecated feature according to
the pipeline's ``warn_mode``, unless the middleware was given its own ``mode``:

- ``runtime``: warn the first time a request passes through the stage,
  then never again for that feature. The "already warned" record is a
  ``WarnedFeatures`` set owned by the middleware instance (or injected and
  shared between instances), updated with one atomic check-then-set.
- ``build-time``: warn once from the build hook every time a pipeline
  containing the middleware is built, and never at request time.
- ``silent``: never warn.

Examples:
    Sharing the record between two pipelines::

        warned = WarnedFeatures()
        legacy = DeprecationMiddleware("v1-session-cookie", warned=warned)
        api = build(api_handler, [legacy])
        admin = build(admin_handler, [legacy])
        # The feature is reported once, whichever pipeline sees it first.

    Capturing warnings in tests::

        seen = []
        mw = DeprecationMiddleware("old-api", emit=lambda f, m: seen.append(f))
"""

import threading
from collections.abc import Callable

from request_pipeline.config import PipelineConfig, WarnMode
from request_pipeline.core.context import Context
from request_pipeline.core.middleware import Middleware, Next
from request_pipeline.observability.logging import get_logger
from request_pipeline.observability.metrics import record_deprecation_warning

logger = get_logger(__name__)

# emit(feature, message)
WarningEmitter = Callable[[str, str], None]


class WarnedFeatures:
    """Thread-safe set of feature identifiers that have been warned about."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._features: set[str] = set()

    def add_if_absent(self, feature: str) -> bool:
        """Record the feature.

        Returns:
            True for exactly one caller per feature, False afterwards
        """
        with self._lock:
            if feature in self._features:
                return False
            self._features.add(feature)
            return True

    def __contains__(self, feature: object) -> bool:
        with self._lock:
            return feature in self._features

    def __len__(self) -> int:
        with self._lock:
            return len(self._features)

    def clear(self) -> None:
        with self._lock:
            self._features.clear()


def log_deprecation(feature: str, message: str) -> None:
    """Default emitter: a structured warning log line."""
    logger.warning("deprecation.warning", feature=feature, message=message)


class DeprecationMiddleware(Middleware):
    """Reports use of a deprecated feature.

    Attributes:
        feature: Identifier of the deprecated feature
        message: Human-readable deprecation notice
        warned: Record of features already warned about (runtime mode)
        mode: Warn mode. An explicit value overrides the pipeline config;
            otherwise it is taken from the config at build time. None until
            built, in which case runtime behaviour applies.
        applies: Optional predicate selecting the requests that use the
            feature. Every request does when omitted.
    """

    def __init__(
        self,
        feature: str,
        message: str | None = None,
        warned: WarnedFeatures | None = None,
        emit: WarningEmitter | None = None,
        mode: WarnMode | None = None,
        applies: Callable[[Context], bool] | None = None,
    ) -> None:
        if not feature:
            raise ValueError("feature must be a non-empty identifier")
        self.feature = feature
        self.message = message or f"{feature} is deprecated"
        self.warned = warned if warned is not None else WarnedFeatures()
        self.emit = emit or log_deprecation
        self.mode = mode
        self.applies = applies
        self.name = f"deprecation:{feature}"

    def _emit(self) -> None:
        record_deprecation_warning(self.feature)
        self.emit(self.feature, self.message)

    def on_build(self, config: PipelineConfig) -> "DeprecationMiddleware":
        mode = self.mode if self.mode is not None else config.warn_mode
        if mode == "build-time":
            self._emit()
        return DeprecationMiddleware(
            self.feature,
            message=self.message,
            warned=self.warned,
            emit=self.emit,
            mode=mode,
            applies=self.applies,
        )

    def apply(self, ctx: Context, next: Next) -> Context:
        if self.mode in (None, "runtime") and (self.applies is None or self.applies(ctx)):
            if self.warned.add_if_absent(self.feature):
                self._emit()
        return next(ctx)
