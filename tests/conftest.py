"""
Pytest configuration and shared fixtures for request_pipeline tests.
"""

from collections.abc import Callable
from typing import Any

import pytest

from request_pipeline.models import InboundEvent


@pytest.fixture
def make_event() -> Callable[..., InboundEvent]:
    """Build inbound events with sensible defaults."""

    def factory(
        method: str = "GET",
        path: str = "/",
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> InboundEvent:
        return InboundEvent(method=method, path=path, headers=headers or {}, **kwargs)

    return factory


@pytest.fixture
def execution_log() -> list[str]:
    """Shared log for recording middleware and handlers."""
    return []
