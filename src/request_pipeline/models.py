"""Core type definitions and models for the request pipeline.

This module provides the data structures exchanged with the external
transport: the inbound event consumed by the dispatcher, the cookie
directives carried in both directions, and the enumerations describing
dispatch state and failure kinds.

Examples:
    Describing an inbound request::

        from request_pipeline.models import InboundEvent

        event = InboundEvent(
            method="get",
            path="/",
            headers={"Cookie": "name=Alice"},
        )
        event.method  # "GET"

    Describing an outbound cookie::

        from request_pipeline.models import Cookie

        cookie = Cookie(value="Alice", path="/", http_only=True, max_age=3600)
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class DispatchState(str, Enum):
    """Lifecycle state of one dispatch.

    Attributes:
        CREATED: Dispatch accepted but not started.
        RUNNING: The chain is executing.
        COMPLETED: The outermost stage returned a response.
        FAILED: A stage raised an uncaught error.
        CANCELLED: The dispatch was cancelled before committing to a response.
    """

    CREATED = "CREATED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (DispatchState.COMPLETED, DispatchState.FAILED, DispatchState.CANCELLED)


class ErrorKind(str, Enum):
    """Kind of failure recorded on a dispatch result."""

    PIPELINE = "pipeline"
    CONFIGURATION = "configuration"
    HANDLER = "handler"
    MIDDLEWARE = "middleware"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


class Cookie(BaseModel):
    """A cookie and its attributes.

    The same shape is used for cookies read from the ``Cookie`` request
    header (where only ``value`` is ever populated) and for cookie
    directives written to ``Set-Cookie`` response headers.

    Attributes:
        value: Cookie value.
        domain: Domain attribute, omitted when None.
        path: Path attribute, omitted when None.
        secure: Render the ``Secure`` flag.
        http_only: Render the ``HttpOnly`` flag.
        max_age: Max-Age in seconds, omitted when None.
        expires: Expiry timestamp, omitted when None.

    Examples:
        >>> Cookie(value="abc").secure
        False
    """

    value: str = Field(
        ...,
        description="Cookie value",
        examples=["Alice", "session-abc123"],
    )
    domain: str | None = Field(default=None, description="Domain attribute")
    path: str | None = Field(default=None, description="Path attribute")
    secure: bool = Field(default=False, description="Secure flag")
    http_only: bool = Field(default=False, description="HttpOnly flag")
    max_age: int | None = Field(default=None, description="Max-Age in seconds")
    expires: datetime | None = Field(default=None, description="Expiry timestamp")

    model_config = {"frozen": True, "extra": "forbid"}

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: str) -> str:
        """Reject values that would break the header line.

        Raises:
            ValueError: If the value contains ``;``, CR or LF.
        """
        if any(c in v for c in ";\r\n"):
            raise ValueError("cookie value must not contain ';', CR or LF")
        return v

    @field_validator("domain", "path")
    @classmethod
    def validate_attribute(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if any(c in v for c in ";\r\n"):
            raise ValueError("cookie attributes must not contain ';', CR or LF")
        if not v.isascii():
            raise ValueError("cookie attributes must be ASCII")
        return v


class InboundEvent(BaseModel):
    """One inbound request as delivered by the transport.

    Attributes:
        method: Request method, normalized to upper case.
        path: Request path.
        query_string: Raw query string without the leading ``?``.
        headers: Request headers. Lookups through ``Request.header()`` are
            case-insensitive.
        params: Parameters already decoded by the transport.
        body: Raw request body.
    """

    method: str = Field(..., min_length=1, examples=["GET", "POST"])
    path: str = Field(..., min_length=1, examples=["/", "/api/orders"])
    query_string: str = Field(default="", description="Query string without leading '?'")
    headers: dict[str, str] = Field(default_factory=dict)
    params: dict[str, str] = Field(default_factory=dict)
    body: bytes = Field(default=b"")

    @field_validator("method")
    @classmethod
    def validate_method(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("query_string")
    @classmethod
    def strip_question_mark(cls, v: str) -> str:
        return v[1:] if v.startswith("?") else v
