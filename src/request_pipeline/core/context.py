"""Per-dispatch request/response carrier.

A ``Context`` is created by the dispatcher for exactly one inbound event
and discarded once the response has been produced. It exposes:

- ``request``: read-only view of the inbound event
- ``cookies_in``: cookies parsed from the request (filled by cookie middleware)
- ``response``: writable response half, including outbound cookie directives
- ``attributes``: free-form mapping for middleware-to-middleware communication

Examples:
    Writing a response from a handler::

        def hello(ctx: Context) -> Context:
            name = ctx.cookies_in["name"].value
            ctx.response.write_text(f"Hello, {name}")
            ctx.response.set_cookie("name", name, path="/")
            return ctx
"""

import uuid
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from request_pipeline.models import Cookie, InboundEvent
from request_pipeline.utils.headers import get_header_value


class Request:
    """Read-only request representation.

    Attributes:
        method: HTTP method (GET, POST, etc.)
        path: URL path
        query_string: Query string without leading '?'
        headers: Request headers (read-only mapping)
        params: Transport-decoded parameters (read-only mapping)
        body: Request body as bytes
    """

    __slots__ = ("_method", "_path", "_query_string", "_headers", "_params", "_body")

    def __init__(
        self,
        method: str,
        path: str,
        query_string: str = "",
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        body: bytes = b"",
    ) -> None:
        self._method = method
        self._path = path
        self._query_string = query_string
        self._headers: Mapping[str, str] = MappingProxyType(dict(headers or {}))
        self._params: Mapping[str, str] = MappingProxyType(dict(params or {}))
        self._body = body

    @classmethod
    def from_event(cls, event: InboundEvent) -> "Request":
        return cls(
            method=event.method,
            path=event.path,
            query_string=event.query_string,
            headers=event.headers,
            params=event.params,
            body=event.body,
        )

    @property
    def method(self) -> str:
        return self._method

    @property
    def path(self) -> str:
        return self._path

    @property
    def query_string(self) -> str:
        return self._query_string

    @property
    def headers(self) -> Mapping[str, str]:
        return self._headers

    @property
    def params(self) -> Mapping[str, str]:
        return self._params

    @property
    def body(self) -> bytes:
        return self._body

    def header(self, name: str, default: str | None = None) -> str | None:
        """Case-insensitive header lookup."""
        return get_header_value(self._headers, name, default)

    def __repr__(self) -> str:
        return f"Request(method={self._method!r}, path={self._path!r})"


class InboundCookies(dict[str, Cookie]):
    """Request cookies, name -> Cookie.

    Entries can be added or overwritten but never removed, so a cookie seen
    by one stage is still there for every stage after it.
    """

    def _refuse(self, *args: Any) -> Any:
        raise TypeError("request cookies cannot be removed")

    __delitem__ = _refuse
    pop = _refuse
    popitem = _refuse
    clear = _refuse


class Response:
    """Writable response half of a context.

    Attributes:
        status: HTTP status code
        headers: Response headers (excluding Set-Cookie)
        body: Response body as bytes
        cookies: Outbound cookie directives, name -> Cookie
        set_cookie_headers: Serialized ``Set-Cookie`` lines, one per cookie.
            Written by the cookie middleware on the way out.
    """

    def __init__(
        self,
        status: int = 200,
        headers: dict[str, str] | None = None,
        body: bytes = b"",
    ) -> None:
        self.status = status
        self.headers: dict[str, str] = headers if headers is not None else {}
        self.body = body
        self.cookies: dict[str, Cookie] = {}
        self.set_cookie_headers: list[str] = []

    def write_text(
        self,
        text: str,
        status: int | None = None,
        content_type: str = "text/plain; charset=utf-8",
    ) -> None:
        """Set a UTF-8 text body and its content type."""
        self.body = text.encode("utf-8")
        self.headers["content-type"] = content_type
        if status is not None:
            self.status = status

    def write_html(self, html: str, status: int | None = None) -> None:
        self.write_text(html, status=status, content_type="text/html; charset=utf-8")

    def set_cookie(self, name: str, value: str, **attributes: Any) -> Cookie:
        """Add or overwrite an outbound cookie directive.

        Args:
            name: Cookie name
            value: Cookie value
            **attributes: Any ``Cookie`` attribute (domain, path, secure,
                http_only, max_age, expires)

        Returns:
            The stored Cookie
        """
        cookie = Cookie(value=value, **attributes)
        self.cookies[name] = cookie
        return cookie

    def header_items(self) -> list[tuple[str, str]]:
        """All response header lines, including one per Set-Cookie line."""
        items = list(self.headers.items())
        items.extend(("set-cookie", line) for line in self.set_cookie_headers)
        return items

    def __repr__(self) -> str:
        return f"Response(status={self.status}, cookies={sorted(self.cookies)})"


class Context:
    """Carrier for one request cycle.

    Attributes:
        dispatch_id: Identifier of the dispatch that owns this context
        request: Read-only inbound request
        cookies_in: Cookies parsed from the request, name -> Cookie.
            Append/overwrite only.
        response: Writable response
        attributes: Mapping for middleware-to-middleware communication
    """

    def __init__(self, request: Request, dispatch_id: str | None = None) -> None:
        self.dispatch_id = dispatch_id or uuid.uuid4().hex
        self._request = request
        self._cookies_in = InboundCookies()
        self.response = Response()
        self.attributes: dict[str, Any] = {}

    @property
    def request(self) -> Request:
        return self._request

    @property
    def cookies_in(self) -> InboundCookies:
        return self._cookies_in

    @property
    def params(self) -> Mapping[str, str]:
        """Decoded parameters, as merged by the params middleware.

        Falls back to the transport-decoded request parameters when the
        params middleware is not installed.
        """
        params = self.attributes.get("params")
        if params is None:
            return self._request.params
        return params

    def __repr__(self) -> str:
        return f"Context(dispatch_id={self.dispatch_id!r}, request={self._request!r})"
