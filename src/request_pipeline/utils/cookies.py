"""Cookie wire encoding.

Parsing turns a ``Cookie`` request header into a mapping of cookie name to
``Cookie``. Each pair is decoded with Starlette's ``cookie_parser``, so
quoted values and octal escapes are handled exactly as Starlette handles
``request.cookies``.

Serialization renders one ``Set-Cookie`` header line per cookie directive,
with each attribute rendered only when present. Values are quoted through
``http.cookies`` the way Starlette's ``Response.set_cookie`` does. Non-ASCII
text is carried as escaped UTF-8 bytes, so every rendered line is ASCII and
parses back to the original value.

Examples:
    Parsing a request header::

        >>> cookies = parse_cookie_header('name=Alice; theme="dark"')
        >>> cookies["theme"].value
        'dark'

    Serializing a directive::

        >>> serialize_set_cookie("name", Cookie(value="Alice", path="/", http_only=True))
        'name=Alice; Path=/; HttpOnly'
        >>> serialize_set_cookie("name", Cookie(value="Ann Lee, Jr"))
        'name="Ann Lee\\\\054 Jr"'
"""

from collections.abc import Mapping
from datetime import UTC, datetime
from email.utils import format_datetime
from http.cookies import SimpleCookie

from starlette.requests import cookie_parser

from request_pipeline.models import Cookie

# Characters that may not appear in a cookie name (RFC 6265 token separators)
_NAME_SEPARATORS = set('()<>@,;:\\"/[]?={} \t')

_VALUE_CODER = SimpleCookie()


def _is_valid_name(name: str) -> bool:
    return bool(name) and not any(
        c in _NAME_SEPARATORS or ord(c) < 32 or ord(c) > 126 for c in name
    )


def _decode_utf8(value: str) -> str:
    # Header text arrives latin-1 decoded; recover UTF-8 encoded values
    try:
        return value.encode("latin-1").decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError):
        return value


def encode_value(value: str) -> str:
    """Quote a cookie value for a ``Set-Cookie`` line.

    Values made only of cookie-safe characters are returned unchanged.
    Anything else is double-quoted with backslash escapes, and non-ASCII
    characters become octal escapes of their UTF-8 bytes.

    Example:
        >>> encode_value("Alice")
        'Alice'
        >>> encode_value("李")
        '"\\\\346\\\\235\\\\216"'
    """
    _, coded = _VALUE_CODER.value_encode(value.encode("utf-8").decode("latin-1"))
    return coded


def parse_cookie_header(header: str | None) -> dict[str, Cookie]:
    """Parse a ``Cookie`` request header.

    Malformed pairs (no ``=``, empty or invalid name, control characters in
    the value) are skipped. Quoted values are unquoted and their escapes
    decoded. When a name repeats, the first occurrence wins.

    Parsing is deterministic, so parsing the same header twice yields equal
    mappings.

    Args:
        header: Raw header value, or None when the header is absent

    Returns:
        Mapping of cookie name to Cookie (value only)
    """
    cookies: dict[str, Cookie] = {}
    if not header:
        return cookies

    for pair in header.split(";"):
        if "=" not in pair:
            continue

        for name, value in cookie_parser(pair).items():
            if not _is_valid_name(name) or name in cookies:
                continue

            value = _decode_utf8(value)
            if any(c in value for c in "\r\n;"):
                continue

            cookies[name] = Cookie(value=value)

    return cookies


def format_expires(expires: datetime) -> str:
    """Render an expiry timestamp as an HTTP date.

    Naive datetimes are taken to be UTC.

    Example:
        >>> format_expires(datetime(2030, 1, 2, 3, 4, 5, tzinfo=UTC))
        'Wed, 02 Jan 2030 03:04:05 GMT'
    """
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=UTC)
    return format_datetime(expires.astimezone(UTC), usegmt=True)


def serialize_set_cookie(name: str, cookie: Cookie) -> str:
    """Serialize one cookie directive to a ``Set-Cookie`` header value.

    Args:
        name: Cookie name
        cookie: Cookie value and attributes

    Returns:
        ASCII header value, e.g. ``"name=Alice; Path=/; Max-Age=60; Secure"``

    Raises:
        ValueError: If the cookie name is not a valid token
    """
    if not _is_valid_name(name):
        raise ValueError(f"Invalid cookie name: {name!r}")

    parts = [f"{name}={encode_value(cookie.value)}"]

    if cookie.domain is not None:
        parts.append(f"Domain={cookie.domain}")
    if cookie.path is not None:
        parts.append(f"Path={cookie.path}")
    if cookie.max_age is not None:
        parts.append(f"Max-Age={cookie.max_age}")
    if cookie.expires is not None:
        parts.append(f"Expires={format_expires(cookie.expires)}")
    if cookie.secure:
        parts.append("Secure")
    if cookie.http_only:
        parts.append("HttpOnly")

    return "; ".join(parts)


def serialize_set_cookies(cookies: Mapping[str, Cookie]) -> list[str]:
    """Serialize every cookie directive, one header line per entry.

    Lines are produced in the mapping's iteration order.
    """
    return [serialize_set_cookie(name, cookie) for name, cookie in cookies.items()]
