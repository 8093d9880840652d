"""Header lookup and manipulation utilities for the request pipeline.

This module provides functions for:
- Case-insensitive header lookup
- Decoding url-encoded parameters from query strings and form bodies
"""

from collections.abc import Mapping
from urllib.parse import parse_qsl

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def get_header_value(
    headers: Mapping[str, str],
    header_name: str,
    default: str | None = None,
) -> str | None:
    """Get header value with case-insensitive lookup.

    Args:
        headers: Headers mapping
        header_name: Name of header to find (case-insensitive)
        default: Default value if header not found

    Returns:
        Header value or default

    Example:
        >>> headers = {"Cookie": "name=Alice"}
        >>> get_header_value(headers, "cookie")
        'name=Alice'
        >>> get_header_value(headers, "missing", "default")
        'default'
    """
    header_name_lower = header_name.lower()

    for key, value in headers.items():
        if key.lower() == header_name_lower:
            return value

    return default


def is_form_encoded(headers: Mapping[str, str]) -> bool:
    """Check whether the request body is url-encoded form data.

    Parameters such as ``charset`` after the media type are ignored.

    Example:
        >>> is_form_encoded({"Content-Type": "application/x-www-form-urlencoded; charset=utf-8"})
        True
    """
    content_type = get_header_value(headers, "content-type", "") or ""
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == FORM_CONTENT_TYPE


def parse_params(encoded: str) -> dict[str, str]:
    """Decode a url-encoded parameter string.

    Blank values are kept. When a name repeats, the first value wins, so
    parameter keys stay unique.

    Args:
        encoded: Query string or form body without a leading '?'

    Returns:
        Mapping of parameter names to values

    Example:
        >>> parse_params("name=Alice&empty=&name=Bob")
        {'name': 'Alice', 'empty': ''}
    """
    if not encoded or not encoded.strip():
        return {}

    params: dict[str, str] = {}
    for key, value in parse_qsl(encoded, keep_blank_values=True):
        params.setdefault(key, value)
    return params
