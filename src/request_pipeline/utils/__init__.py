"""Utility modules for the request pipeline."""

from .cookies import parse_cookie_header, serialize_set_cookie, serialize_set_cookies
from .headers import get_header_value, is_form_encoded, parse_params

__all__ = [
    "get_header_value",
    "is_form_encoded",
    "parse_params",
    "parse_cookie_header",
    "serialize_set_cookie",
    "serialize_set_cookies",
]
