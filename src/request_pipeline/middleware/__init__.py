"""Built-in middleware.

- CookieMiddleware: Cookie header parsing and Set-Cookie serialization
- ParamsMiddleware: query string and form body parameters
- RequireCookiesMiddleware: rejects requests missing required cookies
- DeprecationMiddleware: runtime or build-time deprecation warnings
- AccessLogMiddleware: structured request logging
"""

from request_pipeline.middleware.access_log import AccessLogMiddleware
from request_pipeline.middleware.cookies import CookieMiddleware
from request_pipeline.middleware.deprecation import DeprecationMiddleware, WarnedFeatures
from request_pipeline.middleware.params import ParamsMiddleware
from request_pipeline.middleware.required import RequireCookiesMiddleware

__all__ = [
    "AccessLogMiddleware",
    "CookieMiddleware",
    "DeprecationMiddleware",
    "ParamsMiddleware",
    "RequireCookiesMiddleware",
    "WarnedFeatures",
]
