"""Cookie middleware.

On the way in, parses the ``Cookie`` request header into
``ctx.cookies_in``. On the way out, serializes ``ctx.response.cookies`` into
``ctx.response.set_cookie_headers``, one ``Set-Cookie`` line per cookie.

Both steps overwrite rather than append, so installing the middleware
twice leaves the context exactly as installing it once.

Example:
    Reading and re-emitting a cookie::

        def remember_name(ctx: Context) -> Context:
            name = ctx.cookies_in["name"].value
            ctx.response.set_cookie("name", name, path="/")
            return ctx

        pipeline = build(remember_name, [CookieMiddleware()])
"""

from request_pipeline.core.context import Context
from request_pipeline.core.middleware import WrappingMiddleware
from request_pipeline.utils.cookies import parse_cookie_header, serialize_set_cookies


class CookieMiddleware(WrappingMiddleware):
    """Parses request cookies and serializes response cookies."""

    name = "cookies"

    def before(self, ctx: Context) -> None:
        ctx.cookies_in.update(parse_cookie_header(ctx.request.header("cookie")))

    def after(self, ctx: Context) -> None:
        ctx.response.set_cookie_headers = serialize_set_cookies(ctx.response.cookies)
