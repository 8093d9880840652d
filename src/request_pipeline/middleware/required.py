"""Short-circuiting middleware rejecting requests that lack required cookies.

Install after ``CookieMiddleware`` so ``ctx.cookies_in`` is populated.
"""

from collections.abc import Sequence

from request_pipeline.core.context import Context
from request_pipeline.core.middleware import ShortCircuitMiddleware
from request_pipeline.exceptions import ConfigurationError


class RequireCookiesMiddleware(ShortCircuitMiddleware):
    """Answers with an error response when any required cookie is missing.

    The names of the missing cookies are recorded in
    ``ctx.attributes["missing_cookies"]``.

    Attributes:
        required: Cookie names that must be present
        status: Status code of the rejection response
        message: Body of the rejection response
    """

    name = "require-cookies"

    def __init__(
        self,
        required: Sequence[str],
        status: int = 401,
        message: str = "Missing required cookies",
    ) -> None:
        if isinstance(required, str):
            required = [required]
        if not required:
            raise ConfigurationError("RequireCookiesMiddleware needs at least one cookie name")
        if not 400 <= status <= 599:
            raise ConfigurationError(f"Rejection status must be 4xx or 5xx, got {status}")
        self.required = tuple(required)
        self.status = status
        self.message = message

    def intercept(self, ctx: Context) -> Context | None:
        missing = [name for name in self.required if name not in ctx.cookies_in]
        if not missing:
            return None

        ctx.attributes["missing_cookies"] = missing
        ctx.response.write_text(f"{self.message}: {', '.join(missing)}", status=self.status)
        return ctx
