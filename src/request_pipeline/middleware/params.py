"""Parameter middleware.

Merges request parameters into ``ctx.attributes["params"]`` (also exposed
as ``ctx.params``). Sources, in order of precedence:

1. parameters already decoded by the transport (``request.params``)
2. the query string
3. an ``application/x-www-form-urlencoded`` body

The first source to define a name wins.
"""

from request_pipeline.core.context import Context
from request_pipeline.core.middleware import WrappingMiddleware
from request_pipeline.utils.headers import is_form_encoded, parse_params


class ParamsMiddleware(WrappingMiddleware):
    """Decodes query string and form body parameters.

    Attributes:
        encoding: Charset used to decode form bodies. Undecodable bytes are
            replaced.
    """

    name = "params"

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def before(self, ctx: Context) -> None:
        request = ctx.request
        params = dict(request.params)

        for key, value in parse_params(request.query_string).items():
            params.setdefault(key, value)

        if request.body and is_form_encoded(request.headers):
            form = request.body.decode(self.encoding, errors="replace")
            for key, value in parse_params(form).items():
                params.setdefault(key, value)

        ctx.attributes["params"] = params
