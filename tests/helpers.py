"""Handlers and middleware shared by the test suite."""

from collections.abc import Callable

from request_pipeline.core.context import Context
from request_pipeline.core.middleware import Middleware, Next

NAME_FORM = "<form method='post'><input name='name'></form>"


def show_name_or_form(ctx: Context) -> Context:
    """Greet by name from a parameter or cookie, otherwise show the name form."""
    name = ctx.params.get("name") or (
        ctx.cookies_in["name"].value if "name" in ctx.cookies_in else None
    )
    if not name:
        ctx.response.write_html(NAME_FORM, status=200)
        return ctx

    ctx.response.write_text(f"Hello, {name}")
    ctx.response.set_cookie("name", name)
    return ctx


class Recorder(Middleware):
    """Middleware appending ``<name>.in`` / ``<name>.out`` to a shared log."""

    def __init__(self, name: str, log: list[str]) -> None:
        self.name = name
        self.log = log

    def apply(self, ctx: Context, next: Next) -> Context:
        self.log.append(f"{self.name}.in")
        ctx = next(ctx)
        self.log.append(f"{self.name}.out")
        return ctx


def recording_handler(log: list[str], name: str = "handler") -> Callable[[Context], Context]:
    def handler(ctx: Context) -> Context:
        log.append(name)
        ctx.response.write_text("ok")
        return ctx

    handler.__name__ = name
    return handler
