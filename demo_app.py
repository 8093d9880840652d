"""Demo FastAPI application serving a request pipeline.

The pipeline remembers a visitor's name in a cookie: the first visit shows
a form, submitting it (or passing ``?name=``) greets the visitor and sets
the ``name`` cookie, and later visits greet from the cookie.

Run with: python demo_app.py
Then try:
    curl -i http://127.0.0.1:8000/greet/
    curl -i "http://127.0.0.1:8000/greet/?name=Alice"
    curl -i -H "Cookie: name=Alice" http://127.0.0.1:8000/greet/
    curl -i -H "Cookie: session=abc" http://127.0.0.1:8000/greet/account
"""

import html

import uvicorn
from fastapi import FastAPI

from request_pipeline import Context, Dispatcher, PipelineConfig, build
from request_pipeline.adapters.asgi import PipelineASGIApp
from request_pipeline.middleware import (
    AccessLogMiddleware,
    CookieMiddleware,
    DeprecationMiddleware,
    ParamsMiddleware,
    RequireCookiesMiddleware,
)
from request_pipeline.observability.logging import configure_logging

NAME_FORM = """<html><body>
<form method="post" action="">
  <label>Name <input type="text" name="name"></label>
  <input type="submit" value="Save">
</form>
</body></html>"""


def show_name_or_form(ctx: Context) -> Context:
    """Greet by name from a parameter or cookie, otherwise show the name form."""
    name = ctx.params.get("name") or (
        ctx.cookies_in["name"].value if "name" in ctx.cookies_in else None
    )
    if not name:
        ctx.response.write_html(NAME_FORM, status=200)
        return ctx

    ctx.response.write_text(f"Hello, {html.escape(name)}")
    ctx.response.set_cookie("name", name, path="/")
    return ctx


def account(ctx: Context) -> Context:
    ctx.response.write_text(f"Session {ctx.cookies_in['session'].value}")
    return ctx


configure_logging(level="INFO", json_output=False)

config = PipelineConfig(dispatch_mode="async", worker_count=8, warn_mode="runtime")

greeting = build(
    show_name_or_form,
    [AccessLogMiddleware(), CookieMiddleware(), ParamsMiddleware()],
    config,
)

accounts = build(
    account,
    [
        AccessLogMiddleware(),
        CookieMiddleware(),
        DeprecationMiddleware("account-page", "The account page moves to /v2/account"),
        RequireCookiesMiddleware(["session"]),
    ],
    config,
)

app = FastAPI(
    title="Request Pipeline Demo",
    description="Cookie greeting served through a middleware pipeline",
    version="0.1.0",
)
app.mount("/greet/account", PipelineASGIApp(Dispatcher(accounts)))
app.mount("/greet", PipelineASGIApp(Dispatcher(greeting)))


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8000)
