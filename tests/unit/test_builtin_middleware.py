"""Unit tests for the cookie, params, required-cookie and access log middleware."""

import pytest
from structlog.testing import capture_logs

from request_pipeline.core.context import Context, Request
from request_pipeline.core.pipeline import build
from request_pipeline.exceptions import ConfigurationError, HandlerError
from request_pipeline.middleware import (
    AccessLogMiddleware,
    CookieMiddleware,
    ParamsMiddleware,
    RequireCookiesMiddleware,
)


def _run(pipeline, **request_kwargs) -> Context:
    request_kwargs.setdefault("method", "GET")
    request_kwargs.setdefault("path", "/")
    return pipeline.run(Context(Request(**request_kwargs)))


def _echo_cookies(ctx: Context) -> Context:
    ctx.response.write_text(",".join(f"{k}={c.value}" for k, c in ctx.cookies_in.items()))
    return ctx


class TestCookieMiddleware:
    def test_parses_request_cookies(self):
        ctx = _run(build(_echo_cookies, [CookieMiddleware()]), headers={"Cookie": "a=1; b=2"})
        assert ctx.response.body == b"a=1,b=2"

    def test_no_cookie_header(self):
        ctx = _run(build(_echo_cookies, [CookieMiddleware()]))
        assert ctx.cookies_in == {}
        assert ctx.response.set_cookie_headers == []

    def test_serializes_response_cookies(self):
        def handler(ctx):
            ctx.response.set_cookie("name", "Alice", path="/")
            ctx.response.set_cookie("session", "xyz", http_only=True, secure=True)
            return ctx

        ctx = _run(build(handler, [CookieMiddleware()]))
        assert ctx.response.set_cookie_headers == [
            "name=Alice; Path=/",
            "session=xyz; Secure; HttpOnly",
        ]

    def test_installed_twice_is_same_as_once(self):
        def handler(ctx):
            ctx.response.set_cookie("name", ctx.cookies_in["name"].value)
            return ctx

        once = _run(build(handler, [CookieMiddleware()]), headers={"Cookie": "name=Alice"})
        twice = _run(
            build(handler, [CookieMiddleware(), CookieMiddleware()]),
            headers={"Cookie": "name=Alice"},
        )
        assert twice.cookies_in == once.cookies_in
        assert twice.response.set_cookie_headers == once.response.set_cookie_headers

    def test_stage_name(self):
        assert CookieMiddleware().stage_name == "cookies"


class TestParamsMiddleware:
    @staticmethod
    def _echo(ctx):
        ctx.response.write_text("&".join(f"{k}={v}" for k, v in sorted(ctx.params.items())))
        return ctx

    def test_query_string(self):
        ctx = _run(build(self._echo, [ParamsMiddleware()]), query_string="name=Alice&x=1")
        assert ctx.params == {"name": "Alice", "x": "1"}

    def test_form_body(self):
        ctx = _run(
            build(self._echo, [ParamsMiddleware()]),
            method="POST",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            body=b"name=Bob",
        )
        assert ctx.params == {"name": "Bob"}

    def test_body_ignored_without_form_content_type(self):
        ctx = _run(
            build(self._echo, [ParamsMiddleware()]),
            method="POST",
            headers={"Content-Type": "application/json"},
            body=b'{"name": "Bob"}',
        )
        assert ctx.params == {}

    def test_precedence(self):
        ctx = _run(
            build(self._echo, [ParamsMiddleware()]),
            method="POST",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            params={"a": "transport"},
            query_string="a=query&b=query",
            body=b"a=form&b=form&c=form",
        )
        assert ctx.params == {"a": "transport", "b": "query", "c": "form"}

    def test_undecodable_body_replaced(self):
        ctx = _run(
            build(self._echo, [ParamsMiddleware()]),
            method="POST",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            body=b"name=\xff",
        )
        assert ctx.params["name"] == "\ufffd"


class TestRequireCookiesMiddleware:
    def test_passes_when_present(self):
        ctx = _run(
            build(_echo_cookies, [CookieMiddleware(), RequireCookiesMiddleware(["session"])]),
            headers={"Cookie": "session=abc"},
        )
        assert ctx.response.status == 200
        assert ctx.response.body == b"session=abc"

    def test_rejects_when_missing(self):
        calls = []

        def handler(ctx):
            calls.append(ctx)
            return ctx

        ctx = _run(
            build(handler, [CookieMiddleware(), RequireCookiesMiddleware(["session", "csrf"])]),
            headers={"Cookie": "session=abc"},
        )
        assert calls == []
        assert ctx.response.status == 401
        assert ctx.response.body == b"Missing required cookies: csrf"
        assert ctx.attributes["missing_cookies"] == ["csrf"]

    def test_custom_status_and_message(self):
        ctx = _run(build(_echo_cookies, [RequireCookiesMiddleware("token", 403, "Forbidden")]))
        assert ctx.response.status == 403
        assert ctx.response.body == b"Forbidden: token"

    def test_single_name_string(self):
        assert RequireCookiesMiddleware("session").required == ("session",)

    def test_needs_a_name(self):
        with pytest.raises(ConfigurationError):
            RequireCookiesMiddleware([])

    @pytest.mark.parametrize("status", [200, 302, 600])
    def test_status_must_be_error(self, status):
        with pytest.raises(ConfigurationError):
            RequireCookiesMiddleware(["session"], status=status)


class TestAccessLogMiddleware:
    def test_logs_start_and_finish(self):
        def handler(ctx):
            ctx.response.write_text("created", status=201)
            return ctx

        pipeline = build(handler, [AccessLogMiddleware()])
        with capture_logs() as logs:
            ctx = _run(pipeline, method="POST", path="/items")

        events = [entry["event"] for entry in logs]
        assert events == ["request.started", "request.finished"]
        finished = logs[1]
        assert finished["status"] == 201
        assert finished["path"] == "/items"
        assert finished["dispatch_id"] == ctx.dispatch_id
        assert finished["elapsed_ms"] >= 0

    def test_no_finish_line_on_failure(self):
        def handler(ctx):
            raise RuntimeError("boom")

        pipeline = build(handler, [AccessLogMiddleware()])
        with capture_logs() as logs:
            with pytest.raises(HandlerError):
                _run(pipeline)

        assert [entry["event"] for entry in logs] == ["request.started"]
