"""Unit tests for Request, Response and Context."""

import pytest

from request_pipeline.core.context import Context, InboundCookies, Request, Response
from request_pipeline.models import Cookie


class TestRequest:
    def test_from_event(self, make_event):
        event = make_event(
            "POST",
            "/greet",
            headers={"Cookie": "name=Alice"},
            query_string="a=1",
            params={"p": "v"},
            body=b"name=Bob",
        )
        request = Request.from_event(event)
        assert request.method == "POST"
        assert request.path == "/greet"
        assert request.query_string == "a=1"
        assert request.params == {"p": "v"}
        assert request.body == b"name=Bob"

    def test_header_lookup_is_case_insensitive(self):
        request = Request("GET", "/", headers={"Cookie": "a=1"})
        assert request.header("cookie") == "a=1"
        assert request.header("missing", "x") == "x"

    def test_headers_are_read_only(self):
        request = Request("GET", "/", headers={"Cookie": "a=1"})
        with pytest.raises(TypeError):
            request.headers["Cookie"] = "b=2"  # type: ignore[index]

    def test_params_are_read_only(self):
        request = Request("GET", "/", params={"a": "1"})
        with pytest.raises(TypeError):
            request.params["a"] = "2"  # type: ignore[index]

    def test_attributes_cannot_be_reassigned(self):
        request = Request("GET", "/")
        with pytest.raises(AttributeError):
            request.path = "/other"  # type: ignore[misc]

    def test_source_mapping_changes_do_not_leak(self):
        headers = {"Cookie": "a=1"}
        request = Request("GET", "/", headers=headers)
        headers["Cookie"] = "b=2"
        assert request.header("cookie") == "a=1"


class TestResponse:
    def test_defaults(self):
        response = Response()
        assert response.status == 200
        assert response.headers == {}
        assert response.body == b""
        assert response.cookies == {}
        assert response.set_cookie_headers == []

    def test_write_text(self):
        response = Response()
        response.write_text("Hello, Ünïcode", status=201)
        assert response.body == "Hello, Ünïcode".encode()
        assert response.status == 201
        assert response.headers["content-type"] == "text/plain; charset=utf-8"

    def test_write_text_keeps_status(self):
        response = Response(status=418)
        response.write_text("teapot")
        assert response.status == 418

    def test_write_html(self):
        response = Response()
        response.write_html("<p>hi</p>")
        assert response.headers["content-type"] == "text/html; charset=utf-8"

    def test_set_cookie_overwrites(self):
        response = Response()
        response.set_cookie("name", "Alice")
        cookie = response.set_cookie("name", "Bob", path="/", http_only=True)
        assert response.cookies == {"name": cookie}
        assert cookie == Cookie(value="Bob", path="/", http_only=True)

    def test_set_cookie_rejects_unknown_attribute(self):
        with pytest.raises(ValueError):
            Response().set_cookie("name", "Alice", colour="blue")

    def test_header_items_include_set_cookie_lines(self):
        response = Response(headers={"content-type": "text/plain"})
        response.set_cookie_headers = ["a=1", "b=2; HttpOnly"]
        assert response.header_items() == [
            ("content-type", "text/plain"),
            ("set-cookie", "a=1"),
            ("set-cookie", "b=2; HttpOnly"),
        ]


class TestContext:
    def test_fresh_context(self):
        ctx = Context(Request("GET", "/"))
        assert ctx.cookies_in == {}
        assert ctx.attributes == {}
        assert ctx.response.status == 200
        assert len(ctx.dispatch_id) == 32

    def test_explicit_dispatch_id(self):
        assert Context(Request("GET", "/"), dispatch_id="abc").dispatch_id == "abc"

    def test_dispatch_ids_are_unique(self):
        ids = {Context(Request("GET", "/")).dispatch_id for _ in range(100)}
        assert len(ids) == 100

    def test_request_cannot_be_replaced(self):
        ctx = Context(Request("GET", "/"))
        with pytest.raises(AttributeError):
            ctx.request = Request("POST", "/")  # type: ignore[misc]

    def test_params_fall_back_to_request(self):
        ctx = Context(Request("GET", "/", params={"name": "Alice"}))
        assert ctx.params == {"name": "Alice"}

    def test_params_prefer_merged_attribute(self):
        ctx = Context(Request("GET", "/", params={"name": "Alice"}))
        ctx.attributes["params"] = {"name": "Bob"}
        assert ctx.params == {"name": "Bob"}


class TestInboundCookies:
    def test_context_starts_with_empty_guarded_mapping(self):
        ctx = Context(Request("GET", "/"))
        assert isinstance(ctx.cookies_in, InboundCookies)
        assert ctx.cookies_in == {}

    def test_add_and_overwrite(self):
        ctx = Context(Request("GET", "/"))
        ctx.cookies_in["name"] = Cookie(value="Alice")
        ctx.cookies_in.update({"name": Cookie(value="Bob"), "theme": Cookie(value="dark")})
        assert ctx.cookies_in["name"].value == "Bob"
        assert set(ctx.cookies_in) == {"name", "theme"}

    @pytest.mark.parametrize(
        "remove",
        [
            lambda c: c.__delitem__("name"),
            lambda c: c.pop("name"),
            lambda c: c.pop("missing", None),
            lambda c: c.popitem(),
            lambda c: c.clear(),
        ],
        ids=["del", "pop", "pop-default", "popitem", "clear"],
    )
    def test_entries_cannot_be_removed(self, remove):
        ctx = Context(Request("GET", "/"))
        ctx.cookies_in["name"] = Cookie(value="Alice")
        with pytest.raises(TypeError):
            remove(ctx.cookies_in)
        assert ctx.cookies_in["name"].value == "Alice"

    def test_mapping_cannot_be_replaced(self):
        ctx = Context(Request("GET", "/"))
        with pytest.raises(AttributeError):
            ctx.cookies_in = InboundCookies()  # type: ignore[misc]
