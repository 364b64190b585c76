"""
Unit tests for the middleware pipeline and access logging.
"""

import json
import logging

import pytest

from minihttpd.http.request import HTTPRequest, Header
from minihttpd.http.response import HTTPResponse, ok, not_found
from minihttpd.middleware import Middleware, MiddlewarePipeline, LoggingMiddleware


class Recorder(Middleware):
    """Appends its tag before and after the rest of the chain."""

    def __init__(self, tag: str, calls: list):
        self.tag = tag
        self.calls = calls

    def __call__(self, request, next):
        self.calls.append(f"{self.tag}:before")
        response = next(request)
        self.calls.append(f"{self.tag}:after")
        return response


def make_request(path: str = "/") -> HTTPRequest:
    return HTTPRequest(
        method="GET",
        path=path,
        headers=[Header("User-Agent", "pytest")],
        client_address=("127.0.0.1", 5555),
    )


class TestMiddlewarePipeline:
    """Tests for MiddlewarePipeline class."""

    def test_empty_pipeline_returns_handler(self):
        handler = lambda request: ok()
        assert MiddlewarePipeline().wrap(handler) is handler

    def test_order(self):
        """Test that the first added middleware is outermost."""
        calls = []
        pipeline = MiddlewarePipeline()
        pipeline.add(Recorder("outer", calls)).add(Recorder("inner", calls))

        def handler(request):
            calls.append("handler")
            return ok()

        pipeline.wrap(handler)(make_request())

        assert calls == [
            "outer:before", "inner:before", "handler", "inner:after", "outer:after",
        ]
        assert len(pipeline) == 2
        assert [m.tag for m in pipeline] == ["outer", "inner"]


class TestLoggingMiddleware:
    """Tests for LoggingMiddleware."""

    def test_logs_text_line(self, caplog):
        middleware = LoggingMiddleware()

        with caplog.at_level(logging.INFO, logger="minihttpd.access"):
            response = middleware(make_request("/echo/hi"), lambda request: ok("hi"))

        assert response.body == b"hi"
        assert len(caplog.records) == 1
        message = caplog.records[0].getMessage()
        assert message.startswith("127.0.0.1 - - [")
        assert '"GET /echo/hi" 200 2 ' in message

    def test_logs_json_line(self, caplog):
        middleware = LoggingMiddleware(log_format="json")

        with caplog.at_level(logging.INFO, logger="minihttpd.access"):
            response = middleware(make_request("/x"), lambda request: not_found())

        entry = json.loads(caplog.records[0].getMessage())
        assert entry["path"] == "/x"
        assert entry["status_code"] == 404
        assert entry["user_agent"] == "pytest"
        assert entry["request_id"] == response.headers["X-Request-ID"]

    def test_errors_logged_as_warning(self, caplog):
        middleware = LoggingMiddleware()

        with caplog.at_level(logging.INFO, logger="minihttpd.access"):
            middleware(make_request(), lambda request: not_found())

        assert caplog.records[0].levelno == logging.WARNING

    def test_request_id_header_optional(self):
        middleware = LoggingMiddleware(include_request_id=False)
        response = middleware(make_request(), lambda request: ok())

        assert "X-Request-ID" not in response.headers

    def test_handler_exception_is_logged_and_reraised(self, caplog):
        middleware = LoggingMiddleware()

        def broken(request) -> HTTPResponse:
            raise RuntimeError("boom")

        with caplog.at_level(logging.INFO, logger="minihttpd.access"):
            with pytest.raises(RuntimeError):
                middleware(make_request(), broken)

        assert caplog.records[0].levelno == logging.ERROR
        assert "RuntimeError: boom" in caplog.records[0].getMessage()
