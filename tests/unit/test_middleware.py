"""Unit tests for the middleware framework."""

import asyncio
import time
from unittest.mock import MagicMock

import pytest
from aiohttp import web
from aiohttp.test_utils import make_mocked_request

from grtn.core.config import RedirectorConfig
from grtn.core.middleware import (
    ErrorHandlingMiddleware,
    Middleware,
    MiddlewareChain,
    RequestContext,
    client_ip_from,
    create_request_context,
)
from grtn.middleware.tracking import VisitTrackingMiddleware


def make_context(path: str = "/test", raw_path: str | None = None) -> RequestContext:
    return RequestContext(
        method="GET",
        path=path,
        raw_path=raw_path or path,
        query_params={},
        client_ip="127.0.0.1",
        user_agent="test",
        correlation_id="test-123",
    )


def make_app(config: RedirectorConfig) -> web.Application:
    app = web.Application()
    app["config"] = config
    return app


class TestRequestContext:
    """Tests for RequestContext class."""

    def test_request_context_creation(self):
        context = make_context("/discord")

        assert context.method == "GET"
        assert context.path == "/discord"
        assert context.correlation_id == "test-123"
        assert context.resolution is None

    def test_elapsed_time_calculation(self):
        context = make_context()

        time.sleep(0.01)

        elapsed = context.elapsed_ms()
        assert elapsed >= 10
        assert elapsed < 1000

    def test_describe(self):
        assert make_context("/a").describe() == {
            "method": "GET",
            "path": "/a",
            "query": {},
            "client_ip": "127.0.0.1",
            "user_agent": "test",
        }


class DummyMiddleware(Middleware):
    """Dummy middleware for testing."""

    def __init__(self, config, name="dummy", order=None):
        super().__init__(config)
        self._name = name
        self.order = order if order is not None else []

    @property
    def name(self):
        return self._name

    async def process(self, request, context, next_handler):
        self.order.append(self._name)
        return await next_handler(request, context)


class ShortCircuitMiddleware(Middleware):
    """Middleware that short-circuits the chain."""

    async def process(self, request, context, next_handler):
        return web.json_response({"short_circuit": True}, status=200)


def recording_endpoint(order: list[str]):
    async def endpoint(request, context):
        order.append("endpoint")
        return web.Response(status=302, headers={"Location": "https://one"})

    return endpoint


class TestMiddlewareChain:
    """Tests for MiddlewareChain class."""

    async def test_middleware_chain_execution(self, config):
        order: list[str] = []
        chain = MiddlewareChain(
            [
                DummyMiddleware(config, "first", order),
                DummyMiddleware(config, "second", order),
            ],
            recording_endpoint(order),
        )

        response = await chain.execute(make_mocked_request("GET", "/test"), make_context())

        assert response.status == 302
        assert order == ["first", "second", "endpoint"]

    async def test_middleware_short_circuit(self, config):
        order: list[str] = []
        chain = MiddlewareChain(
            [
                DummyMiddleware(config, "first", order),
                ShortCircuitMiddleware(config),
                DummyMiddleware(config, "third", order),
            ],
            recording_endpoint(order),
        )

        response = await chain.execute(make_mocked_request("GET", "/test"), make_context())

        assert response.status == 200
        assert order == ["first"]

    async def test_empty_chain_calls_endpoint(self):
        order: list[str] = []
        chain = MiddlewareChain([], recording_endpoint(order))

        await chain.execute(make_mocked_request("GET", "/test"), make_context())

        assert order == ["endpoint"]


class TestCreateRequestContext:
    """Tests for create_request_context function."""

    def test_create_context_from_request(self, config):
        request = make_mocked_request(
            "GET",
            "/event/42?utm_source=qr",
            headers={"User-Agent": "pytest"},
            app=make_app(config),
        )

        context = create_request_context(request)

        assert context.path == "/event/42"
        assert context.raw_path == "/event/42"
        assert context.query_params == {"utm_source": "qr"}
        assert context.user_agent == "pytest"

    def test_raw_path_keeps_encoding(self, config):
        request = make_mocked_request("GET", "/caf%C3%A9", app=make_app(config))

        context = create_request_context(request)

        assert context.path == "/café"
        assert context.raw_path == "/caf%C3%A9"

    def test_correlation_id_generation(self, config):
        request = make_mocked_request("GET", "/a", app=make_app(config))

        assert create_request_context(request).correlation_id.startswith("req-")

    def test_correlation_id_from_header(self, config):
        request = make_mocked_request(
            "GET", "/a", headers={"X-Request-ID": "client-abc"}, app=make_app(config)
        )

        assert create_request_context(request).correlation_id == "client-abc"


class TestClientIp:
    """Tests for client IP extraction."""

    def test_edge_header_wins(self):
        request = make_mocked_request(
            "GET",
            "/a",
            headers={"CF-Connecting-IP": "203.0.113.7", "X-Forwarded-For": "198.51.100.1"},
        )

        assert client_ip_from(request, "CF-Connecting-IP") == "203.0.113.7"

    def test_forwarded_for_first_hop(self):
        request = make_mocked_request(
            "GET", "/a", headers={"X-Forwarded-For": "198.51.100.1, 10.0.0.1"}
        )

        assert client_ip_from(request, "CF-Connecting-IP") == "198.51.100.1"

    def test_unknown_without_peer(self):
        request = make_mocked_request("GET", "/a")

        assert client_ip_from(request, "CF-Connecting-IP") == "unknown"


class TestErrorHandlingMiddleware:
    """Tests for ErrorHandlingMiddleware."""

    async def test_error_handling(self, config):
        reporter = MagicMock()
        middleware = ErrorHandlingMiddleware(config, reporter)
        error = RuntimeError("HTTP error! status: 500")
        context = make_context("/a")

        async def failing(request, ctx):
            raise error

        response = await middleware.process(make_mocked_request("GET", "/a"), context, failing)

        assert response.status == 500
        assert response.content_type == "text/html"
        assert "Something went wrong" in response.text
        assert "HTTP error! status: 500" in response.text
        reporter.report.assert_called_once_with(
            error, request=context.describe(), correlation_id="test-123"
        )

    async def test_debug_reraises(self, config):
        config.debug = True
        reporter = MagicMock()
        middleware = ErrorHandlingMiddleware(config, reporter)

        async def failing(request, ctx):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await middleware.process(make_mocked_request("GET", "/a"), make_context(), failing)

        reporter.report.assert_called_once()

    async def test_http_exception_passthrough(self, config):
        reporter = MagicMock()
        middleware = ErrorHandlingMiddleware(config, reporter)

        async def not_found(request, ctx):
            raise web.HTTPNotFound()

        with pytest.raises(web.HTTPNotFound):
            await middleware.process(make_mocked_request("GET", "/a"), make_context(), not_found)

        reporter.report.assert_not_called()


class FakeTracker:
    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.visits: list[tuple[str, str]] = []
        self.finished = False

    async def track_visit(self, path: str, client_ip: str) -> None:
        self.visits.append((path, client_ip))
        await asyncio.sleep(self.delay)
        self.finished = True


class TestVisitTrackingMiddleware:
    """Tests for VisitTrackingMiddleware."""

    async def test_tracking_joined_before_response(self, config):
        tracker = FakeTracker(delay=0.05)
        middleware = VisitTrackingMiddleware(config, tracker)  # type: ignore[arg-type]

        async def respond(request, ctx):
            return web.Response(status=302)

        response = await middleware.process(
            make_mocked_request("GET", "/a"), make_context("/a"), respond
        )

        assert response.status == 302
        assert tracker.visits == [("/a", "127.0.0.1")]
        assert tracker.finished is True

    async def test_tracking_joined_when_downstream_fails(self, config):
        tracker = FakeTracker(delay=0.05)
        middleware = VisitTrackingMiddleware(config, tracker)  # type: ignore[arg-type]

        async def failing(request, ctx):
            raise RuntimeError("backend down")

        with pytest.raises(RuntimeError):
            await middleware.process(make_mocked_request("GET", "/a"), make_context("/a"), failing)

        assert tracker.finished is True

    async def test_favicon_not_tracked(self, config):
        tracker = FakeTracker()
        middleware = VisitTrackingMiddleware(config, tracker)  # type: ignore[arg-type]

        async def respond(request, ctx):
            return web.Response(status=404)

        await middleware.process(
            make_mocked_request("GET", "/favicon.ico"), make_context("/favicon.ico"), respond
        )

        assert tracker.visits == []

    async def test_tracks_encoded_path(self, config):
        tracker = FakeTracker()
        middleware = VisitTrackingMiddleware(config, tracker)  # type: ignore[arg-type]

        async def respond(request, ctx):
            return web.Response(status=302)

        await middleware.process(
            make_mocked_request("GET", "/caf%C3%A9"),
            make_context("/café", raw_path="/caf%C3%A9"),
            respond,
        )

        assert tracker.visits == [("/caf%C3%A9", "127.0.0.1")]
