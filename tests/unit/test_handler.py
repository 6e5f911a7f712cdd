"""Unit tests for the request handler."""

from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from grtn.core.handler import create_handler_middleware
from grtn.core.middleware import MiddlewareChain


def make_app(config, endpoint) -> web.Application:
    app = web.Application()
    app["config"] = config
    app.middlewares.append(create_handler_middleware(MiddlewareChain([], endpoint), config))
    return app


async def test_every_path_reaches_chain(config):
    """aiohttp routing is bypassed: unregistered paths are answered by the chain."""
    seen: list[str] = []

    async def endpoint(request, context):
        seen.append(context.path)
        return web.Response(status=302, headers={"Location": "https://one"})

    async with TestClient(TestServer(make_app(config, endpoint))) as client:
        async with client.get("/any/path", allow_redirects=False) as resp:
            assert resp.status == 302
            assert resp.headers["Location"] == "https://one"
            assert resp.headers["X-Request-ID"].startswith("req-")

    assert seen == ["/any/path"]


async def test_correlation_header_on_http_exception(config):
    async def endpoint(request, context):
        raise web.HTTPNotFound()

    async with TestClient(TestServer(make_app(config, endpoint))) as client:
        async with client.get(
            "/missing", headers={"X-Request-ID": "client-abc"}, allow_redirects=False
        ) as resp:
            assert resp.status == 404
            assert resp.headers["X-Request-ID"] == "client-abc"
