"""Shared fixtures for integration tests."""

import asyncio
import json
from collections.abc import AsyncGenerator
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from grtn.core.config import RedirectorConfig
from grtn.core.service import Redirector


class FakeWiki:
    """Stand-in for the wiki content-search endpoint.

    Answers each query with the pages registered for the front-matter field
    it matches on. Status, delay and a raw body can be set per field.
    """

    def __init__(self) -> None:
        self.pages: dict[str, list[dict[str, Any]]] = {"grtn": [], "grtnRedirects": []}
        self.status: dict[str, int] = {}
        self.delay: dict[str, float] = {}
        self.raw_body: dict[str, str] = {}
        self.requests: list[dict[str, Any]] = []
        self.completed: list[str] = []

    def add_page(self, page_ref: str, front_matter: Any) -> None:
        page = {"pageRef": page_ref, "frontMatter": front_matter}
        if isinstance(front_matter, dict):
            for field in self.pages:
                if field in front_matter:
                    self.pages[field].append(page)

    async def search(self, request: web.Request) -> web.Response:
        match = json.loads(request.query["input"])["match"]
        field = next(iter(match))
        self.requests.append({"match": match, "headers": dict(request.headers)})

        await asyncio.sleep(self.delay.get(field, 0))
        self.completed.append(field)

        status = self.status.get(field, 200)
        if status != 200:
            return web.json_response({"error": "backend failure"}, status=status)

        if field in self.raw_body:
            return web.Response(text=self.raw_body[field])

        return web.json_response({"result": {"data": {"results": self.pages[field]}}})

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/api/contentsgarten/search", self.search)
        return app


class FakeAnalytics:
    """Stand-in for the analytics HTTP API, recording posted events."""

    def __init__(self) -> None:
        self.payloads: list[dict[str, Any]] = []
        self.delay = 0.0

    async def ingest(self, request: web.Request) -> web.Response:
        await asyncio.sleep(self.delay)
        self.payloads.append(await request.json())
        return web.json_response({"code": 200})

    @property
    def events(self) -> list[dict[str, Any]]:
        return [event for payload in self.payloads for event in payload["events"]]

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/2/httpapi", self.ingest)
        return app


@pytest.fixture
def fake_wiki() -> FakeWiki:
    """Wiki with a small set of route-defining pages."""
    wiki = FakeWiki()
    wiki.add_page("Events/bkk1", {"grtn": "/bkk1"})
    wiki.add_page(
        "Shortlinks",
        {
            "grtnRedirects": {
                "/event/:id": "https://x/:id",
                "/discord": "https://discord.gg/creatorsgarten",
                "/broken": 42,
            }
        },
    )
    wiki.add_page("A1", {"grtnRedirects": {"/a": "https://one"}})
    return wiki


@pytest.fixture
def fake_analytics() -> FakeAnalytics:
    return FakeAnalytics()


@pytest.fixture
async def wiki_server(fake_wiki: FakeWiki) -> AsyncGenerator[TestServer, None]:
    """Start the fake wiki."""
    server = TestServer(fake_wiki.create_app())
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
async def analytics_server(fake_analytics: FakeAnalytics) -> AsyncGenerator[TestServer, None]:
    """Start the fake analytics endpoint."""
    server = TestServer(fake_analytics.create_app())
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
def redirector_config(wiki_server: TestServer, analytics_server: TestServer) -> RedirectorConfig:
    """Create redirector configuration pointing at the fake backends."""
    config = RedirectorConfig()
    config.wiki.search_url = str(wiki_server.make_url("/api/contentsgarten/search"))
    config.telemetry.amplitude_api_key = "test-key"
    config.telemetry.endpoint = str(analytics_server.make_url("/2/httpapi"))
    config.metrics.enabled = False
    return config


@pytest.fixture
def redirector(redirector_config: RedirectorConfig) -> Redirector:
    return Redirector(redirector_config)


@pytest.fixture
async def client(redirector: Redirector) -> AsyncGenerator[TestClient, None]:
    """Create a test client for the redirector."""
    test_client = TestClient(TestServer(redirector.create_app()))
    await test_client.start_server()
    yield test_client
    await test_client.close()
