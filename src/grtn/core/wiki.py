"""Content backend client and route source.

This module loads redirect routes from the wiki:
- Querying the content-search endpoint
- Validating the response envelope
- Normalizing page front matter into route entries
- Canonical page URL derivation
"""

import asyncio
import json
import logging
import time
from typing import Any, Dict, List, Optional

import aiohttp
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from grtn.core.config import WikiConfig
from grtn.core.logging import RedirectorLogger
from grtn.core.metrics import RedirectorMetrics
from grtn.core.routing import RouteEntry, RouteTable

logger = logging.getLogger(__name__)

SHORTCUT_FIELD = "grtn"
REDIRECTS_FIELD = "grtnRedirects"


class WikiQueryError(Exception):
    """Raised when the content backend does not return a usable answer."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class WikiPage(BaseModel):
    """A page entry of a search response.

    Front matter is untyped on the wiki side, so it is kept as-is and
    inspected field by field.
    """

    model_config = ConfigDict(populate_by_name=True)

    page_ref: str = Field(alias="pageRef")
    front_matter: Any = Field(default=None, alias="frontMatter")


class SearchData(BaseModel):
    results: List[WikiPage]

    @field_validator("results", mode="before")
    @classmethod
    def drop_invalid_pages(cls, v: Any) -> Any:
        """Skip page entries that fail validation instead of the whole envelope."""
        if not isinstance(v, list):
            return v

        pages: List[WikiPage] = []
        for entry in v:
            try:
                pages.append(WikiPage.model_validate(entry))
            except ValidationError as e:
                logger.warning(
                    f"Skipping invalid search result: {e.error_count()} errors",
                    extra={"entry": repr(entry)[:200]},
                )
        return pages


class SearchResult(BaseModel):
    data: SearchData


class SearchResponse(BaseModel):
    """Envelope returned by the content-search endpoint."""

    result: SearchResult

    @property
    def pages(self) -> List[WikiPage]:
        return self.result.data.results


def wiki_url(page_ref: str, config: WikiConfig) -> str:
    """Build the canonical URL of a wiki page.

    Pages under the event namespace map to the event detail page.

    Args:
        page_ref: Page reference (e.g. "Events/bkk1", "About")
        config: Wiki configuration

    Returns:
        Canonical page URL
    """
    if page_ref.startswith(config.event_prefix):
        return f"{config.site_url}/event/{page_ref[len(config.event_prefix):]}"
    return f"{config.site_url}/wiki/{page_ref}"


def routes_from_pages(pages: List[WikiPage], config: WikiConfig) -> List[RouteEntry]:
    """Normalize wiki pages into route entries.

    A page contributes one entry for its shortcut and one per redirect
    pair. Values that are not strings are skipped. A page returned by both
    queries contributes its routes once per query.

    Args:
        pages: Pages from all queries, in discovery order
        config: Wiki configuration

    Returns:
        Route entries in discovery order
    """
    routes: List[RouteEntry] = []

    for page in pages:
        front_matter = page.front_matter
        if not isinstance(front_matter, dict):
            continue

        definition = wiki_url(page.page_ref, config)

        shortcut = front_matter.get(SHORTCUT_FIELD)
        if isinstance(shortcut, str):
            routes.append(RouteEntry(from_=shortcut, to=definition, definition=definition))
        elif shortcut is not None:
            logger.debug(
                f"Skipping non-string shortcut on {page.page_ref}",
                extra={"page_ref": page.page_ref},
            )

        redirects = front_matter.get(REDIRECTS_FIELD)
        if isinstance(redirects, dict):
            for source, destination in redirects.items():
                if isinstance(source, str) and isinstance(destination, str):
                    routes.append(RouteEntry(from_=source, to=destination, definition=definition))
                else:
                    logger.debug(
                        f"Skipping malformed redirect {source!r} on {page.page_ref}",
                        extra={"page_ref": page.page_ref},
                    )

    return routes


class WikiClient:
    """HTTP client for the wiki content-search endpoint."""

    def __init__(
        self,
        config: WikiConfig,
        metrics: Optional[RedirectorMetrics] = None,
        structured_logger: Optional[RedirectorLogger] = None,
    ):
        """Initialize the wiki client.

        Args:
            config: Wiki configuration
            metrics: Optional metrics collector
            structured_logger: Optional structured logger
        """
        self.config = config
        self.metrics = metrics
        self.structured_logger = structured_logger
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp client session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.request_timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
            logger.info(
                "Wiki client session created",
                extra={"request_timeout": self.config.request_timeout},
            )
        return self._session

    async def close(self) -> None:
        """Close the client session."""
        if self._session and not self._session.closed:
            await self._session.close()
            logger.info("Wiki client session closed")

    async def search(self, match: Dict[str, Any]) -> SearchResponse:
        """Run one content search.

        Args:
            match: Front-matter fields to match (e.g. {"grtn": True})

        Returns:
            Validated search response

        Raises:
            WikiQueryError: On non-success status, a non-JSON body or unexpected envelope
            aiohttp.ClientError: On connection errors
            asyncio.TimeoutError: On timeout
        """
        session = await self._get_session()
        query = ",".join(match)
        params = {"input": json.dumps({"match": match})}
        headers = {"Cache-Control": f"max-age={self.config.max_stale}"}

        start = time.monotonic()
        status = 0
        try:
            async with session.get(
                self.config.search_url, params=params, headers=headers
            ) as response:
                status = response.status
                if not 200 <= response.status < 300:
                    raise WikiQueryError(
                        f"HTTP error! status: {response.status}", status=response.status
                    )
                try:
                    payload = await response.json(content_type=None)
                except ValueError as e:
                    raise WikiQueryError(
                        f"Invalid JSON in search response: {e}", status=response.status
                    ) from e
        except (WikiQueryError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._record(query, status, start, error=str(e) or type(e).__name__)
            raise

        self._record(query, status, start)

        try:
            return SearchResponse.model_validate(payload)
        except ValidationError as e:
            raise WikiQueryError(f"Unexpected search response shape: {e}", status=status) from e

    def _record(
        self, query: str, status: int, start: float, error: Optional[str] = None
    ) -> None:
        elapsed = time.monotonic() - start
        if self.metrics:
            self.metrics.record_backend_request(query, status, elapsed)
        if self.structured_logger:
            self.structured_logger.log_backend_event(
                url=self.config.search_url,
                query=query,
                status_code=status or None,
                latency_ms=elapsed * 1000,
                error=error,
            )


class WikiRouteSource:
    """Builds the route table from the wiki on every call."""

    def __init__(
        self,
        client: WikiClient,
        config: WikiConfig,
        metrics: Optional[RedirectorMetrics] = None,
    ):
        self.client = client
        self.config = config
        self.metrics = metrics

    async def fetch_routes(self) -> RouteTable:
        """Query shortcut and redirect pages concurrently.

        Both queries run to completion before a failure is raised.

        Returns:
            A fresh RouteTable

        Raises:
            WikiQueryError, aiohttp.ClientError, asyncio.TimeoutError: If either query fails
        """
        results = await asyncio.gather(
            self.client.search({SHORTCUT_FIELD: True}),
            self.client.search({REDIRECTS_FIELD: True}),
            return_exceptions=True,
        )

        for result in results:
            if isinstance(result, BaseException):
                raise result

        shortcuts, redirects = results
        pages = [*shortcuts.pages, *redirects.pages]
        table = RouteTable(routes_from_pages(pages, self.config))
        if self.metrics:
            self.metrics.set_routes_loaded(len(table))
        return table
