"""Resolution policy for incoming paths.

Decides what a path resolves to:
- Special paths (root, route table dump, icon) answered before any lookup
- One matching route: redirect to its target
- Several matching routes: ambiguous, listed for a human to choose
- No matching route: redirect through the fallback short-link service
"""

import logging
from dataclasses import dataclass
from typing import List, Union

from grtn.core.config import RedirectConfig
from grtn.core.routing import RouteEntry, RouteMatch, normalize_path
from grtn.core.wiki import WikiRouteSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Redirect:
    """Redirect to a single destination.

    ``source`` is "landing", "route" or "fallback".
    """

    target: str
    source: str

    @property
    def outcome(self) -> str:
        return self.source


@dataclass(frozen=True)
class Ambiguous:
    """Two or more routes match the path."""

    path: str
    candidates: List[RouteMatch]
    outcome: str = "ambiguous"


@dataclass(frozen=True)
class RouteListing:
    """The full route table, served as data."""

    routes: List[RouteEntry]
    outcome: str = "listing"


@dataclass(frozen=True)
class NotFound:
    outcome: str = "not_found"


Resolution = Union[Redirect, Ambiguous, RouteListing, NotFound]


def fallback_url(raw_path: str, config: RedirectConfig) -> str:
    """Forward an unmatched path to the fallback short-link service.

    Args:
        raw_path: Request path as received (still percent-encoded)
        config: Redirect configuration

    Returns:
        Fallback destination
    """
    path = raw_path[1:] if raw_path.startswith("/") else raw_path
    return config.fallback_base_url + path


class Resolver:
    """Resolves request paths against the wiki-defined routes."""

    def __init__(self, source: WikiRouteSource, config: RedirectConfig):
        """Initialize the resolver.

        Args:
            source: Route source queried on every lookup
            config: Redirect configuration
        """
        self.source = source
        self.config = config

    def resolve_special(self, path: str) -> Union[Redirect, NotFound, None]:
        """Answer paths that never consult the route table."""
        if path == "/":
            return Redirect(target=self.config.landing_url, source="landing")
        if path == self.config.favicon_path:
            return NotFound()
        return None

    async def resolve(self, path: str, raw_path: str | None = None) -> Resolution:
        """Resolve a request path.

        Args:
            path: Decoded request path
            raw_path: Encoded request path, used for the fallback (defaults to path)

        Returns:
            Resolution outcome

        Raises:
            WikiQueryError, aiohttp.ClientError, asyncio.TimeoutError: If the routes cannot be loaded
        """
        special = self.resolve_special(path)
        if special is not None:
            return special

        table = await self.source.fetch_routes()

        if path == self.config.routes_path:
            return RouteListing(routes=table.routes)

        matches = table.match_all(path)

        if not matches:
            return Redirect(
                target=fallback_url(raw_path if raw_path is not None else path, self.config),
                source="fallback",
            )

        if len(matches) == 1:
            return Redirect(target=matches[0].target, source="route")

        logger.info(
            f"Ambiguous path {normalize_path(path)}: {len(matches)} routes",
            extra={"path": path, "definitions": [m.definition for m in matches]},
        )
        return Ambiguous(path=path, candidates=matches)
