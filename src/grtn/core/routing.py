"""Routing engine for the redirector.

This module implements the redirect resolution core:
- Route entries declared by wiki pages
- Route pattern matching (literal and :name segments)
- Path parameter extraction
- Destination template substitution
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

_PARAM_SEGMENT = re.compile(r"^:([a-z]+)$")
_PLACEHOLDER = re.compile(r":([a-z]+)")


@dataclass(frozen=True)
class RouteEntry:
    """A single redirect rule.

    Attributes:
        from_: Path pattern (serialized as "from")
        to: Destination template
        definition: Canonical URL of the page that declared the rule
    """

    from_: str
    to: str
    definition: str

    def to_dict(self) -> Dict[str, str]:
        """Serialize to the public route table shape."""
        return {"from": self.from_, "to": self.to, "definition": self.definition}


@dataclass(frozen=True)
class RouteMatch:
    """Represents a matched route with extracted parameters and its target."""

    route: RouteEntry
    path_params: Dict[str, str]
    target: str

    @property
    def definition(self) -> str:
        return self.route.definition


def normalize_path(path: str) -> str:
    """Normalize a URL path or route pattern.

    - Ensure leading slash
    - Remove trailing slash (except for root)
    """
    if not path.startswith("/"):
        path = "/" + path

    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/") or "/"

    return path


def resolve_destination(template: str, path_params: Dict[str, str]) -> str:
    """Fill :name placeholders in a destination template.

    Unbound placeholders are kept verbatim. Substituted values are not
    scanned again.

    Args:
        template: Destination template (e.g. https://example.com/:id)
        path_params: Bound parameter values

    Returns:
        Concrete destination URL
    """

    def substitute(match: re.Match) -> str:
        return path_params.get(match.group(1), match.group(0))

    return _PLACEHOLDER.sub(substitute, template)


class PathMatcher:
    """Matches URL paths against route patterns.

    Supports:
    - Literal segments: /about
    - Parameter segments: /event/:id
    """

    def __init__(self, pattern: str):
        """Initialize path matcher.

        Args:
            pattern: Path pattern (e.g., /event/:id)
        """
        self.pattern = normalize_path(pattern)
        self.regex_pattern, self.param_names = self._compile_pattern(self.pattern)

    def _compile_pattern(self, pattern: str) -> Tuple[re.Pattern, List[str]]:
        """Compile path pattern into regex.

        Args:
            pattern: Normalized path pattern with parameters in :name format

        Returns:
            Tuple of (compiled regex pattern, list of parameter names)
        """
        param_names = []
        regex_parts = []

        # Drop the leading empty part; inner empty parts stay literal
        for part in pattern.split("/")[1:]:
            param_match = _PARAM_SEGMENT.match(part)
            if param_match:
                param_names.append(param_match.group(1))
                # Exactly one non-empty segment
                regex_parts.append(r"([^/]+)")
            else:
                regex_parts.append(re.escape(part))

        regex_str = "^/" + "/".join(regex_parts) + "$"
        return re.compile(regex_str), param_names

    def match(self, path: str) -> Optional[Dict[str, str]]:
        """Match a path against this pattern.

        Args:
            path: Normalized URL path to match

        Returns:
            Dictionary of extracted parameters if matched, None otherwise
        """
        match = self.regex_pattern.match(path)
        if not match:
            return None

        params = {}
        for i, param_name in enumerate(self.param_names):
            params[param_name] = match.group(i + 1)

        return params


class RouteTable:
    """The routes available for one request.

    Built fresh from the content backend for every request and discarded
    with it. Every route is evaluated; all matches are returned in the order
    the routes were discovered.
    """

    def __init__(self, routes: List[RouteEntry]):
        """Initialize the route table.

        Args:
            routes: Route entries in discovery order
        """
        self.routes = list(routes)
        self._route_matchers: List[Tuple[RouteEntry, PathMatcher]] = [
            (route, PathMatcher(route.from_)) for route in self.routes
        ]

        logger.debug(
            f"Built route table with {len(self.routes)} routes",
            extra={"route_count": len(self.routes)},
        )

    def __len__(self) -> int:
        return len(self.routes)

    def match_all(self, path: str) -> List[RouteMatch]:
        """Find every route matching a request path.

        Args:
            path: Request path

        Returns:
            List of RouteMatch, possibly empty
        """
        normalized_path = normalize_path(path)

        matches = []
        for route, matcher in self._route_matchers:
            path_params = matcher.match(normalized_path)
            if path_params is None:
                continue
            matches.append(
                RouteMatch(
                    route=route,
                    path_params=path_params,
                    target=resolve_destination(route.to, path_params),
                )
            )

        logger.debug(
            f"{len(matches)} routes matched {normalized_path}",
            extra={"path": normalized_path, "matches": len(matches)},
        )
        return matches

    def to_list(self) -> List[Dict[str, str]]:
        """Serialize all routes, without matching."""
        return [route.to_dict() for route in self.routes]
