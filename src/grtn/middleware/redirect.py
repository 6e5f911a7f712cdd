"""Redirect endpoint: resolves the path and builds the response.

This is the endpoint at the end of the middleware chain:
- Special paths (root, route table, icon)
- Single match and fallback redirects
- Disambiguation page for ambiguous paths
"""

import json
from functools import partial

from aiohttp import web

from grtn.core.config import RedirectorConfig
from grtn.core.middleware import RequestContext
from grtn.core.pages import render_ambiguous_page, render_not_found_page, render_redirect_page
from grtn.core.resolution import Ambiguous, Redirect, Resolution, Resolver, RouteListing


class RedirectEndpoint:
    """Answers every path with a resolution.

    Responsibilities:
    - Run the resolver for the request path
    - Record the outcome on the request context
    - Map the outcome to a response
    """

    def __init__(self, config: RedirectorConfig, resolver: Resolver):
        """Initialize the redirect endpoint.

        Args:
            config: Redirector configuration
            resolver: Path resolver
        """
        self.config = config
        self.resolver = resolver

    async def __call__(self, request: web.Request, context: RequestContext) -> web.StreamResponse:
        resolution = await self.resolver.resolve(context.path, context.raw_path)
        context.resolution = resolution

        self._record(request, context, resolution)
        return self.build_response(resolution)

    def _record(
        self, request: web.Request, context: RequestContext, resolution: Resolution
    ) -> None:
        metrics = request.app.get("metrics")
        if metrics:
            metrics.record_resolution(resolution.outcome)

        structured_logger = request.app.get("logger")
        if structured_logger:
            if isinstance(resolution, Ambiguous):
                candidates = len(resolution.candidates)
            elif isinstance(resolution, Redirect) and resolution.source == "route":
                candidates = 1
            else:
                candidates = 0
            structured_logger.log_resolution(
                path=context.path,
                outcome=resolution.outcome,
                candidates=candidates,
                target=resolution.target if isinstance(resolution, Redirect) else None,
            )

    def build_response(self, resolution: Resolution) -> web.Response:
        """Map a resolution outcome to an HTTP response."""
        if isinstance(resolution, Redirect):
            return web.Response(
                status=302,
                headers={"Location": resolution.target},
                text=render_redirect_page(resolution.target),
                content_type="text/html",
            )

        if isinstance(resolution, Ambiguous):
            return web.Response(
                status=200,
                text=render_ambiguous_page(resolution.path, resolution.candidates),
                content_type="text/html",
            )

        if isinstance(resolution, RouteListing):
            return web.json_response(
                [route.to_dict() for route in resolution.routes],
                dumps=partial(json.dumps, indent=2),
                headers={"Access-Control-Allow-Origin": "*"},
            )

        return web.Response(status=404, text=render_not_found_page(), content_type="text/html")
