"""Visit tracking middleware."""

import asyncio

from aiohttp import web

from grtn.core.config import RedirectorConfig
from grtn.core.middleware import Middleware, MiddlewareHandler, RequestContext
from grtn.core.telemetry import VisitTracker


class VisitTrackingMiddleware(Middleware):
    """Tracks the visit while the rest of the chain resolves the request.

    The tracking task is always joined before the response leaves this
    middleware, including when downstream raises. Its outcome never changes
    the response.
    """

    def __init__(self, config: RedirectorConfig, tracker: VisitTracker):
        """Initialize the visit tracking middleware.

        Args:
            config: Redirector configuration
            tracker: Visit tracker
        """
        super().__init__(config)
        self.tracker = tracker

    async def process(
        self, request: web.Request, context: RequestContext, next_handler: MiddlewareHandler
    ) -> web.StreamResponse:
        if context.path == self.config.redirects.favicon_path:
            return await next_handler(request, context)

        task = asyncio.create_task(
            self.tracker.track_visit(context.raw_path, context.client_ip)
        )
        try:
            return await next_handler(request, context)
        finally:
            await task
