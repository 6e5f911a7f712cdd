"""Request handler for the redirector.

This module connects the aiohttp application to the middleware chain.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Optional

from aiohttp import web

from grtn.core.config import RedirectorConfig
from grtn.core.logging import RedirectorLogger
from grtn.core.middleware import MiddlewareChain, create_request_context

logger = logging.getLogger(__name__)


class RequestHandler:
    """Main request handler for the redirector.

    Coordinates:
    - Request context creation
    - Correlation ID propagation to logs and response headers
    - Middleware chain execution
    """

    def __init__(
        self,
        middleware_chain: MiddlewareChain,
        config: RedirectorConfig,
        structured_logger: Optional[RedirectorLogger] = None,
    ):
        """Initialize the request handler.

        Args:
            middleware_chain: Middleware chain instance
            config: Redirector configuration
            structured_logger: Logger whose correlation ID is set per request
        """
        self.middleware_chain = middleware_chain
        self.config = config
        self.structured_logger = structured_logger

    async def handle_request(self, request: web.Request) -> web.StreamResponse:
        """Handle an incoming HTTP request.

        Args:
            request: aiohttp Request object

        Returns:
            Response object
        """
        context = create_request_context(request)
        header_name = self.config.logging.correlation_id_header

        if self.structured_logger:
            self.structured_logger.set_correlation_id(context.correlation_id)

        logger.debug(
            f"Handling request: {context.method} {context.path}",
            extra={"correlation_id": context.correlation_id},
        )

        try:
            response = await self.middleware_chain.execute(request, context)
        except web.HTTPException as e:
            e.headers[header_name] = context.correlation_id
            raise

        if header_name not in response.headers:
            response.headers[header_name] = context.correlation_id

        return response


def create_handler_middleware(
    middleware_chain: MiddlewareChain,
    config: RedirectorConfig,
    structured_logger: Optional[RedirectorLogger] = None,
) -> Callable[
    [web.Request, Callable[[web.Request], Awaitable[web.StreamResponse]]],
    Awaitable[web.StreamResponse],
]:
    """Create an aiohttp middleware that uses our request handler.

    Every path is answered by the chain, so aiohttp's own routing is bypassed.

    Args:
        middleware_chain: Middleware chain instance
        config: Redirector configuration
        structured_logger: Optional structured logger

    Returns:
        aiohttp middleware function
    """
    request_handler = RequestHandler(middleware_chain, config, structured_logger)

    @web.middleware
    async def middleware(
        request: web.Request,
        handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
    ) -> web.StreamResponse:
        return await request_handler.handle_request(request)

    return middleware
