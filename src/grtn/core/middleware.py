"""Middleware framework for the redirector.

This module implements the middleware framework including:
- Middleware interface and execution chain
- Request context propagation
- Request/response logging and error handling middleware
"""

import logging
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from aiohttp import web

from grtn.core.config import RedirectorConfig
from grtn.core.errors import ErrorReporter
from grtn.core.pages import render_error_page
from grtn.core.resolution import Resolution

logger = logging.getLogger(__name__)


@dataclass
class RequestContext:
    """Request context that flows through the middleware chain.

    This context accumulates data as the request flows through middleware:
    - HTTP request data
    - Client information
    - Resolution outcome (populated by the redirect middleware)
    - Timing information
    """

    # HTTP Request Data
    method: str
    path: str
    raw_path: str
    query_params: Dict[str, str]
    client_ip: str
    user_agent: str

    # Correlation and Timing
    correlation_id: str
    start_time: float = field(default_factory=time.time)

    # Resolution outcome
    resolution: Optional[Resolution] = None

    def elapsed_ms(self) -> float:
        """Calculate elapsed time since request start in milliseconds."""
        return (time.time() - self.start_time) * 1000

    def describe(self) -> Dict[str, Any]:
        """Request data attached to error reports."""
        return {
            "method": self.method,
            "path": self.path,
            "query": self.query_params,
            "client_ip": self.client_ip,
            "user_agent": self.user_agent,
        }


# Type alias for middleware handler functions
MiddlewareHandler = Callable[[web.Request, RequestContext], Awaitable[web.StreamResponse]]


class Middleware(ABC):
    """Abstract base class for middleware components.

    Middleware can:
    - Inspect and modify the request context
    - Short-circuit the request flow by returning a response
    - Execute logic before and after the next middleware in the chain
    """

    def __init__(self, config: RedirectorConfig):
        """Initialize the middleware.

        Args:
            config: Redirector configuration
        """
        self.config = config

    @abstractmethod
    async def process(
        self, request: web.Request, context: RequestContext, next_handler: MiddlewareHandler
    ) -> web.StreamResponse:
        """Process the request.

        Args:
            request: aiohttp Request object
            context: Request context
            next_handler: Next middleware handler in the chain

        Returns:
            Response object
        """

    @property
    def name(self) -> str:
        """Get middleware name."""
        return self.__class__.__name__


class MiddlewareChain:
    """Executes middleware in a chain/pipeline pattern around an endpoint.

    Middleware are executed in order, with each middleware having the opportunity
    to call the next handler or short-circuit the chain by returning a response.
    The endpoint answers the request once every middleware has delegated.
    """

    def __init__(self, middlewares: List[Middleware], endpoint: MiddlewareHandler):
        """Initialize the middleware chain.

        Args:
            middlewares: List of middleware in execution order
            endpoint: Terminal handler producing the response
        """
        self.middlewares = middlewares
        self.endpoint = endpoint
        logger.info(
            f"Middleware chain initialized with {len(middlewares)} middleware",
            extra={"middleware": [m.name for m in middlewares]},
        )

    def _build_handler(self, index: int) -> MiddlewareHandler:
        """Build the handler for the middleware at the given index."""
        if index >= len(self.middlewares):
            return self.endpoint

        middleware = self.middlewares[index]

        async def handler(req: web.Request, ctx: RequestContext) -> web.StreamResponse:
            return await middleware.process(req, ctx, self._build_handler(index + 1))

        return handler

    async def execute(self, request: web.Request, context: RequestContext) -> web.StreamResponse:
        """Execute the middleware chain.

        Args:
            request: aiohttp Request object
            context: Request context

        Returns:
            Response object
        """
        return await self._build_handler(0)(request, context)


class RequestLoggingMiddleware(Middleware):
    """Middleware for logging incoming requests."""

    async def process(
        self, request: web.Request, context: RequestContext, next_handler: MiddlewareHandler
    ) -> web.StreamResponse:
        structured_logger = request.app.get("logger")

        if structured_logger:
            structured_logger.log_request(
                method=context.method,
                path=context.path,
                client_ip=context.client_ip,
                user_agent=context.user_agent,
            )

        return await next_handler(request, context)


class ResponseLoggingMiddleware(Middleware):
    """Middleware for logging responses.

    Logs response metadata after request processing completes and updates
    request metrics. Runs outside error handling so failure pages are logged
    too.
    """

    async def process(
        self, request: web.Request, context: RequestContext, next_handler: MiddlewareHandler
    ) -> web.StreamResponse:
        response = await next_handler(request, context)

        structured_logger = request.app.get("logger")
        if structured_logger:
            structured_logger.log_response(
                method=context.method,
                path=context.path,
                status_code=response.status,
                latency_ms=context.elapsed_ms(),
                location=response.headers.get("Location"),
                outcome=context.resolution.outcome if context.resolution else None,
            )

        metrics = request.app.get("metrics")
        if metrics:
            metrics.record_request(
                status_code=response.status,
                duration_seconds=context.elapsed_ms() / 1000,
            )

        return response


class ErrorHandlingMiddleware(Middleware):
    """Middleware for handling errors and exceptions.

    Catches exceptions from downstream middleware, reports them and converts
    them to the HTML failure page. In debug mode the exception is re-raised
    unmodified.
    """

    def __init__(self, config: RedirectorConfig, reporter: ErrorReporter):
        """Initialize the error handling middleware.

        Args:
            config: Redirector configuration
            reporter: Error reporter
        """
        super().__init__(config)
        self.reporter = reporter

    async def process(
        self, request: web.Request, context: RequestContext, next_handler: MiddlewareHandler
    ) -> web.StreamResponse:
        try:
            return await next_handler(request, context)
        except web.HTTPException:
            # Re-raise HTTP exceptions (they're already proper responses)
            raise
        except Exception as e:
            logger.exception(
                f"Unhandled exception while resolving {context.path}: {e}",
                extra={
                    "correlation_id": context.correlation_id,
                    "path": context.path,
                    "method": context.method,
                },
            )
            self.reporter.report(
                e, request=context.describe(), correlation_id=context.correlation_id
            )

            if self.config.debug:
                raise

            return web.Response(
                status=500,
                text=render_error_page(e, context.correlation_id),
                content_type="text/html",
            )


def client_ip_from(request: web.Request, header_name: str) -> str:
    """Extract the original client IP.

    Checks the edge header first, then X-Forwarded-For, then the peer.
    """
    client_ip = request.headers.get(header_name, "").strip()
    if not client_ip:
        client_ip = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    if not client_ip:
        client_ip = request.remote or "unknown"
    return client_ip


def create_request_context(
    request: web.Request, correlation_id: Optional[str] = None
) -> RequestContext:
    """Create a request context from an aiohttp request.

    Args:
        request: aiohttp Request object
        correlation_id: Optional correlation ID (generated if not provided)

    Returns:
        RequestContext instance
    """
    config: Optional[RedirectorConfig] = request.app.get("config")

    if not correlation_id:
        # Check if client provided correlation ID
        if config:
            correlation_id = request.headers.get(config.logging.correlation_id_header)

        if not correlation_id:
            correlation_id = f"req-{uuid.uuid4().hex[:16]}"

    header_name = config.telemetry.client_ip_header if config else "CF-Connecting-IP"

    return RequestContext(
        method=request.method,
        path=request.path,
        raw_path=request.rel_url.raw_path,
        query_params=dict(request.query),
        client_ip=client_ip_from(request, header_name),
        user_agent=request.headers.get("User-Agent", "unknown"),
        correlation_id=correlation_id,
    )
