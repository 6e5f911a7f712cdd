"""Main redirector integration module.

This module integrates all components:
- HTTP Server
- Wiki route source and resolver
- Middleware Chain
- Visit tracking
- Error reporting
- Configuration
- Logging
- Metrics
"""

import asyncio
import logging

from aiohttp import web

from grtn.core.config import RedirectorConfig
from grtn.core.errors import ErrorReporter
from grtn.core.handler import create_handler_middleware
from grtn.core.logging import RedirectorLogger
from grtn.core.metrics import RedirectorMetrics
from grtn.core.middleware import (
    ErrorHandlingMiddleware,
    Middleware,
    MiddlewareChain,
    RequestLoggingMiddleware,
    ResponseLoggingMiddleware,
)
from grtn.core.resolution import Resolver
from grtn.core.server import HTTPServer
from grtn.core.telemetry import VisitTracker
from grtn.core.wiki import WikiClient, WikiRouteSource
from grtn.middleware.redirect import RedirectEndpoint
from grtn.middleware.tracking import VisitTrackingMiddleware

logger = logging.getLogger(__name__)


class Redirector:
    """Main redirector class.

    Integrates all components and manages the service lifecycle.
    """

    def __init__(self, config: RedirectorConfig):
        """Initialize the redirector.

        Args:
            config: Redirector configuration
        """
        self.config = config
        self.structured_logger = RedirectorLogger(config.logging)
        self.metrics = RedirectorMetrics(config.metrics)
        self.error_reporter = ErrorReporter(config.error_reporting, config.environment)

        self.wiki_client = WikiClient(config.wiki, self.metrics, self.structured_logger)
        self.route_source = WikiRouteSource(self.wiki_client, config.wiki, self.metrics)
        self.resolver = Resolver(self.route_source, config.redirects)
        self.visit_tracker = VisitTracker(config.telemetry, self.metrics)

        self.middleware_chain = self._create_middleware_chain()
        self.server = HTTPServer(config, self.structured_logger, self.metrics)

    def _create_middleware_chain(self) -> MiddlewareChain:
        """Create the middleware chain.

        Middleware execution order:
        1. Response logging and metrics (sees failure pages too)
        2. Error handling and reporting
        3. Request logging
        4. Visit tracking (concurrent with resolution)

        The redirect endpoint resolves the path once every middleware has
        delegated.

        Returns:
            MiddlewareChain instance
        """
        middlewares: list[Middleware] = [
            ResponseLoggingMiddleware(self.config),
            ErrorHandlingMiddleware(self.config, self.error_reporter),
            RequestLoggingMiddleware(self.config),
            VisitTrackingMiddleware(self.config, self.visit_tracker),
        ]

        return MiddlewareChain(middlewares, RedirectEndpoint(self.config, self.resolver))

    def create_app(self) -> web.Application:
        """Create the aiohttp application with the redirect handler installed."""
        app = self.server.create_app()
        handler_middleware = create_handler_middleware(
            self.middleware_chain, self.config, self.structured_logger
        )
        app.middlewares.append(handler_middleware)  # type: ignore[arg-type]
        app.on_cleanup.append(self._close_clients)
        return app

    async def _close_clients(self, app: web.Application) -> None:
        await self.wiki_client.close()
        await self.visit_tracker.close()

    async def start(self) -> None:
        """Start the redirector."""
        logger.info(
            f"Starting redirector in {self.config.environment} environment",
            extra={"environment": self.config.environment, "debug": self.config.debug},
        )

        self.metrics.start_exporter()
        self.create_app()
        await self.server.start()

        logger.info("Redirector started successfully")

    async def stop(self) -> None:
        """Stop the redirector."""
        logger.info("Stopping redirector...")
        await self.server.stop()
        logger.info("Redirector stopped")

    async def run_forever(self) -> None:
        """Run the redirector until interrupted."""
        await self.start()

        try:
            await asyncio.Event().wait()
        except (KeyboardInterrupt, SystemExit):
            logger.info("Shutdown signal received")
        finally:
            await self.stop()
