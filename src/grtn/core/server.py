"""HTTP Server module for the redirector.

This module implements the HTTP server foundation:
- Asynchronous HTTP server using aiohttp
- Keep-alive handling
- Application lifecycle hooks
"""

import logging

from aiohttp import web

from grtn.core.config import RedirectorConfig
from grtn.core.logging import RedirectorLogger
from grtn.core.metrics import RedirectorMetrics

logger = logging.getLogger(__name__)


class HTTPServer:
    """HTTP Server for the redirector."""

    def __init__(
        self,
        config: RedirectorConfig,
        structured_logger: RedirectorLogger,
        metrics: RedirectorMetrics,
    ):
        """Initialize the HTTP server.

        Args:
            config: Redirector configuration
            structured_logger: Redirector logger instance
            metrics: Redirector metrics instance
        """
        self.config = config
        self.structured_logger = structured_logger
        self.metrics = metrics
        self.app: web.Application | None = None
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    def create_app(self) -> web.Application:
        """Create and configure the aiohttp application.

        Returns:
            Configured aiohttp Application instance
        """
        app = web.Application(
            handler_args={
                "keepalive_timeout": self.config.server.keepalive_timeout,
            },
        )

        # Store references for access in middleware
        app["config"] = self.config
        app["logger"] = self.structured_logger
        app["metrics"] = self.metrics

        app.on_startup.append(self._on_startup)
        app.on_shutdown.append(self._on_shutdown)

        self.app = app
        return app

    async def start(self) -> None:
        """Start the HTTP server.

        Raises:
            RuntimeError: If server is already running
        """
        if self._runner is not None:
            raise RuntimeError("Server is already running")

        if self.app is None:
            self.create_app()

        self._runner = web.AppRunner(
            self.app,
            access_log=None,  # We handle logging ourselves
        )
        await self._runner.setup()

        self._site = web.TCPSite(
            self._runner,
            host=self.config.server.host,
            port=self.config.server.port,
        )
        await self._site.start()

        logger.info(
            f"HTTP server started on http://{self.config.server.host}:{self.config.server.port}",
            extra={
                "host": self.config.server.host,
                "port": self.config.server.port,
            },
        )

    async def stop(self) -> None:
        """Stop the HTTP server gracefully."""
        if self._runner is None:
            logger.warning("Server is not running")
            return

        logger.info("Stopping HTTP server...")

        if self._site:
            await self._site.stop()

        await self._runner.cleanup()

        self._site = None
        self._runner = None

        logger.info("HTTP server stopped")

    async def _on_startup(self, app: web.Application) -> None:
        logger.info("Application starting up...")

    async def _on_shutdown(self, app: web.Application) -> None:
        logger.info("Application shutting down...")
