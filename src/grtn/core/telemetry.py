"""Visit tracking.

Sends one analytics event per visit. Tracking is best effort: it is bounded
by a deadline and never raises.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from grtn.core.config import TelemetryConfig
from grtn.core.metrics import RedirectorMetrics

logger = logging.getLogger(__name__)


class VisitTracker:
    """Posts visit events to the analytics HTTP API."""

    def __init__(self, config: TelemetryConfig, metrics: Optional[RedirectorMetrics] = None):
        """Initialize the visit tracker.

        Args:
            config: Telemetry configuration
            metrics: Optional metrics collector
        """
        self.config = config
        self.metrics = metrics
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def enabled(self) -> bool:
        return bool(self.config.amplitude_api_key)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp client session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        """Close the client session."""
        if self._session and not self._session.closed:
            await self._session.close()

    def build_event(self, path: str, client_ip: Optional[str]) -> Dict[str, Any]:
        """Build the analytics envelope for one visit."""
        return {
            "api_key": self.config.amplitude_api_key,
            "events": [
                {
                    "user_id": self.config.user_id,
                    "event_type": "visit",
                    "event_properties": {"pathname": path},
                    "ip": client_ip,
                }
            ],
        }

    async def _send(self, payload: Dict[str, Any]) -> None:
        session = await self._get_session()
        async with session.post(self.config.endpoint, json=payload) as response:
            if not 200 <= response.status < 300:
                logger.warning(
                    f"Failed to track visit: {response.status}",
                    extra={"status": response.status},
                )
                if self.metrics:
                    self.metrics.record_telemetry_failure("status")

    async def track_visit(self, path: str, client_ip: Optional[str]) -> None:
        """Track a visit. Never raises.

        Args:
            path: Visited path
            client_ip: Visitor IP, if known
        """
        if not self.enabled:
            return

        try:
            await asyncio.wait_for(
                self._send(self.build_event(path, client_ip)), timeout=self.config.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Visit tracking timed out",
                extra={"path": path, "timeout": self.config.timeout},
            )
            if self.metrics:
                self.metrics.record_telemetry_failure("timeout")
        except Exception as e:
            logger.warning(
                f"Visit tracking failed: {e}",
                extra={"path": path, "error": str(e)},
            )
            if self.metrics:
                self.metrics.record_telemetry_failure("error")
