"""Error reporting to Sentry."""

import logging
from typing import Any, Dict, Optional

import sentry_sdk

from grtn.core.config import ErrorReportingConfig

logger = logging.getLogger(__name__)


class ErrorReporter:
    """Reports request failures with their request context."""

    def __init__(self, config: ErrorReportingConfig, environment: str = "development"):
        """Initialize the error reporter.

        Sentry is only initialized when a DSN is configured.

        Args:
            config: Error reporting configuration
            environment: Environment name reported with every event
        """
        self.config = config
        self.environment = environment
        self.enabled = bool(config.sentry_dsn)

        if self.enabled:
            sentry_sdk.init(
                dsn=config.sentry_dsn,
                environment=environment,
                release=config.release,
                traces_sample_rate=config.traces_sample_rate,
            )
            logger.info("Sentry error reporting enabled", extra={"environment": environment})

    def report(
        self,
        exc: BaseException,
        request: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
    ) -> Optional[str]:
        """Report an exception.

        Args:
            exc: The exception to report
            request: Request data (method, path, client IP, headers)
            correlation_id: Request correlation ID

        Returns:
            Sentry event ID, or None if reporting is disabled
        """
        if not self.enabled:
            logger.debug("Error reporting disabled, not reporting exception")
            return None

        with sentry_sdk.new_scope() as scope:
            if request:
                scope.set_context("request", request)
            if correlation_id:
                scope.set_tag("correlation_id", correlation_id)
            return sentry_sdk.capture_exception(exc)
