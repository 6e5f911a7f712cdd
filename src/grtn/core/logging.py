"""Logging module for the redirector.

Provides structured logging with JSON format, correlation IDs, and sensitive data redaction.
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

from grtn.core.config import LoggingConfig

# Set per request; each asyncio task sees its own value.
_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

_RESERVED_ATTRIBUTES = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        "correlation_id",
        "extra_fields",
    }
)


class CorrelationIdFilter(logging.Filter):
    """Logging filter that adds correlation ID to log records."""

    def set_correlation_id(self, correlation_id: str) -> None:
        """Set the correlation ID for the current request.

        Args:
            correlation_id: The correlation ID to use
        """
        _correlation_id.set(correlation_id)

    def clear_correlation_id(self) -> None:
        """Clear the correlation ID."""
        _correlation_id.set(None)

    def filter(self, record: logging.LogRecord) -> bool:
        """Add correlation ID to the log record.

        Args:
            record: The log record to filter

        Returns:
            True to include the record
        """
        record.correlation_id = _correlation_id.get() or "none"  # type: ignore
        return True


class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def __init__(self, redact_patterns: list[str] | None = None):
        """Initialize the JSON formatter.

        Args:
            redact_patterns: List of field names to redact from logs
        """
        super().__init__()
        self.redact_patterns = redact_patterns or []

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON.

        Args:
            record: The log record to format

        Returns:
            JSON-formatted log string
        """
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", "none"),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            extra = record.extra_fields
            if isinstance(extra, dict):
                log_data.update(self._redact_sensitive_data(extra))

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRIBUTES:
                log_data[key] = value

        return json.dumps(log_data, default=str)

    def _redact_sensitive_data(self, data: dict[str, Any]) -> dict[str, Any]:
        """Redact sensitive data from log fields.

        Args:
            data: Dictionary potentially containing sensitive data

        Returns:
            Dictionary with sensitive fields redacted
        """
        redacted: dict[str, Any] = {}
        for key, value in data.items():
            if any(pattern.lower() in key.lower() for pattern in self.redact_patterns):
                redacted[key] = "***REDACTED***"
            elif isinstance(value, dict):
                redacted[key] = self._redact_sensitive_data(value)
            else:
                redacted[key] = value
        return redacted


class TextFormatter(logging.Formatter):
    """Custom text formatter for human-readable logs."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as text."""
        timestamp = datetime.now(UTC).isoformat()
        correlation_id = getattr(record, "correlation_id", "none")

        base = (
            f"{timestamp} [{record.levelname}] "
            f"[{correlation_id}] "
            f"{record.name}: {record.getMessage()}"
        )

        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)

        return base


class RedirectorLogger:
    """Redirector logger with structured logging and correlation ID support."""

    def __init__(self, config: LoggingConfig):
        """Initialize the redirector logger.

        Args:
            config: Logging configuration
        """
        self.config = config
        self.correlation_filter = CorrelationIdFilter()
        self._setup_logging()

    def _setup_logging(self) -> None:
        """Set up logging configuration."""
        logger = logging.getLogger("grtn")
        logger.setLevel(getattr(logging, self.config.level))
        logger.handlers.clear()

        handler: logging.Handler
        if self.config.output == "stdout":
            handler = logging.StreamHandler(sys.stdout)
        elif self.config.output == "stderr":
            handler = logging.StreamHandler(sys.stderr)
        else:
            # Assume it's a file path
            handler = logging.FileHandler(self.config.output)

        formatter: logging.Formatter
        if self.config.format == "json":
            formatter = JsonFormatter(redact_patterns=self.config.redact_headers)
        else:
            formatter = TextFormatter()

        handler.setFormatter(formatter)
        handler.addFilter(self.correlation_filter)
        logger.addHandler(handler)

        # Prevent propagation to root logger
        logger.propagate = False

    def set_correlation_id(self, correlation_id: str | None = None) -> str:
        """Set or generate a correlation ID for the current request.

        Args:
            correlation_id: Optional correlation ID. If None, generates a new one.

        Returns:
            The correlation ID that was set
        """
        if correlation_id is None:
            correlation_id = self.generate_correlation_id()
        self.correlation_filter.set_correlation_id(correlation_id)
        return correlation_id

    def clear_correlation_id(self) -> None:
        """Clear the current correlation ID."""
        self.correlation_filter.clear_correlation_id()

    @staticmethod
    def generate_correlation_id() -> str:
        """Generate a unique correlation ID."""
        return f"req-{uuid.uuid4().hex[:16]}"

    def get_logger(self, name: str = "grtn") -> logging.Logger:
        """Get a logger instance."""
        return logging.getLogger(name)

    def log_request(
        self,
        method: str,
        path: str,
        client_ip: str,
        user_agent: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Log an incoming request.

        Args:
            method: HTTP method
            path: Request path
            client_ip: Client IP address
            user_agent: User agent string
            **kwargs: Additional fields to log
        """
        extra_fields: dict[str, Any] = {
            "event_type": "request_received",
            "request": {
                "method": method,
                "path": path,
                "client_ip": client_ip,
                "user_agent": user_agent,
            },
        }
        extra_fields.update(kwargs)

        self.get_logger().info(
            f"{method} {path} from {client_ip}",
            extra={"extra_fields": extra_fields},
        )

    def log_response(
        self,
        method: str,
        path: str,
        status_code: int,
        latency_ms: float,
        location: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Log a response.

        Args:
            method: HTTP method
            path: Request path
            status_code: HTTP status code
            latency_ms: Request latency in milliseconds
            location: Redirect destination, if any
            **kwargs: Additional fields to log
        """
        extra_fields: dict[str, Any] = {
            "event_type": "request_completed",
            "request": {"method": method, "path": path},
            "response": {
                "status_code": status_code,
                "latency_ms": latency_ms,
                "location": location,
            },
        }
        extra_fields.update(kwargs)

        if status_code >= 500:
            log_level = logging.ERROR
        elif status_code >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        message = f"{method} {path} -> {status_code} ({latency_ms:.2f}ms)"
        if location:
            message += f" -> {location}"

        self.get_logger().log(log_level, message, extra={"extra_fields": extra_fields})

    def log_resolution(
        self,
        path: str,
        outcome: str,
        candidates: int,
        target: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Log how a path was resolved.

        Args:
            path: Request path
            outcome: Resolution outcome (route, fallback, ambiguous, listing, not_found)
            candidates: Number of matching routes
            target: Chosen destination, if any
            **kwargs: Additional fields to log
        """
        extra_fields: dict[str, Any] = {
            "event_type": "resolution",
            "resolution": {
                "path": path,
                "outcome": outcome,
                "candidates": candidates,
                "target": target,
            },
        }
        extra_fields.update(kwargs)

        log_level = logging.WARNING if outcome == "ambiguous" else logging.DEBUG
        message = f"Resolved {path} as {outcome}"
        if target:
            message += f" -> {target}"

        self.get_logger().log(log_level, message, extra={"extra_fields": extra_fields})

    def log_backend_event(
        self,
        url: str,
        query: str,
        status_code: int | None = None,
        latency_ms: float | None = None,
        error: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Log a content backend interaction.

        Args:
            url: Backend endpoint
            query: Query label (e.g. "grtn")
            status_code: Response status code
            latency_ms: Request latency in milliseconds
            error: Error message if request failed
            **kwargs: Additional fields to log
        """
        backend_data: dict[str, Any] = {
            "url": url,
            "query": query,
            "status_code": status_code,
            "latency_ms": latency_ms,
        }
        if error:
            backend_data["error"] = error

        extra_fields: dict[str, Any] = {
            "event_type": "backend_query",
            "backend": backend_data,
        }
        extra_fields.update(kwargs)

        log_level = logging.ERROR if error else logging.DEBUG
        message = f"Backend query {query}"
        if status_code:
            message += f" -> {status_code}"
        if error:
            message += f" - {error}"

        self.get_logger().log(log_level, message, extra={"extra_fields": extra_fields})
