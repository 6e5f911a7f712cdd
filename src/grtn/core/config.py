"""Configuration management module for the redirector.

This module handles loading and validating configuration from multiple sources:
- Configuration files (YAML)
- Environment variables
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = Field(default="0.0.0.0", description="Server bind address")
    port: int = Field(default=8080, ge=1, le=65535, description="Server port")
    keepalive_timeout: int = Field(default=75, ge=1, description="Keep-alive timeout in seconds")


class WikiConfig(BaseModel):
    """Content backend configuration."""

    search_url: str = Field(
        default="https://wiki.creatorsgarten.org/api/contentsgarten/search",
        description="Wiki content-search endpoint",
    )
    site_url: str = Field(
        default="https://creatorsgarten.org", description="Base URL for canonical page links"
    )
    event_prefix: str = Field(
        default="Events/", description="Page reference prefix of the event namespace"
    )
    max_stale: int = Field(
        default=15, ge=0, description="Maximum cached response age accepted, in seconds"
    )
    request_timeout: int = Field(default=10, ge=1, description="Query timeout in seconds")

    @field_validator("site_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Store the site URL without a trailing slash."""
        return v.rstrip("/")


class RedirectConfig(BaseModel):
    """Special paths and fixed destinations."""

    landing_url: str = Field(
        default="https://creatorsgarten.org/", description="Destination of the root path"
    )
    fallback_base_url: str = Field(
        default="https://creatorsgarten.org/go/",
        description="Short-link service that receives unmatched paths",
    )
    routes_path: str = Field(default="/routes.json", description="Route table dump path")
    favicon_path: str = Field(default="/favicon.ico", description="Icon path answered with 404")


class TelemetryConfig(BaseModel):
    """Visit tracking configuration."""

    amplitude_api_key: str | None = Field(default=None, description="Amplitude API key")
    endpoint: str = Field(
        default="https://api2.amplitude.com/2/httpapi", description="Analytics endpoint"
    )
    timeout: float = Field(default=1.0, gt=0, description="Tracking deadline in seconds")
    user_id: str = Field(default="anonymous_user", description="Pseudonymous user id")
    client_ip_header: str = Field(
        default="CF-Connecting-IP", description="Header carrying the original client IP"
    )


class ErrorReportingConfig(BaseModel):
    """Error tracker configuration."""

    sentry_dsn: str | None = Field(default=None, description="Sentry DSN (disabled if unset)")
    release: str | None = Field(default=None, description="Release reported to Sentry")
    traces_sample_rate: float = Field(
        default=0.0, ge=0.0, le=1.0, description="Sentry performance sampling rate"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format (json or text)")
    output: str = Field(default="stdout", description="Log output (stdout, file path, etc.)")
    correlation_id_header: str = Field(
        default="X-Request-ID", description="Header name for correlation ID"
    )
    redact_headers: list[str] = Field(
        default_factory=lambda: ["Authorization", "Cookie", "api_key"],
        description="Fields to redact from logs",
    )

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format is valid."""
        if v.lower() not in ("json", "text"):
            raise ValueError(f"Invalid log format: {v}. Must be 'json' or 'text'")
        return v.lower()


class MetricsConfig(BaseModel):
    """Metrics configuration."""

    enabled: bool = Field(default=True, description="Enable metrics collection")
    port: int = Field(default=9090, ge=1, le=65535, description="Prometheus exporter port")


class RedirectorConfig(BaseModel):
    """Main redirector configuration."""

    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(
        default=False, description="Let request failures surface unmodified (local development)"
    )
    server: ServerConfig = Field(default_factory=ServerConfig)
    wiki: WikiConfig = Field(default_factory=WikiConfig)
    redirects: RedirectConfig = Field(default_factory=RedirectConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    error_reporting: ErrorReportingConfig = Field(default_factory=ErrorReportingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)


class ConfigLoader:
    """Loads and validates configuration from multiple sources."""

    def __init__(self, config_path: str | None = None):
        """Initialize the configuration loader.

        Args:
            config_path: Path to configuration file. If None, uses environment variable
                        GRTN_CONFIG_PATH or defaults to config/grtn.yaml
        """
        self.config_path = self._resolve_config_path(config_path)

    def _resolve_config_path(self, config_path: str | None) -> Path:
        """Resolve configuration file path."""
        if config_path:
            return Path(config_path)

        env_path = os.getenv("GRTN_CONFIG_PATH")
        if env_path:
            return Path(env_path)

        # Try environment-specific config first
        env = os.getenv("GRTN_ENV", "development")
        env_specific = Path(f"config/grtn.{env}.yaml")
        if env_specific.exists():
            return env_specific

        return Path("config/grtn.yaml")

    def load(self) -> RedirectorConfig:
        """Load and validate configuration.

        Returns:
            Validated RedirectorConfig instance

        Raises:
            ValueError: If configuration is invalid
        """
        config_dict = self._load_from_file()
        config_dict = self._override_from_env(config_dict)

        try:
            config = RedirectorConfig(**config_dict)
        except Exception as e:
            raise ValueError(f"Configuration validation failed: {e}") from e

        return config

    def _load_from_file(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            # Return empty dict if file doesn't exist, will use defaults
            return {}

        with open(self.config_path) as f:
            config_dict = yaml.safe_load(f) or {}

        return config_dict

    def _override_from_env(self, config_dict: dict[str, Any]) -> dict[str, Any]:
        """Override configuration with environment variables.

        Environment variables follow the pattern: GRTN_<SECTION>_<KEY>
        For example: GRTN_SERVER_PORT=8080. The analytics and error-tracker
        credentials are also read from AMPLITUDE_API_KEY and SENTRY_DSN.
        """
        # Server config
        if host := os.getenv("GRTN_SERVER_HOST"):
            config_dict.setdefault("server", {})["host"] = host
        if port := os.getenv("GRTN_SERVER_PORT"):
            config_dict.setdefault("server", {})["port"] = int(port)

        # Wiki config
        if search_url := os.getenv("GRTN_WIKI_SEARCH_URL"):
            config_dict.setdefault("wiki", {})["search_url"] = search_url

        # Redirect config
        if fallback := os.getenv("GRTN_FALLBACK_BASE_URL"):
            config_dict.setdefault("redirects", {})["fallback_base_url"] = fallback

        # Telemetry config
        if api_key := os.getenv("AMPLITUDE_API_KEY"):
            config_dict.setdefault("telemetry", {})["amplitude_api_key"] = api_key

        # Error reporting config
        if dsn := os.getenv("SENTRY_DSN"):
            config_dict.setdefault("error_reporting", {})["sentry_dsn"] = dsn

        # Logging config
        if log_level := os.getenv("GRTN_LOG_LEVEL"):
            config_dict.setdefault("logging", {})["level"] = log_level
        if log_format := os.getenv("GRTN_LOG_FORMAT"):
            config_dict.setdefault("logging", {})["format"] = log_format

        # Metrics config
        if metrics_enabled := os.getenv("GRTN_METRICS_ENABLED"):
            config_dict.setdefault("metrics", {})["enabled"] = metrics_enabled.lower() == "true"

        # Environment
        if env := os.getenv("GRTN_ENV"):
            config_dict["environment"] = env
        if debug := os.getenv("GRTN_DEBUG"):
            config_dict["debug"] = debug.lower() == "true"

        return config_dict


def load_config(config_path: str | None = None) -> RedirectorConfig:
    """Load configuration (convenience function).

    Args:
        config_path: Optional path to configuration file

    Returns:
        Validated RedirectorConfig instance
    """
    loader = ConfigLoader(config_path)
    return loader.load()
