"""Shared pytest fixtures and configuration."""

import pytest
from prometheus_client import REGISTRY

from grtn.core.config import RedirectorConfig, WikiConfig


@pytest.fixture(autouse=True)
def reset_prometheus_registry():
    """Reset Prometheus registry before each test to avoid duplicate metric errors."""
    for collector in list(REGISTRY._collector_to_names.keys()):
        try:
            REGISTRY.unregister(collector)
        except Exception:
            pass  # Ignore errors for default collectors

    yield

    for collector in list(REGISTRY._collector_to_names.keys()):
        try:
            REGISTRY.unregister(collector)
        except Exception:
            pass


@pytest.fixture
def wiki_config() -> WikiConfig:
    """Wiki configuration with the default site."""
    return WikiConfig()


@pytest.fixture
def config() -> RedirectorConfig:
    """Default redirector configuration with metrics export disabled."""
    config = RedirectorConfig()
    config.metrics.enabled = False
    return config
