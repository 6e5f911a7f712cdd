"""Middleware components for request processing pipeline."""

from grtn.middleware.redirect import RedirectEndpoint
from grtn.middleware.tracking import VisitTrackingMiddleware

__all__ = [
    "RedirectEndpoint",
    "VisitTrackingMiddleware",
]
