"""
Domain exceptions for the instant catalog cache.

Upstream failures on the instant path are absorbed by the cache tiers; these
exceptions surface only where a caller is expected to handle them (the
collections listing and the raw upstream passthrough).
"""

from typing import Any, Optional


class CatalogError(Exception):
    """Base exception for catalog cache errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class CatalogUpstreamError(CatalogError):
    """The catalog provider (Shopify or the origin service) failed to answer."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[dict[str, Any]] = None):
        super().__init__(message, details)
        self.status_code = status_code


class UpstreamTimeoutError(CatalogUpstreamError):
    """Upstream request timed out. Retryable."""


class UpstreamRateLimitError(CatalogUpstreamError):
    """Upstream returned 429. Retryable."""
