"""Failures surfaced by the discovery and aggregation services."""

from __future__ import annotations

from typing import Optional, Sequence


class MarketplaceError(Exception):
    """Base class for reportable service failures."""

    status_code = 500

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class InvalidInput(MarketplaceError):
    """Raised when a request carries malformed or out-of-range values."""

    status_code = 400


class InvalidCoordinate(InvalidInput):
    """Raised when a latitude/longitude pair is missing or out of range."""


class InvalidRadius(InvalidInput):
    """Raised when a delivery or search radius is not acceptable."""


class NotFound(MarketplaceError):
    """Raised when a referenced shop or owner does not exist."""

    status_code = 404


class IndexUnavailable(MarketplaceError):
    """Raised when the spatial index is missing or the store is misconfigured."""

    status_code = 503


class QueryTimeout(MarketplaceError):
    """Raised when the store does not answer within its deadline."""

    status_code = 504


class PartialAggregationFailure(MarketplaceError):
    """Raised when one or more concurrent aggregate facets failed."""

    status_code = 502

    def __init__(self, failed: Sequence[str], errors: Sequence[BaseException] = ()):
        self.failed = list(failed)
        self.errors = list(errors)
        super().__init__(
            "Failed to load aggregate: " + ", ".join(self.failed),
            detail="; ".join(f"{name}: {err}" for name, err in zip(self.failed, self.errors)) or None,
        )
