"""Uniform success/failure envelopes for API responses."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Pagination:
    """Page metadata for list responses."""

    page: int
    limit: int
    total: int
    returned: int = 0

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_more(self) -> bool:
        return (self.page - 1) * self.limit + self.returned < self.total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "pages": self.pages,
            "hasMore": self.has_more,
        }


def elapsed_ms(started_at: float) -> int:
    """Milliseconds since a `time.perf_counter()` reading."""
    return int(round((time.perf_counter() - started_at) * 1000))


def success(
    data: Any,
    *,
    count: Optional[int] = None,
    search_radius: Optional[float] = None,
    pagination: Optional[Pagination] = None,
    started_at: Optional[float] = None,
) -> Dict[str, Any]:
    """Build a `{success: true, ...}` envelope; optional keys only when given."""
    payload: Dict[str, Any] = {"success": True}
    if started_at is not None:
        payload["responseTime"] = f"{elapsed_ms(started_at)}ms"
    if count is not None:
        payload["count"] = count
    if search_radius is not None:
        payload["searchRadius"] = search_radius
    payload["data"] = data
    if pagination is not None:
        payload["pagination"] = pagination.to_dict()
    return payload


def failure(message: str, error: Optional[str] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"success": False, "message": message}
    if error:
        payload["error"] = error
    return payload
