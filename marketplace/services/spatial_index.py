"""Nearest-shop queries against the shop location index."""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

from sqlalchemy import and_, case, inspect, literal, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..config import settings
from ..models.shop import LOCATION_INDEX_NAME, Shop
from .errors import IndexUnavailable, QueryTimeout
from .geo_math import EARTH_RADIUS_KM, Coordinate, distance_km

logger = logging.getLogger(__name__)

KM_PER_DEGREE = EARTH_RADIUS_KM * math.pi / 180

ShopWithDistance = Tuple[Shop, float]


@dataclass(frozen=True)
class ShopFilter:
    """Flags a shop must carry to be returned by the index."""

    is_active: bool = True
    is_approved: bool = True

    def clauses(self) -> list:
        return [
            Shop.is_active.is_(self.is_active),
            Shop.is_approved.is_(self.is_approved),
        ]


ACTIVE_APPROVED = ShopFilter(is_active=True, is_approved=True)


@dataclass(frozen=True)
class BoundingBox:
    """Degree ranges covering every point within a distance of an origin."""

    lat_min: float
    lat_max: float
    lon_ranges: Tuple[Tuple[float, float], ...]

    @classmethod
    def around(cls, origin: Coordinate, radius_km: float) -> "BoundingBox":
        angular = radius_km / EARTH_RADIUS_KM
        if angular >= math.pi:
            return cls(-90.0, 90.0, ((-180.0, 180.0),))

        dlat = math.degrees(angular)
        lat_min = origin.latitude - dlat
        lat_max = origin.latitude + dlat

        # Circle reaches a pole: every longitude qualifies
        if lat_min <= -90.0 or lat_max >= 90.0:
            return cls(max(lat_min, -90.0), min(lat_max, 90.0), ((-180.0, 180.0),))

        ratio = math.sin(angular) / math.cos(math.radians(origin.latitude))
        if ratio >= 1.0:
            return cls(lat_min, lat_max, ((-180.0, 180.0),))

        dlon = math.degrees(math.asin(ratio))
        lon_min = origin.longitude - dlon
        lon_max = origin.longitude + dlon

        if lon_min < -180.0:
            ranges = ((lon_min + 360.0, 180.0), (-180.0, lon_max))
        elif lon_max > 180.0:
            ranges = ((lon_min, 180.0), (-180.0, lon_max - 360.0))
        else:
            ranges = ((lon_min, lon_max),)
        return cls(lat_min, lat_max, ranges)

    def clause(self):
        lon_clauses = [Shop.longitude.between(lo, hi) for lo, hi in self.lon_ranges]
        return and_(
            Shop.latitude.between(self.lat_min, self.lat_max),
            or_(*lon_clauses),
        )


def _distance_sq_expression(origin: Coordinate):
    """Squared equirectangular distance in degrees, evaluated by the store."""
    dlat = Shop.latitude - origin.latitude
    raw_dlon = Shop.longitude - origin.longitude
    dlon = case(
        (raw_dlon > 180, raw_dlon - 360),
        (raw_dlon < -180, raw_dlon + 360),
        else_=raw_dlon,
    )
    scaled_dlon = dlon * literal(math.cos(math.radians(origin.latitude)))
    return (dlat * dlat + scaled_dlon * scaled_dlon).label("distance_sq")


class SpatialIndexAdapter:
    """
    Issues "nearest within bound" and "all sorted by distance" queries.

    Results come back ordered by the store's own distance estimate (ties by
    shop id). That estimate is a hint; callers recompute exact distances.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        timeout_seconds: Optional[float] = None,
    ):
        self._session_factory = session_factory
        self._timeout = (
            timeout_seconds if timeout_seconds is not None else settings.query_timeout_seconds
        )
        self._index_verified = False

    async def find_near(
        self,
        origin: Coordinate,
        max_distance_km: float,
        shop_filter: ShopFilter = ACTIVE_APPROVED,
    ) -> List[ShopWithDistance]:
        """Shops matching `shop_filter` within `max_distance_km` of `origin`."""
        box = BoundingBox.around(origin, max_distance_km)
        stmt = self._select(origin, shop_filter).where(box.clause())
        rows = await self._run(stmt)

        # The box is a superset of the circle; trim its corners exactly
        return [
            (shop, estimate)
            for shop, estimate in rows
            if distance_km(origin, Coordinate(shop.latitude, shop.longitude)) <= max_distance_km
        ]

    async def find_all_sorted_by_distance(
        self,
        origin: Coordinate,
        shop_filter: ShopFilter = ACTIVE_APPROVED,
    ) -> List[ShopWithDistance]:
        """Every shop matching `shop_filter`, nearest first, with no distance cap."""
        return await self._run(self._select(origin, shop_filter))

    def _select(self, origin: Coordinate, shop_filter: ShopFilter):
        distance_sq = _distance_sq_expression(origin)
        return (
            select(Shop, distance_sq)
            .where(Shop.location_set.is_(True), *shop_filter.clauses())
            .order_by(distance_sq, Shop.id)
        )

    async def _run(self, stmt) -> List[ShopWithDistance]:
        try:
            return await asyncio.wait_for(self._verified_fetch(stmt), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("Spatial query exceeded %.1fs deadline", self._timeout)
            raise QueryTimeout(
                "Location search timed out",
                detail=f"no response within {self._timeout:g}s",
            ) from exc
        except SQLAlchemyError as exc:
            logger.error("Spatial query failed: %s", exc)
            raise IndexUnavailable("Location search is unavailable", detail=str(exc)) from exc

    async def _verified_fetch(self, stmt) -> List[ShopWithDistance]:
        if not self._index_verified:
            await self._verify_index()
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            rows: Sequence[Any] = result.all()
        return [
            (shop, math.sqrt(max(distance_sq or 0.0, 0.0)) * KM_PER_DEGREE)
            for shop, distance_sq in rows
        ]

    async def _verify_index(self) -> None:
        async with self._session_factory() as session:
            conn = await session.connection()
            names = await conn.run_sync(
                lambda sync_conn: [ix["name"] for ix in inspect(sync_conn).get_indexes(Shop.__tablename__)]
            )
        if LOCATION_INDEX_NAME not in names:
            logger.error("Index %s missing on %s", LOCATION_INDEX_NAME, Shop.__tablename__)
            raise IndexUnavailable(
                "Location search is unavailable",
                detail=f"index {LOCATION_INDEX_NAME} is missing",
            )
        self._index_verified = True
