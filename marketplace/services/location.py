"""Owner-side shop location writes and status reads."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..config import settings
from ..models.shop import Shop
from .errors import InvalidCoordinate, InvalidInput, NotFound, QueryTimeout
from .geo_math import validate_coordinate, validate_delivery_radius

logger = logging.getLogger(__name__)


class ShopLocationService:
    """Saves a shop's coordinate and delivery radius, and reports whether one is set."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        timeout_seconds: Optional[float] = None,
        max_delivery_radius_km: Optional[float] = None,
    ):
        self._session_factory = session_factory
        self._timeout = (
            timeout_seconds if timeout_seconds is not None else settings.query_timeout_seconds
        )
        self._max_radius = (
            max_delivery_radius_km
            if max_delivery_radius_km is not None
            else settings.max_delivery_radius_km
        )

    async def save_location(
        self,
        shop_id: Any,
        latitude: Any,
        longitude: Any,
        delivery_radius_km: Any,
    ) -> Dict[str, Any]:
        """
        Replace coordinate, radius and the location_set flag in one UPDATE.

        Raises:
            InvalidInput: If any field is missing or out of range.
            NotFound: If no shop has this id.
        """
        if shop_id is None or latitude is None or longitude is None or delivery_radius_km is None:
            raise InvalidInput("Missing required fields")

        coordinate = validate_coordinate(latitude, longitude)
        if not coordinate.is_set:
            raise InvalidCoordinate("Invalid coordinates", detail="(0, 0) is reserved for unset locations")
        radius = validate_delivery_radius(delivery_radius_km, self._max_radius)

        stmt = (
            update(Shop)
            .where(Shop.id == shop_id)
            .values(
                latitude=coordinate.latitude,
                longitude=coordinate.longitude,
                delivery_radius_km=radius,
                location_set=True,
            )
            .returning(Shop.id, Shop.latitude, Shop.longitude, Shop.delivery_radius_km)
        )
        row = await self._with_deadline(self._update_one(stmt))
        if row is None:
            raise NotFound("Shop not found")

        logger.info("Saved location for shop %s (radius %.2f km)", row.id, row.delivery_radius_km)
        return {
            "shopId": row.id,
            "location": {"latitude": row.latitude, "longitude": row.longitude},
            "deliveryRadiusKm": row.delivery_radius_km,
            "locationSet": True,
        }

    async def location_status(self, shop_id: Any) -> Dict[str, Any]:
        stmt = select(
            Shop.location_set, Shop.latitude, Shop.longitude, Shop.delivery_radius_km
        ).where(Shop.id == shop_id)
        row = await self._with_deadline(self._fetch_one(stmt))
        if row is None:
            raise NotFound("Shop not found")

        return {
            "locationSet": bool(row.location_set),
            "hasCoordinates": row.latitude != 0 or row.longitude != 0,
            "deliveryRadiusKm": row.delivery_radius_km,
        }

    async def _update_one(self, stmt):
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(stmt)
                return result.one_or_none()

    async def _fetch_one(self, stmt):
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.one_or_none()

    async def _with_deadline(self, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise QueryTimeout("Location store timed out") from exc
