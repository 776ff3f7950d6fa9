"""Shop discovery around a consumer location."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from ..config import settings
from ..models.shop import Shop
from .errors import InvalidCoordinate, InvalidInput
from .geo_math import Coordinate, distance_km, validate_coordinate, validate_search_radius
from .spatial_index import ACTIVE_APPROVED, ShopFilter

logger = logging.getLogger(__name__)


class ShopIndex(Protocol):
    """Query surface DiscoveryService needs from the spatial index."""

    async def find_near(
        self, origin: Coordinate, max_distance_km: float, shop_filter: ShopFilter
    ) -> Sequence[Tuple[Shop, float]]:
        ...

    async def find_all_sorted_by_distance(
        self, origin: Coordinate, shop_filter: ShopFilter
    ) -> Sequence[Tuple[Shop, float]]:
        ...


@dataclass(frozen=True)
class DiscoveryQuery:
    """Validated, immutable description of a single discovery request."""

    origin: Coordinate
    search_radius_km: Optional[float] = None
    max_results: Optional[int] = None
    shop_filter: ShopFilter = ACTIVE_APPROVED


@dataclass
class CandidateShop:
    """A shop as returned to the consumer, annotated with its distance."""

    id: int
    name: str
    location: Coordinate
    delivery_radius_km: float
    distance_km: float
    description: Optional[str] = None
    category: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    image_url: Optional[str] = None
    rating: float = 0.0
    total_orders: int = 0
    within_delivery_radius: Optional[bool] = None

    @classmethod
    def from_shop(
        cls,
        shop: Shop,
        exact_distance_km: float,
        within_delivery_radius: Optional[bool] = None,
    ) -> "CandidateShop":
        return cls(
            id=shop.id,
            name=shop.name,
            location=Coordinate(latitude=shop.latitude, longitude=shop.longitude),
            delivery_radius_km=shop.delivery_radius_km,
            distance_km=round(exact_distance_km, 2),
            description=shop.description,
            category=shop.category,
            address=shop.address,
            phone=shop.phone,
            image_url=shop.image_url,
            rating=shop.rating,
            total_orders=shop.total_orders,
            within_delivery_radius=within_delivery_radius,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "address": self.address,
            "phone": self.phone,
            "imageUrl": self.image_url,
            "rating": self.rating,
            "totalOrders": self.total_orders,
            "location": self.location.to_dict(),
            "deliveryRadiusKm": self.delivery_radius_km,
            "distanceKm": self.distance_km,
        }
        if self.within_delivery_radius is not None:
            payload["withinDeliveryRadius"] = self.within_delivery_radius
        return payload


@dataclass
class DiscoveryResult:
    query: DiscoveryQuery
    shops: List[CandidateShop] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.shops)


class DiscoveryService:
    """
    Finds active, approved shops around an origin.

    Three operations with distinct admission rules:

    * nearby_shops: within a search radius; delivery radius is informational.
    * deliverable_shops: within each shop's own delivery radius.
    * radius_shops: within a caller radius; delivery radius is ignored.

    Distances are always recomputed with the Haversine formula so every
    response field uses one formula, whatever the index estimated.
    """

    def __init__(
        self,
        index: ShopIndex,
        nearby_default_radius_km: Optional[float] = None,
        radius_default_km: Optional[float] = None,
    ):
        self._index = index
        self._nearby_default = (
            nearby_default_radius_km
            if nearby_default_radius_km is not None
            else settings.nearby_default_radius_km
        )
        self._radius_default = (
            radius_default_km if radius_default_km is not None else settings.radius_default_km
        )

    async def nearby_shops(
        self,
        latitude: Any,
        longitude: Any,
        search_radius_km: Any = None,
        max_results: Any = None,
    ) -> DiscoveryResult:
        query = self.build_query(latitude, longitude, search_radius_km, self._nearby_default, max_results)
        candidates = await self._index.find_near(query.origin, query.search_radius_km, query.shop_filter)

        shops = []
        for shop, exact in self._exact_distances(query.origin, candidates):
            if exact > query.search_radius_km:
                continue
            shops.append(
                CandidateShop.from_shop(
                    shop, exact, within_delivery_radius=exact <= shop.delivery_radius_km
                )
            )

        logger.debug(
            "nearby origin=%s radius=%.2f candidates=%d returned=%d",
            query.origin, query.search_radius_km, len(candidates), len(shops),
        )
        return DiscoveryResult(query=query, shops=self._limit(shops, query.max_results))

    async def deliverable_shops(
        self,
        latitude: Any,
        longitude: Any,
        max_results: Any = None,
    ) -> DiscoveryResult:
        query = self.build_query(latitude, longitude, None, None, max_results)
        candidates = await self._index.find_all_sorted_by_distance(query.origin, query.shop_filter)

        shops = [
            CandidateShop.from_shop(shop, exact)
            for shop, exact in self._exact_distances(query.origin, candidates)
            if exact <= shop.delivery_radius_km
        ]

        logger.debug(
            "deliverable origin=%s candidates=%d returned=%d",
            query.origin, len(candidates), len(shops),
        )
        return DiscoveryResult(query=query, shops=self._limit(shops, query.max_results))

    async def radius_shops(
        self,
        latitude: Any,
        longitude: Any,
        radius_km: Any = None,
        max_results: Any = None,
    ) -> DiscoveryResult:
        query = self.build_query(latitude, longitude, radius_km, self._radius_default, max_results)
        candidates = await self._index.find_near(query.origin, query.search_radius_km, query.shop_filter)

        shops = [
            CandidateShop.from_shop(shop, exact)
            for shop, exact in self._exact_distances(query.origin, candidates)
            if exact <= query.search_radius_km
        ]
        return DiscoveryResult(query=query, shops=self._limit(shops, query.max_results))

    @staticmethod
    def build_query(
        latitude: Any,
        longitude: Any,
        radius_km: Any,
        default_radius_km: Optional[float],
        max_results: Any = None,
    ) -> DiscoveryQuery:
        """Validate raw request values; raises InvalidInput before any store access."""
        origin = validate_coordinate(latitude, longitude)
        if not origin.is_set:
            raise InvalidCoordinate("Latitude and longitude are required")

        search_radius = None
        if default_radius_km is not None:
            search_radius = validate_search_radius(radius_km, default_radius_km)

        limit = None
        if max_results is not None:
            if isinstance(max_results, bool) or not isinstance(max_results, int) or max_results < 1:
                raise InvalidInput("maxResults must be a positive integer")
            limit = max_results

        return DiscoveryQuery(origin=origin, search_radius_km=search_radius, max_results=limit)

    @staticmethod
    def _exact_distances(
        origin: Coordinate, candidates: Sequence[Tuple[Shop, float]]
    ) -> List[Tuple[Shop, float]]:
        measured = [
            (shop, distance_km(origin, Coordinate(shop.latitude, shop.longitude)))
            for shop, _store_estimate in candidates
        ]
        measured.sort(key=lambda item: (item[1], item[0].id))
        return measured

    @staticmethod
    def _limit(shops: List[CandidateShop], max_results: Optional[int]) -> List[CandidateShop]:
        if max_results is None:
            return shops
        return shops[:max_results]
