"""API routes for shop locations and location-based discovery."""

import time
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from ..services.discovery import DiscoveryResult, DiscoveryService
from ..services.location import ShopLocationService
from ..services.response import success
from .deps import get_discovery_service, get_location_service

router = APIRouter()


class SaveLocationRequest(BaseModel):
    """Payload sent by a shop owner to pin the shop on the map."""

    model_config = ConfigDict(populate_by_name=True)

    shop_id: Optional[int] = Field(default=None, alias="shopId")
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    delivery_radius: Optional[float] = Field(default=None, alias="deliveryRadius")


class NearbyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    max_distance: Optional[float] = Field(default=None, alias="maxDistance", description="Search radius in km")
    limit: Optional[int] = Field(default=None, description="Maximum number of shops")


class DeliverableRequest(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    limit: Optional[int] = None


def _discovery_payload(result: DiscoveryResult, started_at: float, with_radius: bool = True) -> dict:
    return success(
        [shop.to_dict() for shop in result.shops],
        count=result.count,
        search_radius=result.query.search_radius_km if with_radius else None,
        started_at=started_at,
    )


@router.post("/shop/location")
async def save_shop_location(
    payload: SaveLocationRequest,
    service: ShopLocationService = Depends(get_location_service),
):
    """Save (or overwrite) a shop's coordinate and delivery radius."""
    data = await service.save_location(
        payload.shop_id,
        payload.latitude,
        payload.longitude,
        payload.delivery_radius,
    )
    response = success(data)
    response["message"] = "Location saved successfully"
    return response


@router.get("/shop/{shop_id}/status")
async def shop_location_status(
    shop_id: int,
    service: ShopLocationService = Depends(get_location_service),
):
    """Report whether the shop has saved a location yet."""
    return success(await service.location_status(shop_id))


@router.post("/shops/nearby")
async def nearby_shops(
    payload: NearbyRequest,
    service: DiscoveryService = Depends(get_discovery_service),
):
    """
    Shops within the search radius (default 10 km), nearest first.

    Each shop carries `withinDeliveryRadius`; it does not filter the list.
    """
    started_at = time.perf_counter()
    result = await service.nearby_shops(
        payload.latitude,
        payload.longitude,
        payload.max_distance,
        payload.limit,
    )
    return _discovery_payload(result, started_at)


@router.post("/shops/deliverable")
async def deliverable_shops(
    payload: DeliverableRequest,
    service: DiscoveryService = Depends(get_discovery_service),
):
    """Shops whose own delivery radius covers the given location."""
    started_at = time.perf_counter()
    result = await service.deliverable_shops(payload.latitude, payload.longitude, payload.limit)
    return _discovery_payload(result, started_at, with_radius=False)


@router.get("/shops/radius")
async def shops_within_radius(
    latitude: Optional[float] = Query(None, description="Origin latitude"),
    longitude: Optional[float] = Query(None, description="Origin longitude"),
    radius: Optional[float] = Query(None, description="Search radius in km (default 5)"),
    limit: Optional[int] = Query(None, description="Maximum number of shops"),
    service: DiscoveryService = Depends(get_discovery_service),
):
    """Every active, approved shop within `radius` km, nearest first."""
    started_at = time.perf_counter()
    result = await service.radius_shops(latitude, longitude, radius, limit)
    return _discovery_payload(result, started_at)
