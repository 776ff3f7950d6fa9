"""API routes for the shop owner dashboard."""

import time
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..services.aggregation import AggregationService
from ..services.response import success
from .deps import get_aggregation_service

router = APIRouter()


@router.get("/summary/{owner_id}")
async def owner_summary(
    owner_id: str,
    service: AggregationService = Depends(get_aggregation_service),
):
    """Lightweight summary for the shop belonging to `owner_id`."""
    started_at = time.perf_counter()
    data = await service.dashboard_summary(owner_id)
    return success(data, started_at=started_at)


@router.get("/system/summary")
async def system_summary(
    service: AggregationService = Depends(get_aggregation_service),
):
    """Counts across every shop, product and order, plus the latest orders."""
    started_at = time.perf_counter()
    data = await service.system_summary()
    return success(data, started_at=started_at)


@router.get("/shop/{shop_id}/summary")
async def shop_summary(
    shop_id: int,
    service: AggregationService = Depends(get_aggregation_service),
):
    started_at = time.perf_counter()
    data = await service.shop_summary(shop_id)
    return success(data, started_at=started_at)


@router.get("/products/{shop_id}")
async def shop_products(
    shop_id: int,
    page: int = Query(1, description="1-based page number"),
    limit: Optional[int] = Query(None, description="Page size"),
    is_available: Optional[bool] = Query(None, alias="isAvailable"),
    service: AggregationService = Depends(get_aggregation_service),
):
    started_at = time.perf_counter()
    items, pagination = await service.list_products(shop_id, page, limit, is_available)
    return success(items, pagination=pagination, started_at=started_at)


@router.get("/orders/{shop_id}")
async def shop_orders(
    shop_id: int,
    page: int = Query(1, description="1-based page number"),
    limit: Optional[int] = Query(None, description="Page size"),
    status: Optional[str] = Query(None, description="Filter by order status"),
    service: AggregationService = Depends(get_aggregation_service),
):
    started_at = time.perf_counter()
    items, pagination = await service.list_orders(shop_id, page, limit, status)
    return success(items, pagination=pagination, started_at=started_at)


@router.get("/recent-activity/{shop_id}")
async def recent_activity(
    shop_id: int,
    limit: int = Query(5, description="Number of orders"),
    service: AggregationService = Depends(get_aggregation_service),
):
    started_at = time.perf_counter()
    data = await service.recent_activity(shop_id, limit)
    return success(data, started_at=started_at)


@router.get("/stats/{shop_id}")
async def shop_stats(
    shop_id: int,
    days: Optional[int] = Query(None, description="Trailing window in days (default 7)"),
    service: AggregationService = Depends(get_aggregation_service),
):
    """Daily completed-order revenue and the product category histogram."""
    started_at = time.perf_counter()
    data = await service.daily_stats(shop_id, days)
    return success(data, started_at=started_at)
