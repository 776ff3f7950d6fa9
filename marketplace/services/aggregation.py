"""Dashboard aggregates computed from concurrent store queries."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..config import settings
from ..models.base import utcnow
from ..models.order import Order, OrderStatus
from ..models.product import Product
from ..models.shop import Shop
from .errors import InvalidInput, NotFound, PartialAggregationFailure, QueryTimeout
from .response import Pagination

logger = logging.getLogger(__name__)

FacetQuery = Callable[[], Awaitable[Any]]

UNCATEGORIZED = "Uncategorized"
MAX_WINDOW_DAYS = 365


@dataclass(frozen=True)
class AggregateBucket:
    """One grouped row: a date or category key with its count and optional sum."""

    key: str
    count: int
    sum: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"key": self.key, "count": self.count}
        if self.sum is not None:
            payload["sum"] = round(self.sum, 2)
        return payload


@dataclass(frozen=True)
class FacetResult:
    """Outcome of one facet: either a value or the error that ended it."""

    name: str
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def serialize_product(product: Product) -> Dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "price": product.price,
        "category": product.category,
        "isAvailable": product.is_available,
        "stock": product.stock,
        "createdAt": product.created_at.isoformat() if product.created_at else None,
    }


def serialize_order(order: Order) -> Dict[str, Any]:
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "status": order.status,
        "totalAmount": order.total_amount,
        "customerName": order.customer_name,
        "pickupPin": order.pickup_pin,
        "createdAt": order.created_at.isoformat() if order.created_at else None,
    }


def start_of_day(moment: datetime) -> datetime:
    """UTC midnight of the day containing `moment`."""
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


class AggregationService:
    """
    Builds dashboard payloads by fanning out independent count/sum queries.

    Every facet runs in its own session under the store deadline; all facets
    are awaited together and merged only once each has finished. If any facet
    fails, the whole call raises PartialAggregationFailure naming it.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        timeout_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._timeout = (
            timeout_seconds if timeout_seconds is not None else settings.query_timeout_seconds
        )
        self._clock = clock

    # -- public operations -------------------------------------------------

    async def shop_summary(self, shop_id: int) -> Dict[str, Any]:
        """Product counts, order counts by status and today's totals for one shop."""
        today = start_of_day(self._clock())
        results = await self.gather_facets({
            "shop": lambda: self._shop_header(Shop.id == shop_id),
            "totalProducts": lambda: self._count(Product, Product.shop_id == shop_id),
            "availableProducts": lambda: self._count(
                Product, Product.shop_id == shop_id, Product.is_available.is_(True)
            ),
            "totalOrders": lambda: self._count(Order, Order.shop_id == shop_id),
            "pendingOrders": lambda: self._count(
                Order, Order.shop_id == shop_id, Order.status == OrderStatus.PENDING
            ),
            "acceptedOrders": lambda: self._count(
                Order, Order.shop_id == shop_id, Order.status == OrderStatus.ACCEPTED
            ),
            "completedOrders": lambda: self._count(
                Order, Order.shop_id == shop_id, Order.status == OrderStatus.COMPLETED
            ),
            "todayRevenue": lambda: self._sum_revenue(
                Order.shop_id == shop_id,
                Order.status == OrderStatus.COMPLETED,
                Order.created_at >= today,
            ),
            "todayOrders": lambda: self._count(
                Order, Order.shop_id == shop_id, Order.created_at >= today
            ),
        })

        if results["shop"] is None:
            raise NotFound("Shop not found")
        return self._merge_summary(results)

    async def dashboard_summary(self, owner_id: str) -> Dict[str, Any]:
        """Summary for the shop owned by `owner_id`, including lifetime revenue."""
        if not owner_id or not str(owner_id).strip():
            raise InvalidInput("ownerId is required")

        header = await self._with_deadline("shop", self._shop_header(Shop.owner_id == str(owner_id)))
        if header is None:
            raise NotFound("Shop not found for this owner")

        summary = await self.shop_summary(header["id"])
        summary["revenue"] = {
            "total": header["totalRevenue"] or 0,
            "today": summary["todayRevenue"],
        }
        summary["today"] = {
            "orders": summary["todayOrderCount"],
            "revenue": summary["todayRevenue"],
        }
        return summary

    async def system_summary(self, recent_limit: int = 10) -> Dict[str, Any]:
        """Marketplace-wide counts plus the most recent orders across all shops."""
        _, recent_limit = self._validate_page(1, recent_limit)
        today = start_of_day(self._clock())
        recent = (
            select(Order)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(recent_limit)
        )
        results = await self.gather_facets({
            "totalShops": lambda: self._count(Shop),
            "activeShops": lambda: self._count(Shop, Shop.is_active.is_(True)),
            "approvedShops": lambda: self._count(Shop, Shop.is_approved.is_(True)),
            "totalProducts": lambda: self._count(Product),
            "totalOrders": lambda: self._count(Order),
            "pendingOrders": lambda: self._count(Order, Order.status == OrderStatus.PENDING),
            "acceptedOrders": lambda: self._count(Order, Order.status == OrderStatus.ACCEPTED),
            "completedOrders": lambda: self._count(Order, Order.status == OrderStatus.COMPLETED),
            "todayRevenue": lambda: self._sum_revenue(
                Order.status == OrderStatus.COMPLETED, Order.created_at >= today
            ),
            "todayOrders": lambda: self._count(Order, Order.created_at >= today),
            "recentOrders": lambda: self._rows(recent, serialize_order),
        })
        return {
            "shopCounts": {
                "total": results["totalShops"],
                "active": results["activeShops"],
                "approved": results["approvedShops"],
            },
            "productCount": results["totalProducts"],
            "orderCountsByStatus": {
                "total": results["totalOrders"],
                "pending": results["pendingOrders"],
                "accepted": results["acceptedOrders"],
                "completed": results["completedOrders"],
            },
            "todayRevenue": results["todayRevenue"],
            "todayOrderCount": results["todayOrders"],
            "recentOrders": results["recentOrders"],
        }

    async def daily_stats(self, shop_id: int, window_days: Any = None) -> Dict[str, List[Dict[str, Any]]]:
        """Completed-order buckets per UTC day plus a product category histogram."""
        days = self._validate_window(window_days)
        since = self._clock() - timedelta(days=days)

        results = await self.gather_facets({
            "daily": lambda: self._daily_buckets(shop_id, since),
            "categories": lambda: self._category_buckets(shop_id),
        })
        return {
            "daily": [bucket.to_dict() for bucket in results["daily"]],
            "categories": [bucket.to_dict() for bucket in results["categories"]],
        }

    async def list_products(
        self,
        shop_id: int,
        page: int = 1,
        limit: Optional[int] = None,
        is_available: Optional[bool] = None,
    ) -> Tuple[List[Dict[str, Any]], Pagination]:
        page, limit = self._validate_page(page, limit)
        criteria = [Product.shop_id == shop_id]
        if is_available is not None:
            criteria.append(Product.is_available.is_(is_available))

        stmt = (
            select(Product)
            .where(*criteria)
            .order_by(Product.created_at.desc(), Product.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        results = await self.gather_facets({
            "items": lambda: self._rows(stmt, serialize_product),
            "total": lambda: self._count(Product, *criteria),
        })
        items = results["items"]
        return items, Pagination(page=page, limit=limit, total=results["total"], returned=len(items))

    async def list_orders(
        self,
        shop_id: int,
        page: int = 1,
        limit: Optional[int] = None,
        status: Optional[str] = None,
    ) -> Tuple[List[Dict[str, Any]], Pagination]:
        page, limit = self._validate_page(page, limit)
        criteria = [Order.shop_id == shop_id]
        if status:
            criteria.append(Order.status == status)

        stmt = (
            select(Order)
            .where(*criteria)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        results = await self.gather_facets({
            "items": lambda: self._rows(stmt, serialize_order),
            "total": lambda: self._count(Order, *criteria),
        })
        items = results["items"]
        return items, Pagination(page=page, limit=limit, total=results["total"], returned=len(items))

    async def recent_activity(self, shop_id: int, limit: int = 5) -> List[Dict[str, Any]]:
        _, limit = self._validate_page(1, limit)
        stmt = (
            select(Order)
            .where(Order.shop_id == shop_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit)
        )
        return await self._with_deadline("recentActivity", self._rows(stmt, serialize_order))

    # -- fan-out / merge ---------------------------------------------------

    async def gather_facets(self, facets: Dict[str, FacetQuery]) -> Dict[str, Any]:
        """Run every facet concurrently and merge once all have completed."""
        outcomes: List[FacetResult] = await asyncio.gather(
            *(self._run_facet(name, query) for name, query in facets.items())
        )

        failed = [outcome for outcome in outcomes if not outcome.ok]
        if failed:
            logger.warning(
                "Aggregation failed for facets %s",
                ", ".join(outcome.name for outcome in failed),
            )
            raise PartialAggregationFailure(
                [outcome.name for outcome in failed],
                [outcome.error for outcome in failed],
            )
        return {outcome.name: outcome.value for outcome in outcomes}

    async def _run_facet(self, name: str, query: FacetQuery) -> FacetResult:
        try:
            value = await self._with_deadline(name, query())
        except Exception as exc:
            return FacetResult(name=name, error=exc)
        return FacetResult(name=name, value=value)

    async def _with_deadline(self, name: str, awaitable: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise QueryTimeout(f"{name} query timed out", detail=f"no response within {self._timeout:g}s") from exc

    # -- individual store queries -----------------------------------------

    async def _count(self, model, *criteria) -> int:
        stmt = select(func.count()).select_from(model).where(*criteria)
        async with self._session_factory() as session:
            return int((await session.execute(stmt)).scalar_one())

    async def _sum_revenue(self, *criteria) -> float:
        stmt = select(func.coalesce(func.sum(Order.total_amount), 0.0)).where(*criteria)
        async with self._session_factory() as session:
            return float((await session.execute(stmt)).scalar_one())

    async def _rows(self, stmt, serializer: Callable[[Any], Dict[str, Any]]) -> List[Dict[str, Any]]:
        async with self._session_factory() as session:
            return [serializer(row) for row in (await session.execute(stmt)).scalars().all()]

    async def _shop_header(self, criterion) -> Optional[Dict[str, Any]]:
        stmt = select(Shop).where(criterion).order_by(Shop.id).limit(1)
        async with self._session_factory() as session:
            shop = (await session.execute(stmt)).scalar_one_or_none()
            if shop is None:
                return None
            return {
                "id": shop.id,
                "name": shop.name,
                "isOpen": shop.is_open,
                "isActive": shop.is_active,
                "totalRevenue": shop.total_revenue,
            }

    async def _daily_buckets(self, shop_id: int, since: datetime) -> List[AggregateBucket]:
        day = func.date(Order.created_at).label("day")
        stmt = (
            select(day, func.count(Order.id), func.coalesce(func.sum(Order.total_amount), 0.0))
            .where(
                Order.shop_id == shop_id,
                Order.status == OrderStatus.COMPLETED,
                Order.created_at >= since,
            )
            .group_by(day)
            .order_by(day)
        )
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).all()
        return [
            AggregateBucket(key=str(key), count=int(count), sum=float(total))
            for key, count, total in rows
        ]

    async def _category_buckets(self, shop_id: int) -> List[AggregateBucket]:
        stmt = (
            select(Product.category, func.count(Product.id))
            .where(Product.shop_id == shop_id)
            .group_by(Product.category)
            .order_by(Product.category)
        )
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).all()
        return [
            AggregateBucket(key=category or UNCATEGORIZED, count=int(count))
            for category, count in rows
        ]

    # -- helpers -----------------------------------------------------------

    @staticmethod
    def _merge_summary(results: Dict[str, Any]) -> Dict[str, Any]:
        total_products = results["totalProducts"]
        available_products = results["availableProducts"]
        return {
            "shop": {key: value for key, value in results["shop"].items() if key != "totalRevenue"},
            "productCounts": {
                "total": total_products,
                "available": available_products,
                "unavailable": total_products - available_products,
            },
            "orderCountsByStatus": {
                "total": results["totalOrders"],
                "pending": results["pendingOrders"],
                "accepted": results["acceptedOrders"],
                "completed": results["completedOrders"],
            },
            "todayRevenue": results["todayRevenue"],
            "todayOrderCount": results["todayOrders"],
        }

    @staticmethod
    def _validate_window(window_days: Any) -> int:
        if window_days is None:
            return settings.dashboard_default_window_days
        if isinstance(window_days, bool) or not isinstance(window_days, int):
            raise InvalidInput("days must be an integer")
        if not 1 <= window_days <= MAX_WINDOW_DAYS:
            raise InvalidInput(f"days must be between 1 and {MAX_WINDOW_DAYS}")
        return window_days

    @staticmethod
    def _validate_page(page: Any, limit: Any) -> Tuple[int, int]:
        if limit is None:
            limit = settings.dashboard_default_page_size
        for name, value in (("page", page), ("limit", limit)):
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise InvalidInput(f"{name} must be a positive integer")
        if limit > settings.dashboard_max_page_size:
            raise InvalidInput(f"limit must not exceed {settings.dashboard_max_page_size}")
        return page, limit
