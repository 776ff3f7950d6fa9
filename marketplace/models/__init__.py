"""Database models for the marketplace service."""

from .base import Base, TimestampMixin
from .shop import Shop, LOCATION_INDEX_NAME
from .product import Product
from .order import Order, OrderStatus
from .system_log import SystemLog

__all__ = [
    "Base",
    "TimestampMixin",
    "Shop",
    "LOCATION_INDEX_NAME",
    "Product",
    "Order",
    "OrderStatus",
    "SystemLog",
]
