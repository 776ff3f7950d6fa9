"""Shop model, including the owner-managed shop location."""

from typing import Optional

from sqlalchemy import Boolean, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..config import settings
from .base import Base, TimestampMixin

# Name of the composite index serving nearest/within-radius lookups
LOCATION_INDEX_NAME = "ix_shops_location"

DEFAULT_DELIVERY_RADIUS_KM = settings.default_delivery_radius_km


class Shop(Base, TimestampMixin):
    """A registered service point that consumers can discover by location."""

    __tablename__ = "shops"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    rating: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    total_orders: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_revenue: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    is_open: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Location: (0, 0) with location_set=False means "not set yet"
    latitude: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    delivery_radius_km: Mapped[float] = mapped_column(
        Float, default=DEFAULT_DELIVERY_RADIUS_KM, nullable=False
    )
    location_set: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index(LOCATION_INDEX_NAME, "latitude", "longitude"),
    )

    def __repr__(self) -> str:
        return f"<Shop(id={self.id}, name={self.name}, location_set={self.location_set})>"
