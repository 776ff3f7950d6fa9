"""FastAPI dependency providers for the service layer."""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..config import settings
from ..database import get_session_factory
from ..services.aggregation import AggregationService
from ..services.discovery import DiscoveryService
from ..services.location import ShopLocationService
from ..services.spatial_index import SpatialIndexAdapter


@lru_cache(maxsize=None)
def _spatial_index_for(session_factory: async_sessionmaker) -> SpatialIndexAdapter:
    # One adapter per factory so the index check runs once per process
    return SpatialIndexAdapter(session_factory, settings.query_timeout_seconds)


def get_discovery_service(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> DiscoveryService:
    return DiscoveryService(_spatial_index_for(session_factory))


def get_aggregation_service(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> AggregationService:
    return AggregationService(session_factory, settings.query_timeout_seconds)


def get_location_service(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> ShopLocationService:
    return ShopLocationService(session_factory, settings.query_timeout_seconds)
