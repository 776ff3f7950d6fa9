"""Discovery, aggregation and location services."""

from .errors import (
    MarketplaceError,
    InvalidInput,
    InvalidCoordinate,
    InvalidRadius,
    NotFound,
    IndexUnavailable,
    QueryTimeout,
    PartialAggregationFailure,
)
from .geo_math import Coordinate, distance_km, validate_coordinate, validate_delivery_radius
from .spatial_index import SpatialIndexAdapter, ShopFilter, ACTIVE_APPROVED
from .discovery import DiscoveryService, DiscoveryQuery, CandidateShop
from .aggregation import AggregationService, AggregateBucket
from .location import ShopLocationService

__all__ = [
    "MarketplaceError",
    "InvalidInput",
    "InvalidCoordinate",
    "InvalidRadius",
    "NotFound",
    "IndexUnavailable",
    "QueryTimeout",
    "PartialAggregationFailure",
    "Coordinate",
    "distance_km",
    "validate_coordinate",
    "validate_delivery_radius",
    "SpatialIndexAdapter",
    "ShopFilter",
    "ACTIVE_APPROVED",
    "DiscoveryService",
    "DiscoveryQuery",
    "CandidateShop",
    "AggregationService",
    "AggregateBucket",
    "ShopLocationService",
]
