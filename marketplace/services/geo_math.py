"""Coordinate validation and great-circle distance helpers."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional

from .errors import InvalidCoordinate, InvalidRadius

# Radius of earth in kilometers
EARTH_RADIUS_KM = 6371.0

LAT_MIN, LAT_MAX = -90.0, 90.0
LON_MIN, LON_MAX = -180.0, 180.0
MAX_DELIVERY_RADIUS_KM = 50.0


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 point in decimal degrees."""

    latitude: float
    longitude: float

    @property
    def is_set(self) -> bool:
        """(0, 0) is the placeholder for a location that was never saved."""
        return not (self.latitude == 0 and self.longitude == 0)

    def to_dict(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude}


def degrees_to_radians(degrees: float) -> float:
    return degrees * math.pi / 180


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """
    Calculate the great circle distance between two coordinates
    using the Haversine formula.

    Inputs are not validated here. Returns distance in kilometers.
    """
    lat1 = degrees_to_radians(a.latitude)
    lat2 = degrees_to_radians(b.latitude)
    dlat = degrees_to_radians(b.latitude - a.latitude)
    dlon = degrees_to_radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # Clamp floating point drift near antipodes
    h = min(1.0, max(0.0, h))
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

    return EARTH_RADIUS_KM * c


def _as_number(value: Any) -> Optional[float]:
    """Coerce query/body values to float; None for anything non-numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def validate_coordinate(latitude: Any, longitude: Any) -> Coordinate:
    """
    Build a Coordinate from raw inputs.

    Raises:
        InvalidCoordinate: If either value is missing, non-numeric or out of range.
    """
    lat = _as_number(latitude)
    lon = _as_number(longitude)

    if lat is None or lon is None:
        raise InvalidCoordinate("Latitude and longitude are required")
    if not (LAT_MIN <= lat <= LAT_MAX) or not (LON_MIN <= lon <= LON_MAX):
        raise InvalidCoordinate(
            "Invalid coordinates",
            detail=f"latitude must be in [{LAT_MIN}, {LAT_MAX}] and longitude in [{LON_MIN}, {LON_MAX}]",
        )

    return Coordinate(latitude=lat, longitude=lon)


def validate_delivery_radius(km: Any, max_km: float = MAX_DELIVERY_RADIUS_KM) -> float:
    """Return the radius as float, or raise InvalidRadius outside [0, max_km]."""
    radius = _as_number(km)
    if radius is None:
        raise InvalidRadius("Delivery radius is required")
    if radius < 0 or radius > max_km:
        raise InvalidRadius(f"Delivery radius must be between 0 and {max_km:g} km")
    return radius


def validate_search_radius(km: Any, default: float) -> float:
    """Search radii are uncapped; only negative or non-numeric values are rejected."""
    if km is None:
        return default
    radius = _as_number(km)
    if radius is None or radius < 0:
        raise InvalidRadius("Search radius must be a non-negative number of kilometers")
    return radius
