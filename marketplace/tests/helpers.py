"""Geometry helpers for building shops at known distances."""

import math

from marketplace.services.geo_math import EARTH_RADIUS_KM, Coordinate

KM_PER_DEGREE = EARTH_RADIUS_KM * math.pi / 180

BANGALORE = Coordinate(12.9716, 77.5946)


def north_of(origin: Coordinate, km: float) -> Coordinate:
    """Point `km` kilometres due north (negative: south) along the meridian."""
    return Coordinate(origin.latitude + km / KM_PER_DEGREE, origin.longitude)
