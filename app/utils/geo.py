# app/utils/geo.py
from __future__ import annotations

from math import atan2, cos, degrees, radians, sin, sqrt

__all__ = [
    "EARTH_RADIUS_KM",
    "haversine_km",
    "segment_distance_km",
    "bearing_deg",
    "lerp",
]

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    lat1r, lat2r = radians(lat1), radians(lat2)
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)
    a = sin(dlat / 2) ** 2 + cos(lat1r) * cos(lat2r) * sin(dlon / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def segment_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance rounded to 2 decimals, as shown to clients."""
    return round(haversine_km(lat1, lon1, lat2, lon2) * 100) / 100


def bearing_deg(lat1: float, lon1: float, lat2: float, lon2: float) -> int:
    """
    Forward azimuth from point 1 to point 2, in whole degrees clockwise from north.
    Always within [0, 360).
    """
    lat1r, lat2r = radians(lat1), radians(lat2)
    dlon = radians(lon2 - lon1)

    y = sin(dlon) * cos(lat2r)
    x = cos(lat1r) * sin(lat2r) - sin(lat1r) * cos(lat2r) * cos(dlon)

    return int((degrees(atan2(y, x)) + 360.0) % 360.0) % 360


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t
