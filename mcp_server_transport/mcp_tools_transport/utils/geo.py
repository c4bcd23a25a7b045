from __future__ import annotations

import math
from typing import Iterable

from ..core.errors import EmptyInputError
from ..core.schemas import Bounds, Coordinates

EARTH_RADIUS_M = 6_371_000.0

# Accepted range for user supplied search anchors
SG_LAT_MIN, SG_LAT_MAX = 1.0, 1.5
SG_LNG_MIN, SG_LNG_MAX = 103.0, 104.5


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance (Haversine) in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lng2 - lng1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def distance_meters(a: Coordinates, b: Coordinates) -> float:
    if a == b:
        return 0.0
    return haversine_m(a.lat, a.lng, b.lat, b.lng)


def bounding_box(points: Iterable[Coordinates]) -> Bounds:
    pts = list(points)
    if not pts:
        raise EmptyInputError("bounding_box() needs at least one point")
    lats = [p.lat for p in pts]
    lngs = [p.lng for p in pts]
    return Bounds(north=max(lats), south=min(lats), east=max(lngs), west=min(lngs))


def is_within_singapore(lat: float, lng: float) -> bool:
    return SG_LAT_MIN <= lat <= SG_LAT_MAX and SG_LNG_MIN <= lng <= SG_LNG_MAX
