from __future__ import annotations

import math
from typing import Sequence, Tuple

EARTH_RADIUS_KM = 6371.0
FEET_PER_KM = 3280.84


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres."""
    return EARTH_RADIUS_KM * angular_distance(
        math.radians(lat1), math.radians(lon1), math.radians(lat2), math.radians(lon2)
    )


def angular_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat / 2.0) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2.0) ** 2
    return 2.0 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def is_point_in_polygon(lon: float, lat: float, ring: Sequence[Tuple[float, float]]) -> bool:
    """
    Ray casting algorithm for point in polygon.
    lon, lat: the query point
    ring: List of (lon, lat), GeoJSON order. Closing vertex optional.
    """
    inside = False
    n = len(ring)
    j = n - 1
    for i in range(n):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        # (yi > lat) != (yj > lat) guarantees yi != yj before dividing
        if (yi > lat) != (yj > lat) and lon < (xj - xi) * (lat - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def flight_level(altitude_km: float) -> int:
    """Pressure-altitude style flight level (hundreds of feet), floored at 0."""
    return max(0, round(altitude_km * FEET_PER_KM / 100.0))
