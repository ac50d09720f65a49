import math
from typing import Optional, Protocol

# Earth radius in kilometers
EARTH_RADIUS_KM = 6371


class Coordinate(Protocol):
    latitude: float
    longitude: float


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometers between two points given in decimal
    degrees, rounded to one decimal place.
    """
    lat1_rad, lon1_rad, lat2_rad, lon2_rad = map(math.radians, [lat1, lon1, lat2, lon2])

    dlon = lon2_rad - lon1_rad
    dlat = lat2_rad - lat1_rad
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return round(EARTH_RADIUS_KM * c, 1)


def distance_between(origin: Optional[Coordinate], other: Optional[Coordinate]) -> Optional[float]:
    """Distance between two locations, or None when either one is unknown."""
    if origin is None or other is None:
        return None
    return haversine_distance(origin.latitude, origin.longitude, other.latitude, other.longitude)
