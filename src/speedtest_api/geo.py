"""
Great-circle distance helpers for the radius filter.

The results table has no spatial index, so distance filtering happens in
memory after the rows are loaded.
"""
import math
from typing import Optional

# Mean Earth radius in kilometers
EARTH_RADIUS_KM = 6371


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Distance between two lat/lon points using the haversine formula.

    Args:
        lat1: Latitude of the first point
        lon1: Longitude of the first point
        lat2: Latitude of the second point
        lon2: Longitude of the second point

    Returns:
        Distance in kilometers
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def within_radius(
    latitude: Optional[float],
    longitude: Optional[float],
    center_lat: float,
    center_lon: float,
    radius_km: float
) -> bool:
    """
    Check whether a point lies within radius_km of the center.

    Points without coordinates are never within any radius.
    """
    if latitude is None or longitude is None:
        return False
    return haversine_distance(latitude, longitude, center_lat, center_lon) <= radius_km
