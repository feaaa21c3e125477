"""
Location lookup against public geocoding services.

- Nominatim (OpenStreetMap) turns GPS coordinates into "City, Region, Country"
- ipapi.co gives an approximate location from an IP address when the
  browser could not provide coordinates

Both lookups are best effort: any failure is logged and reported as
"Location not available" instead of raising.
"""
import logging
from typing import Optional, Tuple

import requests

from . import metrics
from .config import IPAPI_URL, LOCATION_TIMEOUT_SECONDS, NOMINATIM_URL

logger = logging.getLogger(__name__)

LOCATION_NOT_AVAILABLE = "Location not available"
UNKNOWN = "Unknown"

# Nominatim's usage policy requires an identifying User-Agent
USER_AGENT = "wifi-speed-map/1.0"


def format_address(components: dict) -> str:
    """
    Format a Nominatim address block as "City, Region, Country".

    Falls back from city to town to village, and from state to county.
    """
    city = components.get("city") or components.get("town") or components.get("village") or UNKNOWN
    region = components.get("state") or components.get("county") or UNKNOWN
    country = components.get("country") or UNKNOWN
    return f"{city}, {region}, {country}"


def format_location(lat: float, lng: float) -> str:
    """
    Reverse geocode coordinates into a readable location.

    Args:
        lat: Latitude
        lng: Longitude

    Returns:
        "City, Region, Country", or "Location not available" on failure
    """
    try:
        resp = requests.get(
            NOMINATIM_URL,
            params={"format": "jsonv2", "lat": lat, "lon": lng},
            headers={"User-Agent": USER_AGENT},
            timeout=LOCATION_TIMEOUT_SECONDS,
        )
        resp.raise_for_status()
        components = resp.json()["address"]
        location = format_address(components)
    except (requests.RequestException, ValueError, KeyError, TypeError):
        logger.exception("Error formatting location for (%s, %s)", lat, lng)
        metrics.location_lookups_total.labels(provider="nominatim", status="error").inc()
        return LOCATION_NOT_AVAILABLE

    metrics.location_lookups_total.labels(provider="nominatim", status="success").inc()
    return location


def get_ip_location(ip: Optional[str] = None) -> Tuple[str, Optional[Tuple[float, float]]]:
    """
    Approximate location for an IP address.

    Args:
        ip: Address to look up; None looks up the address the request comes from

    Returns:
        Tuple of (location, coordinates) where coordinates is (lat, lng) or None
    """
    url = f"{IPAPI_URL}/{ip}/json/" if ip else f"{IPAPI_URL}/json/"
    try:
        resp = requests.get(url, headers={"User-Agent": USER_AGENT}, timeout=LOCATION_TIMEOUT_SECONDS)
        resp.raise_for_status()
        data = resp.json()
        if data.get("error"):
            raise ValueError(data.get("reason", "ipapi error"))
    except (requests.RequestException, ValueError, AttributeError):
        logger.exception("Error getting IP location for %s", ip or "self")
        metrics.location_lookups_total.labels(provider="ipapi", status="error").inc()
        return LOCATION_NOT_AVAILABLE, None

    location = f"{data.get('city')}, {data.get('region')}, {data.get('country_name')}"
    lat = data.get("latitude")
    lng = data.get("longitude")
    coordinates = (lat, lng) if lat and lng else None

    metrics.location_lookups_total.labels(provider="ipapi", status="success").inc()
    return location, coordinates
