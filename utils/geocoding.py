"""Reverse geocoding of complaint photo coordinates through Nominatim."""
from __future__ import annotations

import logging
from typing import Dict

import requests

logger = logging.getLogger(__name__)

DEFAULT_NOMINATIM_URL = "https://nominatim.openstreetmap.org/reverse"
CITY_KEYS = ("city", "town", "village", "suburb", "county")


class GeocodingError(Exception):
    """Raised when coordinates are invalid or Nominatim cannot answer."""


def _coordinate(value, low: float, high: float, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise GeocodingError(f"Invalid {name}") from exc
    if number != number or not low <= number <= high:
        raise GeocodingError(f"Invalid {name}")
    return number


def address_fields(payload: Dict) -> Dict[str, str]:
    """Reduce a Nominatim reply to `location`, `city` and `state` strings."""
    address = payload.get("address") or {}
    city = next((address[key] for key in CITY_KEYS if address.get(key)), "")
    return {
        "location": payload.get("display_name") or "",
        "city": city,
        "state": address.get("state") or "",
    }


def reverse_geocode(
    lat,
    lng,
    *,
    url: str = DEFAULT_NOMINATIM_URL,
    user_agent: str = "civic-saathi-web/1.0",
    timeout: float = 10.0,
    session: requests.Session | None = None,
) -> Dict[str, str]:
    latitude = _coordinate(lat, -90.0, 90.0, "latitude")
    longitude = _coordinate(lng, -180.0, 180.0, "longitude")
    params = {
        "format": "json",
        "lat": latitude,
        "lon": longitude,
        "zoom": 18,
        "addressdetails": 1,
    }
    headers = {"Accept-Language": "en", "User-Agent": user_agent}
    client = session or requests
    try:
        response = client.get(url, params=params, headers=headers, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("Reverse geocoding failed", extra={"lat": latitude, "lng": longitude, "error": str(exc)})
        raise GeocodingError("Location lookup failed") from exc
    if not isinstance(payload, dict):
        raise GeocodingError("Location lookup failed")
    return address_fields(payload)
