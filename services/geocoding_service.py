# backend/services/geocoding_service.py
import logging
import re

import requests

logger = logging.getLogger(__name__)

NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"


def simplify_location(location_name):
    """
    Trim an event location down to something Nominatim resolves reliably.

    Admins type locations such as "חניון הכניסה, פארק הירקון, תל אביב (ליד השער)".
    Parenthesised notes are dropped and only the last three comma-separated
    parts are kept, which is usually "place, city".
    """
    if not location_name:
        return ""
    cleaned = re.sub(r"\([^)]*\)", "", location_name)
    parts = [p.strip() for p in cleaned.split(",") if p.strip()]
    return ", ".join(parts[-3:])


def geocode_address(location_name, url=NOMINATIM_URL, country="il", timeout=3):
    """
    Geocode an event location with Nominatim (OpenStreetMap).

    Returns (latitude, longitude) if found, or (None, None) if not found.
    """
    query = simplify_location(location_name)
    if not query:
        return None, None

    params = {
        "q": query,
        "format": "json",
        "limit": 1,
        "countrycodes": country,
    }
    headers = {"User-Agent": "BishvilamApp/1.0"}

    try:
        response = requests.get(url, params=params, headers=headers, timeout=timeout)
        response.raise_for_status()
        data = response.json()

        if data:
            result = data[0]
            lat = float(result.get("lat"))
            lon = float(result.get("lon"))

            if -90 <= lat <= 90 and -180 <= lon <= 180:
                logger.info("Geocoded %r to %s,%s", query, lat, lon)
                return lat, lon

        logger.info("No coordinates found for %r", query)
        return None, None

    except (requests.RequestException, ValueError, KeyError, TypeError) as e:
        logger.warning("Geocoding failed for %r: %s", query, e)
        return None, None
