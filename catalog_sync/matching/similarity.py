"""String and geographic similarity helpers."""

import math

from rapidfuzz.distance import Levenshtein

from catalog_sync.models import Coordinates

EARTH_RADIUS_M = 6_371_000.0
EARTH_RADIUS_KM = 6_371.0


def name_similarity(a: str, b: str) -> float:
    """Levenshtein ratio ``1 - distance / max(len)`` over case-folded, trimmed strings."""
    left = (a or "").strip().casefold()
    right = (b or "").strip().casefold()
    longest = max(len(left), len(right))
    if longest == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(left, right) / longest


def _central_angle(a: Coordinates, b: Coordinates) -> float:
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    delta_lat = math.radians(b.lat - a.lat)
    delta_lng = math.radians(b.lng - a.lng)
    h = math.sin(delta_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(delta_lng / 2) ** 2
    # atan2 keeps this finite for identical and antipodal points alike.
    return 2 * math.atan2(math.sqrt(h), math.sqrt(max(0.0, 1 - h)))


def haversine_m(a: Coordinates, b: Coordinates) -> float:
    return EARTH_RADIUS_M * _central_angle(a, b)


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    return EARTH_RADIUS_KM * _central_angle(a, b)
