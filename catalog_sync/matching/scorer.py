"""Weighted multi-factor duplicate score between two production venues."""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Set

from catalog_sync.matching.address import addresses_match
from catalog_sync.matching.similarity import haversine_m, name_similarity
from catalog_sync.models import DeliveryLink, Venue

ADDRESS_WEIGHT = 40.0
PROXIMITY_WEIGHT = 30.0
PLATFORM_URL_WEIGHT = 25.0
NAME_WEIGHT = 5.0

NEAR_DISTANCE_M = 100.0
CLOSE_DISTANCE_M = 500.0
STRONG_NAME_SIMILARITY = 0.8
WEAK_NAME_SIMILARITY = 0.6

UNKNOWN_DISTANCE = -1.0


@dataclass(slots=True)
class DuplicateScore:
    address_match: bool
    coordinate_proximity_m: float
    platform_url_match: bool
    name_similarity: float
    total_score: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def url_set(links: Iterable[DeliveryLink]) -> Set[str]:
    """Case-insensitive URL keys, ignoring the platform name."""
    return {link.url.strip().lower() for link in links if link.url and link.url.strip()}


def proximity_points(distance_m: float) -> float:
    if distance_m < 0:
        return 0.0
    if distance_m < NEAR_DISTANCE_M:
        return PROXIMITY_WEIGHT
    if distance_m < CLOSE_DISTANCE_M:
        return PROXIMITY_WEIGHT / 2
    return 0.0


def name_points(similarity: float) -> float:
    if similarity > STRONG_NAME_SIMILARITY:
        return NAME_WEIGHT
    if similarity > WEAK_NAME_SIMILARITY:
        return NAME_WEIGHT / 2
    return 0.0


def score_venues(a: Venue, b: Venue) -> DuplicateScore:
    """Score how likely ``a`` and ``b`` are the same real-world place, 0-100."""
    address_match = addresses_match(a.address, b.address)

    distance = UNKNOWN_DISTANCE
    if a.coordinates is not None and b.coordinates is not None:
        distance = haversine_m(a.coordinates, b.coordinates)

    platform_url_match = bool(url_set(a.delivery_platforms) & url_set(b.delivery_platforms))
    similarity = name_similarity(a.name, b.name)

    total = 0.0
    if address_match:
        total += ADDRESS_WEIGHT
    total += proximity_points(distance)
    if platform_url_match:
        total += PLATFORM_URL_WEIGHT
    total += name_points(similarity)

    return DuplicateScore(
        address_match=address_match,
        coordinate_proximity_m=distance,
        platform_url_match=platform_url_match,
        name_similarity=similarity,
        total_score=total,
    )
