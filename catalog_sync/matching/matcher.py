"""Decides whether a discovered venue already exists in the production catalog.

Rules are evaluated in priority order; within a rule, candidates are scanned
in catalog order and the first hit wins. There is no scoring here.
"""

import logging
from typing import Callable, Optional, Sequence, Tuple

from catalog_sync.matching.address import addresses_match
from catalog_sync.matching.scorer import url_set
from catalog_sync.models import DiscoveredVenue, Venue

logger = logging.getLogger(__name__)

MatchRule = Callable[[DiscoveredVenue, Venue], bool]


def _fold(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def platform_url_rule(discovered: DiscoveredVenue, candidate: Venue) -> bool:
    return bool(url_set(discovered.delivery_platforms) & url_set(candidate.delivery_platforms))


def exact_address_rule(discovered: DiscoveredVenue, candidate: Venue) -> bool:
    return addresses_match(discovered.address, candidate.address)


def chain_locality_rule(discovered: DiscoveredVenue, candidate: Venue) -> bool:
    """Same chain in the same city and country; a missing street on either side still matches."""
    chain_id = _fold(discovered.chain_id)
    if not chain_id or chain_id != _fold(candidate.chain_id):
        return False
    if _fold(discovered.address.city) != _fold(candidate.address.city):
        return False
    if _fold(discovered.address.country) != _fold(candidate.address.country):
        return False
    street_a = _fold(discovered.address.street)
    street_b = _fold(candidate.address.street)
    return street_a == street_b or not street_a or not street_b


MATCH_RULES: Tuple[Tuple[str, MatchRule], ...] = (
    ("platform_url", platform_url_rule),
    ("exact_address", exact_address_rule),
    ("chain_locality", chain_locality_rule),
)


def match_venue(
    discovered: DiscoveredVenue,
    candidates: Sequence[Venue],
    rules: Sequence[Tuple[str, MatchRule]] = MATCH_RULES,
) -> Tuple[Optional[Venue], Optional[str]]:
    """Return ``(venue, rule_name)`` for the first matching candidate or ``(None, None)``.

    A higher-priority rule matching any candidate beats a lower-priority rule
    matching an earlier one.
    """
    for rule_name, rule in rules:
        for candidate in candidates:
            if rule(discovered, candidate):
                logger.debug("Discovered venue %s matched %s via %s", discovered.id, candidate.id, rule_name)
                return candidate, rule_name
    return None, None


def find_match(discovered: DiscoveredVenue, candidates: Sequence[Venue]) -> Optional[Venue]:
    venue, _ = match_venue(discovered, candidates)
    return venue
