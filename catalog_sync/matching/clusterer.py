"""Groups venues into connected components of above-threshold duplicate scores."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from itertools import combinations
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from catalog_sync.matching.scorer import score_venues
from catalog_sync.models import Venue

logger = logging.getLogger(__name__)

DUPLICATE_THRESHOLD = 50.0
MERGE_THRESHOLD = 70.0

MERGE = "merge"
REVIEW = "review"
KEEP_BOTH = "keep_both"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(slots=True)
class DuplicateGroup:
    venues: List[Venue]
    score: float
    recommendation: str = KEEP_BOTH

    @property
    def primary(self) -> Venue:
        """Oldest member; the default survivor of a merge."""
        return self.venues[0]

    @property
    def venue_ids(self) -> List[str]:
        return [venue.id for venue in self.venues]


@dataclass
class _Component:
    members: Set[str] = field(default_factory=set)
    best: float = 0.0


def recommend(score: float) -> str:
    if score >= MERGE_THRESHOLD:
        return MERGE
    if score >= DUPLICATE_THRESHOLD:
        return REVIEW
    return KEEP_BOTH


def locality_key(venue: Venue) -> Tuple[str, str]:
    return (
        (venue.address.country or "").strip().lower(),
        (venue.address.city or "").strip().lower(),
    )


def candidate_pairs(venues: Sequence[Venue], block_by_locality: bool = False) -> Iterable[Tuple[Venue, Venue]]:
    """All unordered pairs, or only pairs sharing a normalized (country, city) bucket."""
    if not block_by_locality:
        return combinations(venues, 2)

    buckets: Dict[Tuple[str, str], List[Venue]] = defaultdict(list)
    for venue in venues:
        buckets[locality_key(venue)].append(venue)
    return (pair for bucket in buckets.values() for pair in combinations(bucket, 2))


def _created_sort_key(venue: Venue) -> Tuple[datetime, str]:
    return (venue.created_at or _EPOCH, venue.id)


def find_duplicate_groups(
    venues: Sequence[Venue],
    threshold: float = DUPLICATE_THRESHOLD,
    block_by_locality: bool = False,
) -> List[DuplicateGroup]:
    """Partition venues into duplicate groups; every venue lands in at most one group."""
    by_id = {venue.id: venue for venue in venues}
    components: List[Optional[_Component]] = []
    membership: Dict[str, int] = {}
    compared = 0

    for a, b in candidate_pairs(list(by_id.values()), block_by_locality):
        compared += 1
        score = score_venues(a, b).total_score
        if score < threshold:
            continue

        index_a = membership.get(a.id)
        index_b = membership.get(b.id)

        if index_a is None and index_b is None:
            components.append(_Component(members={a.id, b.id}, best=score))
            membership[a.id] = membership[b.id] = len(components) - 1
        elif index_a is not None and index_b is None:
            _add(components[index_a], membership, b.id, index_a, score)
        elif index_a is None and index_b is not None:
            _add(components[index_b], membership, a.id, index_b, score)
        elif index_a != index_b:
            _union(components, membership, index_a, index_b, score)
        else:
            component = components[index_a]
            component.best = max(component.best, score)

    groups: List[DuplicateGroup] = []
    for component in components:
        if component is None or len(component.members) < 2:
            continue
        members = sorted((by_id[venue_id] for venue_id in component.members), key=_created_sort_key)
        groups.append(DuplicateGroup(venues=members, score=component.best, recommendation=recommend(component.best)))

    groups.sort(key=lambda group: (-group.score, -len(group.venues), group.primary.id))
    logger.info(
        "Duplicate scan compared %d pairs across %d venues: %d groups", compared, len(by_id), len(groups)
    )
    return groups


def _add(component: _Component, membership: Dict[str, int], venue_id: str, index: int, score: float) -> None:
    component.members.add(venue_id)
    component.best = max(component.best, score)
    membership[venue_id] = index


def _union(
    components: List[Optional[_Component]],
    membership: Dict[str, int],
    index_a: int,
    index_b: int,
    score: float,
) -> None:
    keep, drop = (index_a, index_b)
    if len(components[keep].members) < len(components[drop].members):
        keep, drop = drop, keep
    target = components[keep]
    source = components[drop]
    for venue_id in source.members:
        membership[venue_id] = keep
    target.members |= source.members
    target.best = max(target.best, source.best, score)
    components[drop] = None
