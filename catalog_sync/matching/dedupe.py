"""Name and link de-duplication shared by merge and promotion."""

from typing import Iterable, List, Optional, Set

from catalog_sync.models import DeliveryLink


def dish_name_key(name: Optional[str]) -> str:
    """Exact case-folded, trimmed name; near-duplicates such as trailing punctuation stay distinct."""
    return (name or "").strip().casefold()


def dish_name_set(names: Iterable[Optional[str]]) -> Set[str]:
    return {dish_name_key(name) for name in names}


def new_links(existing: Iterable[DeliveryLink], incoming: Iterable[DeliveryLink]) -> List[DeliveryLink]:
    """Links from ``incoming`` whose URL (case-insensitive) is not already present."""
    seen = {link.url.strip().lower() for link in existing}
    added: List[DeliveryLink] = []
    for link in incoming:
        key = link.url.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        added.append(DeliveryLink(platform=link.platform, url=link.url, venue_id=link.venue_id))
    return added
