"""Collapses a duplicate venue into its primary.

The whole merge (dish moves and deletions, platform union, secondary delete
and its changelog entry) runs in one store transaction, so a failure leaves
both venues exactly as they were.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List

from catalog_sync.core.errors import InvalidStateError, NotFoundError, ValidationError
from catalog_sync.core.store import CHANGE_LOGS, DISHES, VENUES, DocumentStore
from catalog_sync.etl.transform import dish_from_document, format_timestamp, links_to_document, utcnow, venue_from_document
from catalog_sync.matching.dedupe import dish_name_key, dish_name_set, new_links
from catalog_sync.services.audit import changelog_entry

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MergeResult:
    primary_venue_id: str
    secondary_venue_id: str
    dishes_transferred: int = 0
    dishes_discarded: int = 0
    platforms_transferred: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "primaryVenueId": self.primary_venue_id,
            "secondaryVenueId": self.secondary_venue_id,
            "dishesTransferred": self.dishes_transferred,
            "dishesDiscarded": self.dishes_discarded,
            "platformsTransferred": self.platforms_transferred,
        }


def merge_venues(
    store: DocumentStore,
    primary_id: str,
    secondary_id: str,
    actor: str = "unknown",
    clock: Callable[[], datetime] = utcnow,
) -> MergeResult:
    """Move the secondary venue's unique dishes and platform links onto the primary, then delete it."""
    if not primary_id or not secondary_id:
        raise ValidationError("primaryVenueId and secondaryVenueId are required")
    if primary_id == secondary_id:
        raise InvalidStateError("Cannot merge a venue into itself")

    result = MergeResult(primary_venue_id=primary_id, secondary_venue_id=secondary_id)
    now = format_timestamp(clock())

    with store.transaction() as tx:
        primary_doc = tx.get(VENUES, primary_id)
        if primary_doc is None:
            raise NotFoundError(f"Venue {primary_id} not found")
        secondary_doc = tx.get(VENUES, secondary_id)
        if secondary_doc is None:
            raise NotFoundError(f"Venue {secondary_id} not found")

        primary = venue_from_document(primary_doc)
        secondary = venue_from_document(secondary_doc)

        # Inactive dishes are included on both sides.
        primary_dishes = [dish_from_document(doc) for doc in tx.query(DISHES, {"venue_id": primary_id})]
        secondary_dishes = [dish_from_document(doc) for doc in tx.query(DISHES, {"venue_id": secondary_id})]

        names = dish_name_set(dish.name for dish in primary_dishes)
        for dish in secondary_dishes:
            key = dish_name_key(dish.name)
            if key in names:
                tx.delete(DISHES, dish.id)
                result.dishes_discarded += 1
                continue
            tx.update(DISHES, dish.id, {"venue_id": primary_id, "updated_at": now})
            names.add(key)
            result.dishes_transferred += 1

        added = new_links(primary.delivery_platforms, secondary.delivery_platforms)
        if added:
            platforms = links_to_document(primary.delivery_platforms + added)
            tx.update(VENUES, primary_id, {"delivery_platforms": platforms, "updated_at": now})
        result.platforms_transferred = len(added)

        tx.delete(VENUES, secondary_id)

        changes: List[Dict[str, Any]] = [
            {"field": "merged_venue_id", "before": None, "after": secondary_id},
            {"field": "dishes_transferred", "before": None, "after": result.dishes_transferred},
            {"field": "dishes_discarded", "before": None, "after": result.dishes_discarded},
        ]
        if added:
            changes.append(
                {
                    "field": "delivery_platforms",
                    "before": links_to_document(primary.delivery_platforms),
                    "after": platforms,
                }
            )
        tx.set(
            CHANGE_LOGS,
            store.new_id(),
            changelog_entry(
                action="merged",
                collection=VENUES,
                document_id=primary_id,
                changes=changes,
                actor=actor,
                reason=f"Merged duplicate venue {secondary.name} ({secondary_id}) into {primary.name}",
            ),
        )

    logger.info(
        "Merged venue %s into %s: %d dishes transferred, %d discarded, %d platforms added",
        secondary_id,
        primary_id,
        result.dishes_transferred,
        result.dishes_discarded,
        result.platforms_transferred,
    )
    return result
