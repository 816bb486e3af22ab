"""Catalog-wide duplicate scan and bulk deletion of confirmed duplicates."""

import logging
from collections import Counter
from typing import Any, Dict, List, Optional, Sequence

from catalog_sync.core.errors import ValidationError
from catalog_sync.core.store import CHANGE_LOGS, DISHES, VENUES, DocumentStore
from catalog_sync.etl.transform import format_timestamp, venue_from_document
from catalog_sync.matching.address import format_address, normalize_address
from catalog_sync.matching.clusterer import DUPLICATE_THRESHOLD, DuplicateGroup, find_duplicate_groups
from catalog_sync.models import VENUE_ACTIVE, Venue
from catalog_sync.services.audit import changelog_entry

logger = logging.getLogger(__name__)

MAX_DELETE_IDS = 100


def _venue_summary(venue: Venue, dish_counts: Dict[str, int]) -> Dict[str, Any]:
    return {
        "id": venue.id,
        "name": venue.name,
        "chainId": venue.chain_id,
        "address": {
            "street": venue.address.street,
            "city": venue.address.city,
            "postalCode": venue.address.postal_code,
            "country": venue.address.country,
        },
        "status": venue.status,
        "lastVerified": format_timestamp(venue.last_verified),
        "createdAt": format_timestamp(venue.created_at),
        "dishCount": dish_counts.get(venue.id, 0),
    }


def _group_summary(group: DuplicateGroup, dish_counts: Dict[str, int]) -> Dict[str, Any]:
    return {
        "addressKey": normalize_address(group.primary.address),
        "formattedAddress": format_address(group.primary.address),
        "score": group.score,
        "recommendation": group.recommendation,
        "venues": [_venue_summary(venue, dish_counts) for venue in group.venues],
    }


def scan_duplicates(
    store: DocumentStore,
    threshold: float = DUPLICATE_THRESHOLD,
    block_by_locality: bool = False,
) -> Dict[str, Any]:
    """Read-only scan; results are advisory and may miss venues created while it runs."""
    venues = [venue_from_document(doc) for doc in store.query(VENUES)]
    groups = find_duplicate_groups(venues, threshold=threshold, block_by_locality=block_by_locality)

    dish_counts: Counter = Counter(doc.get("venue_id") for doc in store.query(DISHES, {"status": VENUE_ACTIVE}))
    by_country: Counter = Counter()
    for group in groups:
        by_country[group.primary.address.country] += len(group.venues)

    return {
        "duplicateGroups": [_group_summary(group, dish_counts) for group in groups],
        "totalDuplicateGroups": len(groups),
        "totalDuplicateVenues": sum(len(group.venues) for group in groups),
        "stats": {
            "byCountry": dict(by_country),
            "totalVenuesScanned": len(venues),
        },
    }


def _delete_venue(store: DocumentStore, venue_id: str, actor: str) -> Optional[Dict[str, Any]]:
    with store.transaction() as tx:
        venue_doc = tx.get(VENUES, venue_id)
        if venue_doc is None:
            logger.info("Venue %s already deleted; skipping", venue_id)
            return None

        dishes = tx.query(DISHES, {"venue_id": venue_id})
        for dish in dishes:
            tx.delete(DISHES, dish["id"])
        tx.delete(VENUES, venue_id)
        tx.set(
            CHANGE_LOGS,
            store.new_id(),
            changelog_entry(
                action="deleted",
                collection=VENUES,
                document_id=venue_id,
                changes=[{"field": "dishes_deleted", "before": len(dishes), "after": 0}],
                actor=actor,
                reason="Duplicate venue removed",
            ),
        )
    return {"venueId": venue_id, "venueName": venue_doc.get("name"), "dishesDeleted": len(dishes)}


def delete_venues(store: DocumentStore, venue_ids: Sequence[str], actor: str = "unknown") -> Dict[str, Any]:
    """Delete venues together with all of their dishes, one transaction per venue.

    Ids that no longer exist are skipped; they may have been removed by an earlier call.
    A venue whose transaction fails is reported under ``errors`` and the batch continues.
    """
    if not venue_ids:
        raise ValidationError("venueIds must contain at least one id")
    if len(venue_ids) > MAX_DELETE_IDS:
        raise ValidationError(f"venueIds accepts at most {MAX_DELETE_IDS} ids")

    details: List[Dict[str, Any]] = []
    errors: List[Dict[str, str]] = []
    total_dishes = 0

    for venue_id in dict.fromkeys(venue_ids):
        try:
            deleted = _delete_venue(store, venue_id, actor)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to delete venue %s: %s", venue_id, exc)
            errors.append({"venueId": venue_id, "error": str(exc)})
            continue
        if deleted is None:
            continue
        total_dishes += deleted["dishesDeleted"]
        details.append(deleted)

    logger.info(
        "Deleted %d duplicate venues and %d dishes (%d failed)", len(details), total_dishes, len(errors)
    )
    message = f"Successfully deleted {len(details)} venues and {total_dishes} associated dishes"
    if errors:
        message += f"; {len(errors)} failed"
    return {
        "success": not errors,
        "message": message,
        "deletedVenues": len(details),
        "deletedDishes": total_dishes,
        "details": details,
        "errors": errors,
    }
