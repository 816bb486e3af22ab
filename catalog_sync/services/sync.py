"""Promotion of verified discovered venues and dishes into the production catalog.

A call processes one bounded batch serially: all eligible venues first, then
standalone dishes, so a dish whose parent venue is promoted earlier in the
same batch can be promoted too. Each entity gets its own transaction; a
failing item is recorded in the report and never rolls back another item.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from catalog_sync.core.config import Settings, get_settings
from catalog_sync.core.errors import InvalidStateError, NotFoundError, ValidationError
from catalog_sync.core.store import (
    DISCOVERED_DISHES,
    DISCOVERED_VENUES,
    DISHES,
    VENUES,
    DocumentStore,
    Transaction,
)
from catalog_sync.etl.transform import (
    discovered_dish_from_document,
    discovered_venue_from_document,
    dish_from_discovered,
    dish_from_embedded,
    dish_to_document,
    format_timestamp,
    links_to_document,
    new_venue_from_discovered,
    utcnow,
    venue_from_document,
    venue_to_document,
)
from catalog_sync.matching.address import validate_address
from catalog_sync.matching.dedupe import dish_name_key, dish_name_set, new_links
from catalog_sync.matching.matcher import match_venue
from catalog_sync.models import PROMOTED, VERIFIED, DiscoveredDish, DiscoveredVenue, Venue
from catalog_sync.services import audit
from catalog_sync.services.audit import SyncError

logger = logging.getLogger(__name__)

VENUE = "venue"
DISH = "dish"

DEADLINE_EXCEEDED = "deadline exceeded"
CANCELLED = "cancelled"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class SyncSelection:
    venue_ids: List[str] = field(default_factory=list)
    dish_ids: List[str] = field(default_factory=list)
    sync_all: bool = False
    skip_address_validation: bool = False


@dataclass
class SyncReport:
    requested_venues: int = 0
    requested_dishes: int = 0
    venues_added: int = 0
    venues_updated: int = 0
    dishes_added: int = 0
    dishes_updated: int = 0
    synced_venue_ids: List[str] = field(default_factory=list)
    synced_dish_ids: List[str] = field(default_factory=list)
    skipped_for_validation: List[str] = field(default_factory=list)
    errors: List[SyncError] = field(default_factory=list)
    remaining: Dict[str, int] = field(default_factory=lambda: {"venues": 0, "dishes": 0})
    aborted: Optional[str] = None
    history_id: Optional[str] = None

    @property
    def failed_venues(self) -> int:
        return self.requested_venues - len(self.synced_venue_ids)

    @property
    def failed_dishes(self) -> int:
        return self.requested_dishes - len(self.synced_dish_ids)

    def history_stats(self) -> Dict[str, int]:
        return {
            "venuesAdded": self.venues_added,
            "venuesUpdated": self.venues_updated,
            "dishesAdded": self.dishes_added,
            "dishesUpdated": self.dishes_updated,
            "errors": len(self.errors),
        }

    @property
    def message(self) -> str:
        if not self.requested_venues and not self.requested_dishes:
            return "No entities to sync"
        return (
            f"Synced {self.venues_added + self.venues_updated} venues "
            f"({self.venues_added} added, {self.venues_updated} updated) and "
            f"{self.dishes_added + self.dishes_updated} dishes"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "message": self.message,
            "synced": {
                "venues": len(self.synced_venue_ids),
                "dishes": len(self.synced_dish_ids),
            },
            "stats": {
                "requested": {"venues": self.requested_venues, "dishes": self.requested_dishes},
                "successful": {
                    "venues": len(self.synced_venue_ids),
                    "venuesAdded": self.venues_added,
                    "venuesUpdated": self.venues_updated,
                    "dishes": len(self.synced_dish_ids),
                    "dishesAdded": self.dishes_added,
                    "dishesUpdated": self.dishes_updated,
                },
                "failed": {"venues": self.failed_venues, "dishes": self.failed_dishes},
                "skippedForValidation": len(self.skipped_for_validation),
            },
            "syncedIds": {"venues": list(self.synced_venue_ids), "dishes": list(self.synced_dish_ids)},
            "skippedForValidation": list(self.skipped_for_validation),
            "errors": [error.to_dict() for error in self.errors],
            "remaining": dict(self.remaining),
            "aborted": self.aborted,
            "historyId": self.history_id,
        }


class Deadline:
    """Wall-clock budget plus an optional cancellation event, checked between items."""

    def __init__(
        self,
        seconds: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._expires_at = clock() + seconds if seconds else None
        self._cancel_event = cancel_event

    def reason(self) -> Optional[str]:
        if self._cancel_event is not None and self._cancel_event.is_set():
            return CANCELLED
        if self._expires_at is not None and self._clock() >= self._expires_at:
            return DEADLINE_EXCEEDED
        return None


@dataclass
class _VenueOutcome:
    venue: Venue
    created: bool
    dishes_added: int


def _oldest_first(entity: Any) -> Tuple[datetime, str]:
    return (entity.created_at or _EPOCH, entity.id)


class SyncOrchestrator:
    """Drives one promotion batch against a document store."""

    def __init__(
        self,
        store: DocumentStore,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._settings = settings or get_settings()
        self._clock = clock

    # ---------- Candidate resolution ----------

    def resolve(self, selection: SyncSelection, report: SyncReport) -> Tuple[List[DiscoveredVenue], List[DiscoveredDish]]:
        """Eligible venues and dishes for ``selection``; already promoted ids are silently excluded."""
        limit = self._settings.sync_max_items
        if selection.sync_all:
            venues = sorted(
                (
                    discovered_venue_from_document(doc)
                    for doc in self._store.query(DISCOVERED_VENUES, {"status": VERIFIED})
                ),
                key=_oldest_first,
            )
            dishes = sorted(
                (
                    discovered_dish_from_document(doc)
                    for doc in self._store.query(DISCOVERED_DISHES, {"status": VERIFIED})
                ),
                key=_oldest_first,
            )
            venues = [venue for venue in venues if venue.eligible]
            dishes = [dish for dish in dishes if dish.eligible]
            report.remaining = {
                "venues": max(0, len(venues) - limit),
                "dishes": max(0, len(dishes) - limit),
            }
            return venues[:limit], dishes[:limit]

        for name, ids in (("venueIds", selection.venue_ids), ("dishIds", selection.dish_ids)):
            if len(ids) > limit:
                raise ValidationError(f"{name} accepts at most {limit} ids")

        venues = self._fetch(DISCOVERED_VENUES, selection.venue_ids, VENUE, discovered_venue_from_document, report)
        dishes = self._fetch(DISCOVERED_DISHES, selection.dish_ids, DISH, discovered_dish_from_document, report)
        return venues, dishes

    def _fetch(self, collection: str, ids: Sequence[str], entity_type: str, convert, report: SyncReport) -> List[Any]:
        entities = []
        for entity_id in dict.fromkeys(ids):
            doc = self._store.get(collection, entity_id)
            if doc is None:
                report.errors.append(SyncError(entity_id, entity_type, f"Discovered {entity_type} {entity_id} not found"))
                continue
            entity = convert(doc)
            if not entity.eligible:
                logger.info("Discovered %s %s is not eligible (status=%s); excluded", entity_type, entity_id, entity.status)
                continue
            entities.append(entity)
        return entities

    # ---------- Batch ----------

    def execute(
        self,
        selection: SyncSelection,
        actor: str = "unknown",
        *,
        time_budget: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> SyncReport:
        report = SyncReport()
        venues, dishes = self.resolve(selection, report)
        report.requested_venues = len(venues)
        report.requested_dishes = len(dishes)
        logger.info("Sync requested by %s: %d venues, %d dishes", actor, len(venues), len(dishes))

        if not venues and not dishes:
            return report

        budget = self._settings.sync_time_budget_seconds if time_budget is None else time_budget
        deadline = Deadline(budget, cancel_event)
        catalog = [venue_from_document(doc) for doc in self._store.query(VENUES)]

        for discovered in venues:
            reason = report.aborted or deadline.reason()
            if reason:
                report.aborted = reason
                report.errors.append(SyncError(discovered.id, VENUE, reason))
                continue
            self._sync_venue(discovered, catalog, selection.skip_address_validation, report)

        for discovered in dishes:
            reason = report.aborted or deadline.reason()
            if reason:
                report.aborted = reason
                report.errors.append(SyncError(discovered.id, DISH, reason))
                continue
            self._sync_dish(discovered, report)

        if report.aborted:
            logger.warning("Sync batch stopped early: %s", report.aborted)

        self._record(report, actor)
        logger.info("Sync finished: %s (%d errors)", report.message, len(report.errors))
        return report

    # ---------- Venues ----------

    def _sync_venue(
        self,
        discovered: DiscoveredVenue,
        catalog: List[Venue],
        skip_validation: bool,
        report: SyncReport,
    ) -> None:
        if not skip_validation:
            validation = validate_address(discovered.address)
            if not validation.valid:
                message = "Address validation failed: " + "; ".join(validation.errors)
                logger.warning("Skipping discovered venue %s: %s", discovered.id, message)
                report.skipped_for_validation.append(discovered.id)
                report.errors.append(SyncError(discovered.id, VENUE, message))
                return

        match, rule = match_venue(discovered, catalog)
        if match is not None:
            logger.debug("Discovered venue %s will update %s (%s)", discovered.id, match.id, rule)

        try:
            with self._store.transaction() as tx:
                outcome = self._write_venue(tx, discovered, match)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to sync venue %s (%s): %s", discovered.id, discovered.name, exc)
            report.errors.append(SyncError(discovered.id, VENUE, str(exc)))
            return

        report.synced_venue_ids.append(discovered.id)
        report.dishes_added += outcome.dishes_added
        if outcome.created:
            report.venues_added += 1
            catalog.append(outcome.venue)
        else:
            report.venues_updated += 1
            catalog[:] = [outcome.venue if venue.id == outcome.venue.id else venue for venue in catalog]

    def _write_venue(self, tx: Transaction, discovered: DiscoveredVenue, match: Optional[Venue]) -> _VenueOutcome:
        now = self._clock()
        stamp = format_timestamp(now)

        current = tx.get(DISCOVERED_VENUES, discovered.id)
        if current is None:
            raise NotFoundError(f"Discovered venue {discovered.id} no longer exists")
        if not discovered_venue_from_document(current).eligible:
            raise InvalidStateError(f"Discovered venue {discovered.id} was already promoted")

        if match is not None:
            venue_doc = tx.get(VENUES, match.id)
            if venue_doc is None:
                raise NotFoundError(f"Venue {match.id} no longer exists")
            venue = venue_from_document(venue_doc)
            venue.delivery_platforms.extend(new_links(venue.delivery_platforms, discovered.delivery_platforms))
            venue.last_verified = venue.updated_at = now
            tx.update(
                VENUES,
                venue.id,
                {
                    "delivery_platforms": links_to_document(venue.delivery_platforms),
                    "last_verified": stamp,
                    "updated_at": stamp,
                },
            )
            names = dish_name_set(doc.get("name") for doc in tx.query(DISHES, {"venue_id": venue.id}))
            created = False
        else:
            venue = new_venue_from_discovered(discovered, self._store.new_id(), self._settings.discovery_partner_id, now)
            tx.set(VENUES, venue.id, venue_to_document(venue))
            names = set()
            created = True

        dishes_added = 0
        for embedded in discovered.dishes:
            key = dish_name_key(embedded.name)
            if key in names:
                logger.debug("Dish %r already on venue %s; not promoted", embedded.name, venue.id)
                continue
            dish = dish_from_embedded(
                embedded,
                dish_id=self._store.new_id(),
                venue_id=venue.id,
                partner_id=self._settings.discovery_partner_id,
                default_currency=self._settings.default_currency,
                now=now,
            )
            tx.set(DISHES, dish.id, dish_to_document(dish))
            names.add(key)
            dishes_added += 1

        tx.update(
            DISCOVERED_VENUES,
            discovered.id,
            {
                "status": PROMOTED,
                "production_venue_id": venue.id,
                "promoted_at": stamp,
                "updated_at": stamp,
            },
        )
        return _VenueOutcome(venue=venue, created=created, dishes_added=dishes_added)

    # ---------- Dishes ----------

    def _sync_dish(self, discovered: DiscoveredDish, report: SyncReport) -> None:
        try:
            parent = self._store.get(DISCOVERED_VENUES, discovered.venue_id)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to look up venue for dish %s: %s", discovered.id, exc)
            report.errors.append(SyncError(discovered.id, DISH, str(exc)))
            return

        production_venue_id = (parent or {}).get("production_venue_id")
        if not production_venue_id:
            logger.warning("Skipping dish %s (%s): venue not yet promoted", discovered.id, discovered.name)
            report.errors.append(
                SyncError(discovered.id, DISH, f"Venue {discovered.venue_id} not yet promoted to production")
            )
            return

        try:
            with self._store.transaction() as tx:
                linked = self._write_dish(tx, discovered, production_venue_id)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to sync dish %s (%s): %s", discovered.id, discovered.name, exc)
            report.errors.append(SyncError(discovered.id, DISH, str(exc)))
            return

        report.synced_dish_ids.append(discovered.id)
        if linked:
            report.dishes_updated += 1
        else:
            report.dishes_added += 1

    def _write_dish(self, tx: Transaction, discovered: DiscoveredDish, venue_id: str) -> bool:
        """Promote one dish; returns True when it was linked to an existing production dish."""
        now = self._clock()
        stamp = format_timestamp(now)

        current = tx.get(DISCOVERED_DISHES, discovered.id)
        if current is None:
            raise NotFoundError(f"Discovered dish {discovered.id} no longer exists")
        if not discovered_dish_from_document(current).eligible:
            raise InvalidStateError(f"Discovered dish {discovered.id} was already promoted")
        if tx.get(VENUES, venue_id) is None:
            raise NotFoundError(f"Venue {venue_id} not found")

        existing = {dish_name_key(doc.get("name")): doc["id"] for doc in tx.query(DISHES, {"venue_id": venue_id})}
        dish_id = existing.get(dish_name_key(discovered.name))
        linked = dish_id is not None
        if linked:
            tx.update(DISHES, dish_id, {"last_verified": stamp, "updated_at": stamp})
        else:
            dish = dish_from_discovered(
                discovered,
                dish_id=self._store.new_id(),
                venue_id=venue_id,
                partner_id=self._settings.discovery_partner_id,
                default_currency=self._settings.default_currency,
                now=now,
            )
            dish_id = dish.id
            tx.set(DISHES, dish.id, dish_to_document(dish))

        tx.update(
            DISCOVERED_DISHES,
            discovered.id,
            {
                "status": PROMOTED,
                "production_dish_id": dish_id,
                "promoted_at": stamp,
                "updated_at": stamp,
            },
        )
        return linked

    # ---------- Bookkeeping ----------

    def _record(self, report: SyncReport, actor: str) -> None:
        try:
            report.history_id = audit.record_sync(
                self._store,
                actor,
                report.synced_venue_ids,
                report.synced_dish_ids,
                report.history_stats(),
                report.errors,
                now=self._clock(),
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to record sync history: %s", exc)

        audit.log_change(
            self._store,
            action="created",
            collection="sync_operations",
            document_id=report.history_id or f"sync_{int(self._clock().timestamp() * 1000)}",
            changes=[
                {"field": "venues_synced", "before": None, "after": report.venues_added + report.venues_updated},
                {"field": "dishes_synced", "before": None, "after": report.dishes_added + report.dishes_updated},
            ],
            actor=actor,
            reason=f"Admin sync: {report.message}",
            now=self._clock(),
        )


def execute_sync(
    store: DocumentStore,
    selection: SyncSelection,
    actor: str = "unknown",
    *,
    settings: Optional[Settings] = None,
    time_budget: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
) -> SyncReport:
    return SyncOrchestrator(store, settings=settings).execute(
        selection, actor, time_budget=time_budget, cancel_event=cancel_event
    )


def preview_sync(store: DocumentStore, settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Read-only view of what ``syncAll`` would do right now, without the item cap."""
    settings = settings or get_settings()
    venues = sorted(
        (
            venue
            for venue in (
                discovered_venue_from_document(doc) for doc in store.query(DISCOVERED_VENUES, {"status": VERIFIED})
            )
            if venue.eligible
        ),
        key=_oldest_first,
    )
    dishes = sorted(
        (
            dish
            for dish in (
                discovered_dish_from_document(doc) for doc in store.query(DISCOVERED_DISHES, {"status": VERIFIED})
            )
            if dish.eligible
        ),
        key=_oldest_first,
    )
    catalog = [venue_from_document(doc) for doc in store.query(VENUES)]

    dish_counts: Dict[str, int] = {}
    for dish in dishes:
        dish_counts[dish.venue_id] = dish_counts.get(dish.venue_id, 0) + 1

    additions: List[Dict[str, Any]] = []
    updates: List[Dict[str, Any]] = []
    invalid: List[Dict[str, Any]] = []
    for venue in venues:
        summary = {
            "id": venue.id,
            "name": venue.name,
            "chainId": venue.chain_id,
            "chainName": venue.chain_name,
            "city": venue.address.city,
            "country": venue.address.country,
            "confidenceScore": venue.confidence_score,
            "dishCount": dish_counts.get(venue.id) or len(venue.dishes),
            "verifiedAt": format_timestamp(venue.verified_at or venue.created_at),
        }
        validation = validate_address(venue.address)
        if not validation.valid:
            invalid.append({**summary, "errors": validation.errors})
            continue
        match, rule = match_venue(venue, catalog)
        if match is not None:
            updates.append({**summary, "productionId": match.id, "matchedBy": rule})
        else:
            additions.append(summary)

    blocked_venue_ids = {entry["id"] for entry in invalid}
    pending_venue_ids = {venue.id for venue in venues} - blocked_venue_ids
    dish_additions: List[Dict[str, Any]] = []
    blocked: List[Dict[str, Any]] = []
    parents: Dict[str, Optional[Dict[str, Any]]] = {}
    for dish in dishes:
        if dish.venue_id not in parents:
            parents[dish.venue_id] = store.get(DISCOVERED_VENUES, dish.venue_id)
        parent = parents[dish.venue_id] or {}
        summary = {
            "id": dish.id,
            "venueId": dish.venue_id,
            "venueName": dish.venue_name,
            "name": dish.name,
            "product": dish.planted_product,
            "confidenceScore": dish.confidence_score,
            "verifiedAt": format_timestamp(dish.verified_at),
        }
        if parent.get("production_venue_id") or dish.venue_id in pending_venue_ids:
            dish_additions.append(summary)
        else:
            blocked.append({**summary, "reason": f"Venue {dish.venue_id} not yet promoted to production"})

    return {
        "additions": {"venues": additions, "dishes": dish_additions},
        "updates": {"venues": updates, "dishes": []},
        "blocked": {"dishes": blocked},
        "invalidAddresses": invalid,
        "stats": {
            "venues": {"additions": len(additions), "updates": len(updates), "invalidAddresses": len(invalid)},
            "dishes": {"additions": len(dish_additions), "blocked": len(blocked)},
            "batchLimit": settings.sync_max_items,
        },
    }
