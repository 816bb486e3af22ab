"""Append-only sync history and changelog records."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from catalog_sync.core.errors import ValidationError
from catalog_sync.core.store import CHANGE_LOGS, SYNC_HISTORY, DocumentStore
from catalog_sync.etl.transform import format_timestamp, parse_timestamp, utcnow

logger = logging.getLogger(__name__)

MAX_HISTORY_PAGE = 100


@dataclass(slots=True)
class SyncError:
    """One failed batch item."""

    entity_id: str
    entity_type: str
    error: str

    def to_dict(self) -> Dict[str, str]:
        return {"entityId": self.entity_id, "entityType": self.entity_type, "error": self.error}


def changelog_entry(
    *,
    action: str,
    collection: str,
    document_id: str,
    changes: Iterable[Dict[str, Any]],
    actor: str,
    reason: Optional[str] = None,
    source_type: str = "manual",
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    return {
        "timestamp": format_timestamp(now or utcnow()),
        "action": action,
        "collection": collection,
        "document_id": document_id,
        "changes": [dict(change) for change in changes],
        "source": {"type": source_type, "user_id": actor},
        "reason": reason,
    }


def log_change(store: DocumentStore, **kwargs: Any) -> Optional[str]:
    """Write a changelog entry; failures are logged and swallowed."""
    try:
        return store.create(CHANGE_LOGS, changelog_entry(**kwargs))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Failed to write changelog entry for %s: %s", kwargs.get("document_id"), exc)
        return None


def record_sync(
    store: DocumentStore,
    actor: str,
    venue_ids: List[str],
    dish_ids: List[str],
    stats: Dict[str, int],
    errors: List[SyncError],
    now: Optional[datetime] = None,
) -> str:
    """Persist an immutable sync history record and return its id."""
    record = {
        "executedAt": format_timestamp(now or utcnow()),
        "executedBy": actor,
        "itemsSynced": {"venues": list(venue_ids), "dishes": list(dish_ids)},
        "stats": dict(stats),
        "errors": [error.to_dict() for error in errors],
    }
    history_id = store.create(SYNC_HISTORY, record)
    logger.info("Recorded sync %s by %s (%s)", history_id, actor, stats)
    return history_id


def _sorted_history(store: DocumentStore) -> List[Dict[str, Any]]:
    records = store.query(SYNC_HISTORY)
    records.sort(key=lambda record: (record.get("executedAt") or "", record["id"]), reverse=True)
    return records


def get_history(store: DocumentStore, limit: int = 50, cursor: Optional[str] = None) -> Dict[str, Any]:
    """Newest-first page of sync records; ``cursor`` is the id of the last record already seen."""
    if limit < 1 or limit > MAX_HISTORY_PAGE:
        raise ValidationError(f"limit must be between 1 and {MAX_HISTORY_PAGE}")

    records = _sorted_history(store)
    start = 0
    if cursor:
        ids = [record["id"] for record in records]
        if cursor not in ids:
            raise ValidationError(f"unknown cursor {cursor}")
        start = ids.index(cursor) + 1

    page = records[start:start + limit]
    has_more = start + limit < len(records)
    return {
        "history": page,
        "nextCursor": page[-1]["id"] if page and has_more else None,
        "hasMore": has_more,
    }


def get_last_sync(store: DocumentStore) -> Optional[Dict[str, Any]]:
    records = _sorted_history(store)
    return records[0] if records else None


def aggregate_stats(store: DocumentStore, days: int = 30, now: Optional[datetime] = None) -> Dict[str, int]:
    since = (now or utcnow()) - timedelta(days=days)
    totals = {
        "syncCount": 0,
        "venuesAdded": 0,
        "venuesUpdated": 0,
        "dishesAdded": 0,
        "dishesUpdated": 0,
        "errors": 0,
    }
    for record in store.query(SYNC_HISTORY):
        executed_at = parse_timestamp(record.get("executedAt"))
        if executed_at is None or executed_at < since:
            continue
        totals["syncCount"] += 1
        stats = record.get("stats") or {}
        for key in ("venuesAdded", "venuesUpdated", "dishesAdded", "dishesUpdated", "errors"):
            totals[key] += int(stats.get(key) or 0)
    return totals
