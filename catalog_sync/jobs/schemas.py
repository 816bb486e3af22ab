"""Validation of admin request bodies and query strings."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from catalog_sync.core.errors import ValidationError
from catalog_sync.services.audit import MAX_HISTORY_PAGE
from catalog_sync.services.duplicates import MAX_DELETE_IDS
from catalog_sync.services.sync import SyncSelection

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _id_list(payload: Mapping[str, Any], name: str, errors: List[Dict[str, Any]], max_items: int) -> List[str]:
    raw = payload.get(name)
    if raw is None:
        return []
    if not isinstance(raw, list):
        errors.append({"field": name, "message": "must be a list of ids"})
        return []
    if any(not isinstance(item, str) or not item.strip() for item in raw):
        errors.append({"field": name, "message": "ids must be non-empty strings"})
        return []
    if len(raw) > max_items:
        errors.append({"field": name, "message": f"at most {max_items} ids are accepted"})
        return []
    return [item.strip() for item in raw]


def _flag(payload: Mapping[str, Any], name: str, errors: List[Dict[str, Any]]) -> bool:
    raw = payload.get(name, False)
    if not isinstance(raw, bool):
        errors.append({"field": name, "message": "must be a boolean"})
        return False
    return raw


def _raise(errors: List[Dict[str, Any]]) -> None:
    if errors:
        raise ValidationError("Invalid request", details=errors)


def parse_sync_request(payload: Mapping[str, Any], max_items: int) -> SyncSelection:
    """``{venueIds?, dishIds?, syncAll?, skipAddressValidation?}``; at least one target is required."""
    errors: List[Dict[str, Any]] = []
    venue_ids = _id_list(payload, "venueIds", errors, max_items)
    dish_ids = _id_list(payload, "dishIds", errors, max_items)
    sync_all = _flag(payload, "syncAll", errors)
    skip = _flag(payload, "skipAddressValidation", errors)
    _raise(errors)

    if not sync_all and not venue_ids and not dish_ids:
        raise ValidationError(
            "Invalid request",
            details=[{"field": "venueIds", "message": "provide venueIds, dishIds or syncAll"}],
        )
    return SyncSelection(venue_ids=venue_ids, dish_ids=dish_ids, sync_all=sync_all, skip_address_validation=skip)


def parse_merge_request(payload: Mapping[str, Any]) -> Dict[str, str]:
    errors: List[Dict[str, Any]] = []
    ids: Dict[str, str] = {}
    for name in ("primaryVenueId", "secondaryVenueId"):
        value = payload.get(name)
        if not isinstance(value, str) or not value.strip():
            errors.append({"field": name, "message": "is required"})
            continue
        ids[name] = value.strip()
    _raise(errors)
    return ids


def parse_delete_request(payload: Mapping[str, Any]) -> List[str]:
    errors: List[Dict[str, Any]] = []
    venue_ids = _id_list(payload, "venueIds", errors, MAX_DELETE_IDS)
    if not errors and not venue_ids:
        errors.append({"field": "venueIds", "message": "at least one id is required"})
    _raise(errors)
    return venue_ids


def parse_bool_arg(value: Optional[str], name: str) -> bool:
    text = (value or "").strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValidationError("Invalid request", details=[{"field": name, "message": "must be a boolean"}])


def parse_threshold_arg(value: Optional[str], default: float) -> float:
    if value is None or not value.strip():
        return default
    try:
        threshold = float(value)
    except ValueError as exc:
        raise ValidationError(
            "Invalid request", details=[{"field": "threshold", "message": "must be numeric"}]
        ) from exc
    if not 0 <= threshold <= 100:
        raise ValidationError("Invalid request", details=[{"field": "threshold", "message": "must be between 0 and 100"}])
    return threshold


def parse_history_args(args: Mapping[str, Any]) -> Dict[str, Any]:
    raw_limit = args.get("limit")
    limit = 50
    if raw_limit not in (None, ""):
        try:
            limit = int(raw_limit)
        except (TypeError, ValueError) as exc:
            raise ValidationError(
                "Invalid request", details=[{"field": "limit", "message": "must be an integer"}]
            ) from exc
    if not 1 <= limit <= MAX_HISTORY_PAGE:
        raise ValidationError(
            "Invalid request",
            details=[{"field": "limit", "message": f"must be between 1 and {MAX_HISTORY_PAGE}"}],
        )
    return {"limit": limit, "cursor": args.get("cursor") or None}
