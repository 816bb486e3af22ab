"""HTTP entrypoint for the catalog admin operations (Cloud Run friendly)."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from catalog_sync.core.config import get_settings
from catalog_sync.core.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from catalog_sync.core.store import get_store
from catalog_sync.jobs import schemas
from catalog_sync.services import audit
from catalog_sync.services.duplicates import delete_venues, scan_duplicates
from catalog_sync.services.merge import merge_venues
from catalog_sync.services.sync import execute_sync, preview_sync

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App ----------
app = Flask(__name__)


def _actor() -> str:
    return request.headers.get("X-Actor-Id", "").strip() or "unknown"


def _payload() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


# ---------- Errors ----------


@app.errorhandler(ValidationError)
def handle_validation_error(exc: ValidationError) -> Any:
    return jsonify({"error": str(exc), "details": exc.details}), 400


@app.errorhandler(InvalidStateError)
def handle_invalid_state(exc: InvalidStateError) -> Any:
    return jsonify({"error": str(exc)}), 400


@app.errorhandler(NotFoundError)
def handle_not_found(exc: NotFoundError) -> Any:
    return jsonify({"error": str(exc)}), 404


@app.errorhandler(ConflictError)
def handle_conflict(exc: ConflictError) -> Any:
    return jsonify({"error": str(exc)}), 409


@app.errorhandler(Exception)
def handle_unexpected(exc: Exception) -> Any:
    if isinstance(exc, HTTPException):
        return exc
    logger.exception("Request %s %s failed: %s", request.method, request.path, exc)
    return jsonify({"error": "internal error"}), 500


# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    """Simple root to avoid 404 on GET /"""
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; reads settings only, never touches the store."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "backend": settings.catalog_backend,
                "revision": os.getenv("K_REVISION", "unknown"),
                "region": os.getenv("X_GOOGLE_RUNTIMEREGION", "unknown"),
            }
        ),
        200,
    )


@app.get("/admin/duplicates")
def find_duplicates() -> Any:
    settings = get_settings()
    threshold = schemas.parse_threshold_arg(request.args.get("threshold"), float(settings.duplicate_threshold))
    block = schemas.parse_bool_arg(request.args.get("blockByLocality"), "blockByLocality")
    return jsonify(scan_duplicates(get_store(), threshold=threshold, block_by_locality=block)), 200


@app.post("/admin/duplicates/delete")
def delete_duplicates() -> Any:
    venue_ids = schemas.parse_delete_request(_payload())
    actor = _actor()
    logger.info("Delete of %d venues requested by %s", len(venue_ids), actor)
    return jsonify(delete_venues(get_store(), venue_ids, actor=actor)), 200


@app.post("/admin/venues/merge")
def merge() -> Any:
    ids = schemas.parse_merge_request(_payload())
    result = merge_venues(get_store(), ids["primaryVenueId"], ids["secondaryVenueId"], actor=_actor())
    return jsonify(result.to_dict()), 200


@app.post("/admin/sync/execute")
def execute() -> Any:
    settings = get_settings()
    selection = schemas.parse_sync_request(_payload(), settings.sync_max_items)
    report = execute_sync(get_store(), selection, actor=_actor(), settings=settings)
    return jsonify(report.to_dict()), 200


@app.get("/admin/sync/preview")
def preview() -> Any:
    return jsonify(preview_sync(get_store(), get_settings())), 200


@app.get("/admin/sync/history")
def history() -> Any:
    args = schemas.parse_history_args(request.args)
    store = get_store()
    page = audit.get_history(store, limit=args["limit"], cursor=args["cursor"])
    page["summary"] = {
        "lastSync": audit.get_last_sync(store),
        "last30Days": audit.aggregate_stats(store, days=30),
    }
    return jsonify(page), 200


def main() -> None:
    """Cloud Run injects PORT; SERVER_PORT wins for local runs."""
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level)
    logger.info("[BOOT] Binding on 0.0.0.0:%d (backend=%s)", settings.server_port, settings.catalog_backend)
    app.run(host="0.0.0.0", port=settings.server_port)


if __name__ == "__main__":
    main()
