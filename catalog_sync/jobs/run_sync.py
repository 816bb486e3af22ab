"""CLI for the catalog reconciliation jobs (promotion, duplicate scan, merge)."""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from catalog_sync.core.config import ConfigError, get_settings
from catalog_sync.core.errors import CatalogError, ValidationError
from catalog_sync.core.store import get_store
from catalog_sync.services.duplicates import scan_duplicates
from catalog_sync.services.merge import merge_venues
from catalog_sync.services.sync import SyncSelection, execute_sync

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def run_sync_job(
    *,
    venue_ids: List[str],
    dish_ids: List[str],
    sync_all: bool,
    skip_address_validation: bool,
    actor: str,
    time_budget: Optional[float],
) -> Dict[str, Any]:
    if not sync_all and not venue_ids and not dish_ids:
        raise ValidationError("Provide --venue-id, --dish-id or --all")

    selection = SyncSelection(
        venue_ids=venue_ids,
        dish_ids=dish_ids,
        sync_all=sync_all,
        skip_address_validation=skip_address_validation,
    )
    report = execute_sync(get_store(), selection, actor=actor, time_budget=time_budget)
    return report.to_dict()


def run_duplicates_job(*, threshold: Optional[float], block_by_locality: bool) -> Dict[str, Any]:
    if threshold is None:
        threshold = float(get_settings().duplicate_threshold)
    return scan_duplicates(get_store(), threshold=threshold, block_by_locality=block_by_locality)


def run_merge_job(*, primary: str, secondary: str, actor: str) -> Dict[str, Any]:
    return merge_venues(get_store(), primary, secondary, actor=actor).to_dict()


def run_init_db_job() -> Dict[str, Any]:
    settings = get_settings()
    if settings.catalog_backend != "postgres":
        return {"success": True, "message": f"Nothing to initialise for backend {settings.catalog_backend}"}

    from catalog_sync.core.db import ensure_schema

    ensure_schema()
    return {"success": True, "message": "Schema ready"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Catalog reconciliation jobs")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Promote verified discovered venues and dishes")
    sync.add_argument("--venue-id", dest="venue_ids", action="append", default=[], help="Discovered venue id")
    sync.add_argument("--dish-id", dest="dish_ids", action="append", default=[], help="Discovered dish id")
    sync.add_argument("--all", dest="sync_all", action="store_true", help="Promote every eligible entity")
    sync.add_argument(
        "--skip-address-validation",
        dest="skip_address_validation",
        action="store_true",
        help="Bypass the address completeness gate (backfills)",
    )
    sync.add_argument("--actor", dest="actor", default="cli", help="Principal recorded in the sync history")
    sync.add_argument("--time-budget", dest="time_budget", type=float, help="Wall-clock budget in seconds")

    duplicates = subparsers.add_parser("duplicates", help="Scan the production catalog for duplicate venues")
    duplicates.add_argument("--threshold", dest="threshold", type=float, help="Minimum pair score (0-100)")
    duplicates.add_argument(
        "--block-by-locality",
        dest="block_by_locality",
        action="store_true",
        help="Only compare venues in the same city and country",
    )

    merge = subparsers.add_parser("merge", help="Merge a duplicate venue into its primary")
    merge.add_argument("primary", help="Venue id that survives")
    merge.add_argument("secondary", help="Venue id that is deleted")
    merge.add_argument("--actor", dest="actor", default="cli", help="Principal recorded in the changelog")

    subparsers.add_parser("init-db", help="Create the documents table and indexes")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        logging.getLogger().setLevel(get_settings().log_level)
        if args.command == "sync":
            result = run_sync_job(
                venue_ids=args.venue_ids,
                dish_ids=args.dish_ids,
                sync_all=args.sync_all,
                skip_address_validation=args.skip_address_validation,
                actor=args.actor,
                time_budget=args.time_budget,
            )
        elif args.command == "duplicates":
            result = run_duplicates_job(threshold=args.threshold, block_by_locality=args.block_by_locality)
        elif args.command == "merge":
            result = run_merge_job(primary=args.primary, secondary=args.secondary, actor=args.actor)
        else:
            result = run_init_db_job()
    except (ConfigError, ValidationError) as exc:
        logger.error("%s", exc)
        return EXIT_USAGE
    except CatalogError as exc:
        logger.error("%s failed: %s", args.command, exc)
        return EXIT_FAILED

    json.dump(result, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
