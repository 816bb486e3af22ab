import json

import pytest

from catalog_sync.core import config
from catalog_sync.jobs import run_sync
from tests.factories import discovered_venue_doc, venue_doc


@pytest.fixture
def memory_env(monkeypatch, memory_store):
    monkeypatch.setattr(config, "load_dotenv", lambda: None)
    monkeypatch.setenv("CATALOG_BACKEND", "memory")
    monkeypatch.setenv("SYNC_MAX_ITEMS", "10")
    return memory_store


def test_parser_collects_repeated_ids():
    args = run_sync.build_parser().parse_args(
        ["sync", "--venue-id", "a", "--venue-id", "b", "--dish-id", "d", "--skip-address-validation"]
    )

    assert args.command == "sync"
    assert args.venue_ids == ["a", "b"]
    assert args.dish_ids == ["d"]
    assert args.skip_address_validation is True
    assert args.sync_all is False


def test_sync_command_prints_report(memory_env, capsys):
    memory_env.create("discovered_venues", discovered_venue_doc("dv1"), doc_id="dv1")

    exit_code = run_sync.main(["sync", "--all", "--actor", "backfill"])

    assert exit_code == run_sync.EXIT_OK
    report = json.loads(capsys.readouterr().out)
    assert report["stats"]["successful"]["venuesAdded"] == 1
    history = memory_env.get("sync_history", report["historyId"])
    assert history["executedBy"] == "backfill"


def test_sync_without_target_is_usage_error(memory_env, capsys):
    assert run_sync.main(["sync"]) == run_sync.EXIT_USAGE
    assert capsys.readouterr().out == ""


def test_duplicates_and_merge_commands(memory_env, capsys):
    memory_env.create("venues", venue_doc("a"), doc_id="a")
    memory_env.create("venues", venue_doc("b"), doc_id="b")

    assert run_sync.main(["duplicates", "--threshold", "40"]) == run_sync.EXIT_OK
    assert json.loads(capsys.readouterr().out)["totalDuplicateGroups"] == 1

    assert run_sync.main(["merge", "a", "b"]) == run_sync.EXIT_OK
    assert json.loads(capsys.readouterr().out)["secondaryVenueId"] == "b"

    assert run_sync.main(["merge", "a", "b"]) == run_sync.EXIT_FAILED


def test_init_db_is_a_no_op_for_memory_backend(memory_env, capsys):
    assert run_sync.main(["init-db"]) == run_sync.EXIT_OK
    assert "Nothing to initialise" in capsys.readouterr().out


def test_config_errors_exit_with_usage_code(monkeypatch, memory_store):
    monkeypatch.setattr(config, "load_dotenv", lambda: None)
    monkeypatch.setenv("CATALOG_BACKEND", "mongo")
    assert run_sync.main(["duplicates"]) == run_sync.EXIT_USAGE
