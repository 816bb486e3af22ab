import pytest

from catalog_sync.core.errors import ValidationError
from catalog_sync.services import duplicates
from tests.factories import venue_doc

_WOLT = [{"platform": "wolt", "url": "https://wolt.com/tibits"}]


def _seed(store):
    location = {"lat": 47.3769, "lng": 8.5417}
    store.create("venues", venue_doc("a", coordinates=location, delivery_platforms=_WOLT), doc_id="a")
    store.create(
        "venues",
        venue_doc("b", coordinates=location, delivery_platforms=_WOLT, created_at="2023-06-01T00:00:00+00:00"),
        doc_id="b",
    )
    store.create("venues", venue_doc("c", name="Kebab Haus", street="Langstrasse 9", city="Bern"), doc_id="c")
    store.create("dishes", {"venue_id": "a", "name": "Bowl", "status": "active"}, doc_id="d1")
    store.create("dishes", {"venue_id": "a", "name": "Old", "status": "inactive"}, doc_id="d2")
    store.create("dishes", {"venue_id": "c", "name": "Kebab", "status": "active"}, doc_id="d3")


def test_scan_duplicates_reports_groups_and_stats(memory_store):
    _seed(memory_store)

    result = duplicates.scan_duplicates(memory_store)

    assert result["totalDuplicateGroups"] == 1
    assert result["totalDuplicateVenues"] == 2
    assert result["stats"] == {"byCountry": {"CH": 2}, "totalVenuesScanned": 3}

    [group] = result["duplicateGroups"]
    assert group["score"] == 100
    assert group["recommendation"] == "merge"
    assert group["addressKey"] == "bahnhofplatz 1|8001|zurich|ch"
    assert group["formattedAddress"] == "Bahnhofplatz 1, 8001 Zurich, CH"
    assert [venue["id"] for venue in group["venues"]] == ["b", "a"]
    assert group["venues"][1]["dishCount"] == 1


def test_scan_duplicates_on_empty_catalog(memory_store):
    result = duplicates.scan_duplicates(memory_store)
    assert result["duplicateGroups"] == []
    assert result["stats"]["totalVenuesScanned"] == 0


def test_delete_venues_removes_dishes_and_skips_missing(memory_store):
    _seed(memory_store)

    result = duplicates.delete_venues(memory_store, ["a", "missing", "a"], actor="ops")

    assert result["deletedVenues"] == 1
    assert result["deletedDishes"] == 2
    assert result["details"] == [{"venueId": "a", "venueName": "Tibits", "dishesDeleted": 2}]
    assert result["errors"] == []
    assert memory_store.get("venues", "a") is None
    assert memory_store.query("dishes", {"venue_id": "a"}) == []
    assert memory_store.get("venues", "b") is not None

    [entry] = memory_store.query("change_logs", {"action": "deleted"})
    assert entry["document_id"] == "a"


def test_delete_venues_validates_id_count(memory_store):
    with pytest.raises(ValidationError):
        duplicates.delete_venues(memory_store, [])
    with pytest.raises(ValidationError):
        duplicates.delete_venues(memory_store, [f"v{i}" for i in range(101)])


def test_delete_venues_continues_after_a_failed_venue(memory_store, monkeypatch):
    _seed(memory_store)
    original = memory_store.transaction
    calls = []

    def flaky_transaction():
        calls.append(1)
        if len(calls) == 2:
            raise RuntimeError("transient store error")
        return original()

    monkeypatch.setattr(memory_store, "transaction", flaky_transaction)

    result = duplicates.delete_venues(memory_store, ["a", "b", "c"])

    assert result["success"] is False
    assert result["deletedVenues"] == 2
    assert [detail["venueId"] for detail in result["details"]] == ["a", "c"]
    assert result["errors"] == [{"venueId": "b", "error": "transient store error"}]
    assert memory_store.get("venues", "a") is None
    assert memory_store.get("venues", "b") is not None
    assert memory_store.get("venues", "c") is None
