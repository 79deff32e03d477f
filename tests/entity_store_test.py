import pytest

from src.fleet_journal.entity_store.exceptions import EntityNotFoundException
from src.fleet_journal.entity_store.interface import (
    JOURNAL_ENTRIES,
    VEHICLES,
    matches,
    sort_records,
)
from src.fleet_journal.entity_store.memory import InMemoryEntityStore


async def test_create_assigns_id_and_timestamps(store):
    record = await store.collection(VEHICLES).create({"registration_number": "ABC123"})

    assert record["id"]
    assert record["created_date"]
    assert record["updated_date"]
    assert await store.collection(VEHICLES).get(record["id"]) == record


async def test_get_missing_returns_none(store):
    assert await store.collection(VEHICLES).get("missing") is None


async def test_filter_with_list_means_in(store):
    entries = store.collection(JOURNAL_ENTRIES)
    for vehicle_id in ("v1", "v2", "v3"):
        await entries.create({"vehicle_id": vehicle_id})

    found = await entries.filter({"vehicle_id": ["v1", "v3"]})

    assert sorted(r["vehicle_id"] for r in found) == ["v1", "v3"]


async def test_list_orders_descending_and_limits(store):
    entries = store.collection(JOURNAL_ENTRIES)
    for distance in (5, 50, 20):
        await entries.create({"distance_km": distance})

    records = await entries.list(order_by="-distance_km", limit=2)

    assert [r["distance_km"] for r in records] == [50, 20]


async def test_update_merges_patch(store):
    entries = store.collection(JOURNAL_ENTRIES)
    record = await entries.create({"vehicle_id": "v1", "purpose": None})

    updated = await entries.update(record["id"], {"purpose": "Kundbesök"})

    assert updated["purpose"] == "Kundbesök"
    assert updated["vehicle_id"] == "v1"
    assert updated["id"] == record["id"]


async def test_update_missing_raises_not_found(store):
    with pytest.raises(EntityNotFoundException) as exc_info:
        await store.collection(JOURNAL_ENTRIES).update("nope", {"purpose": "x"})

    assert exc_info.value.entity_id == "nope"
    assert exc_info.value.collection == JOURNAL_ENTRIES


async def test_delete_reports_success(store):
    entries = store.collection(JOURNAL_ENTRIES)
    record = await entries.create({"vehicle_id": "v1"})

    assert await entries.delete(record["id"]) == {"success": True}
    assert await entries.get(record["id"]) is None


async def test_returned_records_are_copies(store):
    entries = store.collection(JOURNAL_ENTRIES)
    record = await entries.create({"vehicle_id": "v1"})
    record["vehicle_id"] = "changed"

    assert (await entries.get(record["id"]))["vehicle_id"] == "v1"


async def test_seed_keeps_given_ids():
    store = InMemoryEntityStore()
    store.seed(VEHICLES, [{"id": "v1", "registration_number": "ABC123"}])

    record = await store.collection(VEHICLES).get("v1")
    assert record["registration_number"] == "ABC123"


def test_matches_and_sort_helpers():
    records = [{"a": 2}, {"a": None}, {"a": 1}]

    assert matches({"a": 1, "b": "x"}, {"a": [1, 2]})
    assert not matches({"a": 3}, {"a": [1, 2]})
    assert [r["a"] for r in sort_records(records, "a")] == [1, 2, None]
