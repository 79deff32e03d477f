from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

from src.fleet_journal.entity_store.interface import (
    GEOFENCES,
    JOURNAL_ENTRIES,
    PROJECTS,
    VEHICLES,
)
from tests.mocks.config_mocks import HEADERS
from tests.mocks.journal_mocks import entry_record, provider_trip, vehicle_record

NOW = datetime.now(timezone.utc)


async def entry(store, entry_id="e1"):
    return await store.collection(JOURNAL_ENTRIES).get(entry_id)


def seed_pending(store, *ids):
    store.seed(
        JOURNAL_ENTRIES,
        [entry_record(i, start_time=NOW - timedelta(hours=1)) for i in ids],
    )


# region Sync
async def test_sync_all_vehicles(async_client, store, ingestion):
    store.seed(VEHICLES, [vehicle_record("v1", device_id="GPS-42")])
    ingestion.trips["GPS-42"] = [provider_trip()]

    response = await async_client.post("/api/journal/sync", headers=HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["total_synced"] == 1
    assert body["summary"] == "synced 1 of 1 vehicles; 0 failed"
    assert (await store.collection(JOURNAL_ENTRIES).list())[0]["gps_trip_id"] == "T1"


async def test_sync_with_custom_window_and_limit(async_client, store, ingestion):
    store.seed(
        VEHICLES,
        [
            vehicle_record("v1", device_id="GPS-1"),
            vehicle_record("v2", device_id="GPS-2"),
        ],
    )

    response = await async_client.post(
        "/api/journal/sync",
        headers=HEADERS,
        json={
            "start": "2023-11-14T00:00:00Z",
            "end": "2023-11-15T00:00:00Z",
            "max_vehicles": 1,
        },
    )

    assert response.status_code == 200
    assert response.json()["total_vehicles"] == 1
    assert len(ingestion.calls) == 1


async def test_sync_rejects_half_open_window(async_client):
    response = await async_client.post(
        "/api/journal/sync",
        headers=HEADERS,
        json={"start": "2023-11-14T00:00:00Z"},
    )

    assert response.status_code == 422


async def test_sync_requires_user(async_client):
    response = await async_client.post("/api/journal/sync")

    assert response.status_code == 422


async def test_sync_single_vehicle(async_client, store, ingestion):
    store.seed(VEHICLES, [vehicle_record("v1", device_id="GPS-42")])
    ingestion.trips["GPS-42"] = [provider_trip()]

    response = await async_client.post("/api/journal/sync/v1", headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["synced"] == 1


async def test_sync_unknown_vehicle(async_client):
    response = await async_client.post("/api/journal/sync/nope", headers=HEADERS)

    assert response.status_code == 404


async def test_sync_vehicle_without_device(async_client, store):
    store.seed(VEHICLES, [vehicle_record("v1", device_id=None)])

    response = await async_client.post("/api/journal/sync/v1", headers=HEADERS)

    assert response.status_code == 400


async def test_sync_vehicle_provider_down(async_client, store, ingestion):
    store.seed(VEHICLES, [vehicle_record("v1", device_id="GPS-42")])
    ingestion.failing.add("GPS-42")

    response = await async_client.post("/api/journal/sync/v1", headers=HEADERS)

    assert response.status_code == 502
    assert await store.collection(JOURNAL_ENTRIES).list() == []


# endregion


# region Suggestions
async def test_geofence_suggestion(async_client, store):
    store.seed(
        GEOFENCES,
        [
            {
                "name": "Huvudkontoret",
                "latitude": 59.3293,
                "longitude": 18.0686,
                "radius_meters": 100,
                "auto_classify_as": "privat",
                "is_active": True,
            }
        ],
    )
    store.seed(
        JOURNAL_ENTRIES,
        [
            entry_record(
                "e1", end_location={"latitude": 59.3293, "longitude": 18.0686}
            ),
            entry_record("e2"),
        ],
    )

    response = await async_client.post(
        "/api/journal/suggestions",
        headers=HEADERS,
        json={"entry_ids": ["e1", "e2"], "sources": ["geofence", "history"]},
    )

    assert response.status_code == 200
    by_id = {s["entry_id"]: s for s in response.json()}
    assert by_id["e1"]["trip_type"] == "privat"
    assert by_id["e1"]["source"] == "geofence"
    assert by_id["e1"]["state"] == "suggested"
    assert by_id["e2"]["state"] == "unreviewed"
    assert (await entry(store))["trip_type"] == "väntar"


@patch("aiohttp.ClientSession.post")
async def test_ai_failure_is_reported_per_trip(mock_post, async_client, store):
    failed = AsyncMock()
    failed.status = 400
    mock_post.return_value.__aenter__.return_value = failed
    seed_pending(store, "e1")

    response = await async_client.post(
        "/api/journal/suggestions",
        headers=HEADERS,
        json={"entry_ids": ["e1"], "sources": ["ai"]},
    )

    assert response.status_code == 200
    assert response.json()[0]["error"] == "Kunde inte analysera resan"


async def test_suggestions_for_unknown_entry(async_client):
    response = await async_client.post(
        "/api/journal/suggestions",
        headers=HEADERS,
        json={"entry_ids": ["nope"], "sources": ["history"]},
    )

    assert response.status_code == 404


# endregion


# region Register
async def test_register_batch_with_missing_purpose_writes_nothing(async_client, store):
    seed_pending(store, "e1", "e2")

    response = await async_client.post(
        "/api/journal/register",
        headers=HEADERS,
        json={
            "items": [
                {"entry_id": "e1", "trip_type": "tjänst", "purpose": "Kundbesök"},
                {"entry_id": "e2", "trip_type": "tjänst", "purpose": ""},
            ]
        },
    )

    assert response.status_code == 422
    assert "e2" in response.json()["detail"]
    assert (await entry(store, "e1"))["trip_type"] == "väntar"
    assert (await entry(store, "e2"))["trip_type"] == "väntar"


async def test_register_writes_approved_and_skips_rejected(async_client, store):
    seed_pending(store, "e1", "e2")

    response = await async_client.post(
        "/api/journal/register",
        headers=HEADERS,
        json={
            "items": [
                {
                    "entry_id": "e1",
                    "trip_type": "privat",
                    "source": "geofence",
                    "reasoning": "Geofence: Hem",
                },
                {"entry_id": "e2", "approved": False},
            ]
        },
    )

    assert response.status_code == 200
    assert response.json() == {
        "written_ids": ["e1"],
        "rejected_ids": ["e2"],
        "untouched_ids": [],
    }
    written = await entry(store, "e1")
    assert written["trip_type"] == "privat"
    assert written["status"] == "submitted"
    assert written["driver_email"] == "anna@example.com"
    assert written["suggested_classification"]["reasoning"] == "Geofence: Hem"
    assert (await entry(store, "e2"))["trip_type"] == "väntar"


async def test_register_fills_project_details(async_client, store):
    seed_pending(store, "e1")
    store.seed(
        PROJECTS,
        [{"id": "p1", "name": "Bygg", "project_code": "P-9", "customer": "Acme AB"}],
    )

    response = await async_client.post(
        "/api/journal/register",
        headers=HEADERS,
        json={
            "items": [
                {
                    "entry_id": "e1",
                    "trip_type": "tjänst",
                    "purpose": "Platsbesök",
                    "project_id": "p1",
                }
            ]
        },
    )

    assert response.status_code == 200
    written = await entry(store, "e1")
    assert written["project_code"] == "P-9"
    assert written["customer"] == "Acme AB"


async def test_register_requires_items(async_client):
    response = await async_client.post(
        "/api/journal/register", headers=HEADERS, json={"items": []}
    )

    assert response.status_code == 422


# endregion


# region Review
async def test_approve_classified_entry(async_client, store):
    store.seed(
        JOURNAL_ENTRIES,
        [entry_record("e1", trip_type="tjänst", purpose="Kundbesök")],
    )

    response = await async_client.post(
        "/api/journal/entries/e1/review",
        headers={**HEADERS, "X-User-Role": "admin"},
        json={"decision": "approve", "comment": "OK"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "approved"
    assert body["reviewed_by"] == "anna@example.com"
    assert body["review_comment"] == "OK"
    assert body["reviewed_at"]


async def test_review_pending_entry_conflicts(async_client, store):
    seed_pending(store, "e1")

    response = await async_client.post(
        "/api/journal/entries/e1/review",
        headers=HEADERS,
        json={"decision": "reject"},
    )

    assert response.status_code == 409


async def test_soft_delete(async_client, store):
    seed_pending(store, "e1")

    response = await async_client.delete("/api/journal/entries/e1", headers=HEADERS)
    again = await async_client.delete("/api/journal/entries/e1", headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["is_deleted"] is True
    assert again.status_code == 404
    assert (await entry(store))["is_deleted"] is True


# endregion


async def test_auto_process_without_policy_is_skipped(async_client):
    response = await async_client.post("/api/journal/auto-process")

    assert response.status_code == 200
    assert response.json()["status"] == "skipped"
