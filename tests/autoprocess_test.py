from datetime import datetime, timedelta, timezone

import pytest

from src.fleet_journal.autoprocess.service import (
    JournalAutoProcessor,
    categorize_trip,
    check_completeness,
)
from src.fleet_journal.classification.schemas import JournalPolicy
from src.fleet_journal.entity_store.interface import JOURNAL_ENTRIES, JOURNAL_POLICIES
from src.fleet_journal.journal.repositories import (
    JournalPolicyRepository,
    JournalRepository,
)
from src.fleet_journal.journal.schemas import JournalEntry, TripType
from tests.mocks.journal_mocks import entry_record

OFFICE = {"latitude": 59.3293, "longitude": 18.0686}
ELSEWHERE = {"latitude": 59.40, "longitude": 18.30}
# Wednesday 09:00 and Saturday 09:00 in Stockholm
WEEKDAY = datetime(2023, 11, 15, 8, 0, tzinfo=timezone.utc)
SATURDAY = datetime(2023, 11, 18, 8, 0, tzinfo=timezone.utc)

POLICY = {
    "auto_categorize_enabled": True,
    "work_days": [1, 2, 3, 4, 5],
    "work_hours_start": "08:00",
    "work_hours_end": "17:00",
    "office_locations": [{"name": "HK", **OFFICE}],
    "auto_approve_threshold_km": 20,
}


def entry(**kwargs):
    kwargs.setdefault("driver_email", "anna@example.com")
    kwargs.setdefault("driver_name", "Anna Andersson")
    return entry_record(**kwargs)


@pytest.fixture
def processor(store):
    return JournalAutoProcessor(
        JournalRepository(store), JournalPolicyRepository(store)
    )


async def stored(store, entry_id="e1"):
    return JournalEntry.model_validate(
        await store.collection(JOURNAL_ENTRIES).get(entry_id)
    )


# region Rules
@pytest.mark.parametrize(
    "start_time, location, expected",
    [
        (WEEKDAY, OFFICE, TripType.BUSINESS),
        (SATURDAY, OFFICE, TripType.PRIVATE),
        (WEEKDAY + timedelta(hours=10), ELSEWHERE, TripType.PRIVATE),
        (WEEKDAY, ELSEWHERE, None),
    ],
)
def test_categorize_trip(start_time, location, expected):
    record = entry(start_time=start_time, start_location=location)

    result = categorize_trip(
        JournalEntry.model_validate(record), JournalPolicy(**POLICY)
    )

    assert result == expected


def test_office_radius_defaults_to_500_meters():
    # ~300 m north of the office
    nearby = {**OFFICE, "latitude": OFFICE["latitude"] + 0.0027}
    record = entry(start_time=WEEKDAY, start_location=nearby)

    result = categorize_trip(
        JournalEntry.model_validate(record), JournalPolicy(**POLICY)
    )

    assert result == TripType.BUSINESS


def test_completeness_flags():
    policy = JournalPolicy(require_purpose_over_km=50)
    record = entry_record(
        distance_km=600, duration_minutes=9 * 60, purpose="kort", start_time=WEEKDAY
    )

    flags = check_completeness(JournalEntry.model_validate(record), policy)

    assert flags == [
        "Saknar förarenamn",
        "Saknar syfte (resa > 50 km)",
        "Ovanligt lång resa (> 500 km)",
        "Ovanligt lång tid (> 8 timmar)",
    ]


def test_complete_entry_has_no_flags():
    record = entry(start_time=WEEKDAY)

    flags = check_completeness(JournalEntry.model_validate(record), JournalPolicy())

    assert flags == []


# endregion


# region Processing
async def test_disabled_policy_skips_processing(store, processor):
    store.seed(JOURNAL_POLICIES, [{**POLICY, "auto_categorize_enabled": False}])
    store.seed(JOURNAL_ENTRIES, [entry(start_time=SATURDAY)])

    result = await processor.run()

    assert result.status == "skipped"
    assert result.message == "Automatisk bearbetning är inte aktiverad"
    assert (await stored(store)).trip_type == TripType.PENDING


async def test_missing_policy_skips_processing(processor):
    assert (await processor.run()).status == "skipped"


async def test_weekend_trip_is_private_and_auto_approved(store, processor):
    store.seed(JOURNAL_POLICIES, [POLICY])
    store.seed(JOURNAL_ENTRIES, [entry(start_time=SATURDAY)])

    result = await processor.run()

    assert result.processed == 1
    assert result.categorized == 1
    assert result.auto_approved == 1
    saved = await stored(store)
    assert saved.trip_type == TripType.PRIVATE
    assert saved.notes == "[Auto] Kategoriserad som privat baserat på tid/plats"
    assert saved.status.value == "approved"
    assert saved.reviewed_by == "system"
    assert saved.review_comment == "Automatiskt godkänd (kort resa < 20 km)"


async def test_office_trip_stays_pending_until_purpose_is_given(store, processor):
    store.seed(JOURNAL_POLICIES, [POLICY])
    store.seed(JOURNAL_ENTRIES, [entry(start_time=WEEKDAY, start_location=OFFICE)])

    result = await processor.run()

    assert result.categorized == 1
    assert result.auto_approved == 0
    saved = await stored(store)
    assert saved.trip_type == TripType.PENDING
    assert saved.suggested_classification == {
        "trip_type": "tjänst",
        "source": "policy",
    }
    assert saved.status is None


async def test_incomplete_trip_is_flagged_not_approved(store, processor):
    store.seed(JOURNAL_POLICIES, [POLICY])
    store.seed(
        JOURNAL_ENTRIES,
        [entry_record(start_time=SATURDAY, driver_email=None, driver_name=None)],
    )

    result = await processor.run()

    assert result.flagged == 1
    assert result.auto_approved == 0
    saved = await stored(store)
    assert saved.is_anomaly is True
    assert saved.anomaly_reason == "Saknar förarenamn"
    assert saved.trip_type == TripType.PRIVATE
    assert saved.status is None


async def test_history_takes_precedence_over_rules(store, processor):
    store.seed(JOURNAL_POLICIES, [POLICY])
    history = [
        entry(
            entry_id=f"h{i}",
            start_time=WEEKDAY - timedelta(days=7 * i),
            trip_type="privat",
            status="approved",
        )
        for i in (1, 2, 3)
    ]
    store.seed(
        JOURNAL_ENTRIES,
        [entry(start_time=WEEKDAY, start_location=ELSEWHERE), *history],
    )

    result = await processor.run()

    assert result.suggestions == 1
    assert result.categorized == 0
    saved = await stored(store)
    assert saved.trip_type == TripType.PRIVATE
    assert saved.notes == (
        "[AI] Föreslagen klassificering baserat på 3 tidigare liknande resor"
    )
    assert saved.suggested_classification["source"] == "history"
    assert "timestamp" in saved.suggested_classification


async def test_undecided_trip_is_left_alone(store, processor):
    store.seed(JOURNAL_POLICIES, [POLICY])
    store.seed(JOURNAL_ENTRIES, [entry(start_time=WEEKDAY, start_location=ELSEWHERE)])

    result = await processor.run()

    assert result.processed == 0
    saved = await stored(store)
    assert saved.trip_type == TripType.PENDING
    assert saved.notes is None


# endregion
