import logging
from typing import Any, Dict, List, Optional

import pendulum
from pydantic import BaseModel

from src.fleet_journal.classification.geofence import haversine_meters
from src.fleet_journal.classification.schemas import (
    ClassificationSuggestion,
    JournalPolicy,
)
from src.fleet_journal.classification.strategies.history import (
    HistorySuggestionStrategy,
)
from src.fleet_journal.entity_store.exceptions import EntityStoreException
from src.fleet_journal.journal.repositories import (
    IJournalRepository,
    JournalPolicyRepository,
)
from src.fleet_journal.journal.schemas import (
    EntryStatus,
    JournalEntry,
    Location,
    TripType,
)

logger = logging.getLogger(__name__)

DEFAULT_OFFICE_RADIUS_METERS = 500
LONG_TRIP_KM = 500
LONG_TRIP_MINUTES = 8 * 60
MIN_PURPOSE_LENGTH = 5


class AutoProcessResult(BaseModel):
    status: str = "success"
    message: Optional[str] = None
    processed: int = 0
    categorized: int = 0
    suggestions: int = 0
    flagged: int = 0
    auto_approved: int = 0
    failed: List[str] = []


def _minutes(clock: str) -> int:
    hours, minutes = clock.split(":")[:2]
    return int(hours) * 60 + int(minutes)


def _near(location: Optional[Location], office, radius: float) -> bool:
    if location is None or not location.has_coordinates:
        return False
    distance = haversine_meters(
        location.latitude, location.longitude, office.latitude, office.longitude
    )
    return distance < radius


def categorize_trip(
    entry: JournalEntry, policy: JournalPolicy, tz: str = "Europe/Stockholm"
) -> Optional[TripType]:
    """
    Business when a trip on a work day within work hours starts or ends at an
    office; private outside work days or hours; otherwise undecided.
    """
    start = pendulum.instance(entry.start_time).in_timezone(tz)
    # Policies count days from Sunday = 0
    weekday = start.isoweekday() % 7
    is_work_day = policy.work_days is None or weekday in policy.work_days

    is_work_hours = True
    if policy.work_hours_start and policy.work_hours_end:
        current = start.hour * 60 + start.minute
        is_work_hours = (
            _minutes(policy.work_hours_start)
            <= current
            <= _minutes(policy.work_hours_end)
        )

    at_office = False
    for office in policy.office_locations:
        radius = office.radius_meters or DEFAULT_OFFICE_RADIUS_METERS
        if _near(entry.start_location, office, radius) or _near(
            entry.end_location, office, radius
        ):
            at_office = True
            break

    if is_work_day and is_work_hours and at_office:
        return TripType.BUSINESS
    if not is_work_day or not is_work_hours:
        return TripType.PRIVATE
    return None


def check_completeness(entry: JournalEntry, policy: JournalPolicy) -> List[str]:
    flags = []
    if not entry.driver_name or not entry.driver_email:
        flags.append("Saknar förarenamn")
    limit = policy.require_purpose_over_km
    if (
        limit
        and entry.distance_km > limit
        and len((entry.purpose or "").strip()) < MIN_PURPOSE_LENGTH
    ):
        flags.append(f"Saknar syfte (resa > {limit:g} km)")
    if entry.distance_km > LONG_TRIP_KM:
        flags.append(f"Ovanligt lång resa (> {LONG_TRIP_KM} km)")
    if entry.duration_minutes > LONG_TRIP_MINUTES:
        flags.append(f"Ovanligt lång tid (> {LONG_TRIP_MINUTES // 60} timmar)")
    return flags


def _append_note(notes: Optional[str], line: str) -> str:
    return f"{notes}\n{line}" if notes else line


class JournalAutoProcessor:
    """Applies the fleet's journal policy to every entry still pending."""

    def __init__(
        self,
        journal_repo: IJournalRepository,
        policy_repo: JournalPolicyRepository,
        tz: str = "Europe/Stockholm",
    ):
        self._journal = journal_repo
        self._policies = policy_repo
        self.tz = tz

    async def run(self) -> AutoProcessResult:
        policy = await self._policies.current()
        if policy is None or not policy.auto_categorize_enabled:
            return AutoProcessResult(
                status="skipped",
                message="Automatisk bearbetning är inte aktiverad",
            )

        pending = await self._journal.list_pending()
        history = HistorySuggestionStrategy(
            await self._journal.list_approved(), tz=self.tz
        )

        result = AutoProcessResult()
        for entry in pending:
            patch = await self._process(entry, policy, history, result)
            if not patch:
                continue
            try:
                await self._journal.update(entry.id, patch)
            except EntityStoreException as e:
                logger.error(f"Auto-processing failed for entry {entry.id}: {e}")
                result.failed.append(entry.id)
                continue
            result.processed += 1

        logger.info(
            f"Auto-processed {result.processed} of {len(pending)} pending entries"
        )
        return result

    async def _process(
        self,
        entry: JournalEntry,
        policy: JournalPolicy,
        history: HistorySuggestionStrategy,
        result: AutoProcessResult,
    ) -> Dict[str, Any]:
        patch: Dict[str, Any] = {}
        trip_type = entry.trip_type
        purpose = entry.purpose

        suggestion = await history.suggest(entry)
        if suggestion is not None:
            patch["suggested_classification"] = {
                **suggestion.to_snapshot(),
                "timestamp": pendulum.now("UTC").isoformat(),
            }
            patch["notes"] = _append_note(
                entry.notes,
                f"[AI] Föreslagen klassificering baserat på {suggestion.reasoning}",
            )
            trip_type, purpose = self._apply(suggestion, patch)
            result.suggestions += 1
        else:
            category = categorize_trip(entry, policy, self.tz)
            if category is not None:
                patch["notes"] = _append_note(
                    entry.notes,
                    f"[Auto] Kategoriserad som {category.value} baserat på tid/plats",
                )
                if category == TripType.PRIVATE:
                    patch["trip_type"] = category.value
                    trip_type = category
                else:
                    # A business trip needs a purpose; leave it pending for review
                    patch["suggested_classification"] = {
                        "trip_type": category.value,
                        "source": "policy",
                    }
                result.categorized += 1

        flags = check_completeness(
            entry.model_copy(update={"purpose": purpose}), policy
        )
        is_anomaly = entry.is_anomaly
        if flags:
            patch["is_anomaly"] = True
            patch["anomaly_reason"] = ". ".join(flags)
            is_anomaly = True
            result.flagged += 1

        threshold = policy.auto_approve_threshold_km
        if (
            threshold
            and entry.distance_km
            and entry.distance_km < threshold
            and trip_type != TripType.PENDING
            and not is_anomaly
        ):
            patch["status"] = EntryStatus.APPROVED.value
            patch["reviewed_by"] = "system"
            patch["reviewed_at"] = pendulum.now("UTC").isoformat()
            patch["review_comment"] = (
                f"Automatiskt godkänd (kort resa < {threshold:g} km)"
            )
            result.auto_approved += 1

        return patch

    @staticmethod
    def _apply(suggestion: ClassificationSuggestion, patch: Dict[str, Any]):
        if suggestion.trip_type == TripType.PRIVATE:
            patch["trip_type"] = TripType.PRIVATE.value
            return TripType.PRIVATE, None
        if suggestion.trip_type == TripType.BUSINESS and suggestion.purpose:
            patch["trip_type"] = TripType.BUSINESS.value
            patch["purpose"] = suggestion.purpose
            if suggestion.project_code:
                patch["project_code"] = suggestion.project_code
            if suggestion.customer:
                patch["customer"] = suggestion.customer
            return TripType.BUSINESS, suggestion.purpose
        return TripType.PENDING, None
