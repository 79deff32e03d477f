from collections import Counter
from typing import List, Optional

import pendulum

from src.fleet_journal.classification.geofence import haversine_meters
from src.fleet_journal.classification.schemas import (
    ClassificationSuggestion,
    ReviewState,
    SuggestionSource,
)
from src.fleet_journal.classification.strategies.interface import ISuggestionStrategy
from src.fleet_journal.journal.schemas import JournalEntry, Location, TripType

MAX_HOUR_DIFFERENCE = 2
MAX_DISTANCE_RATIO = 0.3
NEARBY_METERS = 500
MIN_MAJORITY = 0.6


def _local_hour(entry: JournalEntry, tz: str) -> int:
    return pendulum.instance(entry.start_time).in_timezone(tz).hour


def _has_coordinates(location: Optional[Location]) -> bool:
    return location is not None and location.has_coordinates


def _distance(a: Optional[Location], b: Optional[Location]) -> float:
    if not _has_coordinates(a) or not _has_coordinates(b):
        return float("inf")
    return haversine_meters(a.latitude, a.longitude, b.latitude, b.longitude)


def _most_common(values: List[Optional[str]]) -> Optional[str]:
    counts = Counter(v for v in values if v)
    return counts.most_common(1)[0][0] if counts else None


class HistorySuggestionStrategy(ISuggestionStrategy):
    """Suggest what the same driver did on similar trips with the same vehicle."""

    source = SuggestionSource.HISTORY

    def __init__(self, history: List[JournalEntry], tz: str = "Europe/Stockholm"):
        self.history = history
        self.tz = tz

    def is_similar(self, entry: JournalEntry, past: JournalEntry) -> bool:
        hour_difference = abs(_local_hour(entry, self.tz) - _local_hour(past, self.tz))
        if hour_difference > MAX_HOUR_DIFFERENCE:
            return False

        if entry.distance_km > 0 and past.distance_km > 0:
            ratio = abs(entry.distance_km - past.distance_km) / entry.distance_km
            if ratio > MAX_DISTANCE_RATIO:
                return False

        # Only compare places when both trips have a start point
        if _has_coordinates(entry.start_location) and _has_coordinates(
            past.start_location
        ):
            return (
                _distance(entry.start_location, past.start_location) < NEARBY_METERS
                or _distance(entry.end_location, past.end_location) < NEARBY_METERS
            )
        return True

    def similar_trips(self, entry: JournalEntry) -> List[JournalEntry]:
        return [
            h
            for h in self.history
            if h.id != entry.id
            and h.driver_email == entry.driver_email
            and h.vehicle_id == entry.vehicle_id
            and h.trip_type != TripType.PENDING
            and self.is_similar(entry, h)
        ]

    async def suggest(self, entry: JournalEntry) -> Optional[ClassificationSuggestion]:
        similar = self.similar_trips(entry)
        if not similar:
            return None

        trip_type, count = Counter(h.trip_type for h in similar).most_common(1)[0]
        share = count / len(similar)
        if share < MIN_MAJORITY:
            return None

        suggestion = ClassificationSuggestion(
            entry_id=entry.id,
            trip_type=trip_type,
            confidence=round(share * 100, 1),
            reasoning=f"{len(similar)} tidigare liknande resor",
            source=self.source,
            state=ReviewState.SUGGESTED,
        )
        if trip_type == TripType.BUSINESS:
            suggestion.purpose = _most_common([h.purpose for h in similar])
            suggestion.project_code = _most_common([h.project_code for h in similar])
            suggestion.customer = _most_common([h.customer for h in similar])
        return suggestion
