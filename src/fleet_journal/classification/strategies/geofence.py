from typing import List, Optional

from src.fleet_journal.classification.geofence import suggest_for_entry
from src.fleet_journal.classification.schemas import (
    ClassificationSuggestion,
    ReviewState,
    SuggestionSource,
)
from src.fleet_journal.classification.strategies.interface import ISuggestionStrategy
from src.fleet_journal.geofences.schemas import Geofence
from src.fleet_journal.journal.schemas import JournalEntry


class GeofenceSuggestionStrategy(ISuggestionStrategy):
    source = SuggestionSource.GEOFENCE

    def __init__(self, geofences: List[Geofence]):
        self.geofences = geofences

    async def suggest(self, entry: JournalEntry) -> Optional[ClassificationSuggestion]:
        match = suggest_for_entry(entry, self.geofences)
        if match is None:
            return None
        return ClassificationSuggestion(
            entry_id=entry.id,
            trip_type=match.trip_type,
            project_code=match.project_code,
            customer=match.customer,
            reasoning=f"Geofence: {match.geofence.name}",
            source=self.source,
            state=ReviewState.SUGGESTED,
        )
