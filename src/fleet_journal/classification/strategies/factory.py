from typing import List, Optional

from src.fleet_journal.classification.ai_adapter import AISuggestionAdapter
from src.fleet_journal.classification.schemas import SuggestionSource
from src.fleet_journal.classification.strategies.ai import AISuggestionStrategy
from src.fleet_journal.classification.strategies.geofence import (
    GeofenceSuggestionStrategy,
)
from src.fleet_journal.classification.strategies.history import (
    HistorySuggestionStrategy,
)
from src.fleet_journal.classification.strategies.interface import ISuggestionStrategy
from src.fleet_journal.geofences.schemas import Geofence
from src.fleet_journal.journal.schemas import JournalEntry


class SuggestionStrategyFactory:
    @staticmethod
    def create(
        source: SuggestionSource,
        geofences: Optional[List[Geofence]] = None,
        history: Optional[List[JournalEntry]] = None,
        adapter: Optional[AISuggestionAdapter] = None,
        tz: str = "Europe/Stockholm",
    ) -> ISuggestionStrategy:
        if source == SuggestionSource.GEOFENCE:
            return GeofenceSuggestionStrategy(geofences or [])
        elif source == SuggestionSource.HISTORY:
            return HistorySuggestionStrategy(history or [], tz=tz)
        elif source == SuggestionSource.AI:
            if adapter is None:
                raise ValueError("adapter is required for AI suggestions")
            return AISuggestionStrategy(adapter, history or [])
        else:
            raise ValueError(f"Unsupported suggestion source: {source}")
