from typing import List, Optional

from src.fleet_journal.classification.ai_adapter import AISuggestionAdapter
from src.fleet_journal.classification.schemas import (
    ClassificationSuggestion,
    SuggestionSource,
)
from src.fleet_journal.classification.strategies.interface import ISuggestionStrategy
from src.fleet_journal.journal.schemas import JournalEntry


class AISuggestionStrategy(ISuggestionStrategy):
    """Never abstains; adapter failures propagate as AdapterException."""

    source = SuggestionSource.AI

    def __init__(self, adapter: AISuggestionAdapter, history: List[JournalEntry]):
        self.adapter = adapter
        self.history = history

    async def suggest(self, entry: JournalEntry) -> Optional[ClassificationSuggestion]:
        return await self.adapter.suggest(entry, self.history)
