from abc import ABC, abstractmethod
from typing import Optional

from src.fleet_journal.classification.schemas import (
    ClassificationSuggestion,
    SuggestionSource,
)
from src.fleet_journal.journal.schemas import JournalEntry


class ISuggestionStrategy(ABC):
    source: SuggestionSource

    @abstractmethod
    async def suggest(
        self, entry: JournalEntry
    ) -> Optional[ClassificationSuggestion]: ...
