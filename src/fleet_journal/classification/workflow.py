import logging
from typing import Any, Dict, List, Optional, Sequence

from src.fleet_journal.classification.exceptions import (
    AdapterException,
    EntryNotInSessionException,
    InvalidTransitionException,
)
from src.fleet_journal.classification.schemas import (
    ClassificationSuggestion,
    CommitResult,
    ReviewState,
    SuggestionSource,
)
from src.fleet_journal.classification.strategies.interface import ISuggestionStrategy
from src.fleet_journal.entity_store.exceptions import (
    EntityStoreException,
    StoreWriteException,
)
from src.fleet_journal.entity_store.interface import JOURNAL_ENTRIES
from src.fleet_journal.journal.exceptions import JournalValidationException
from src.fleet_journal.journal.repositories import IJournalRepository
from src.fleet_journal.journal.schemas import (
    CurrentUser,
    EntryStatus,
    JournalEntry,
    Project,
    TripType,
)

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    "trip_type",
    "purpose",
    "project_id",
    "project_code",
    "customer",
    "notes",
}


class ClassificationSession:
    """
    Review of a batch of pending journal entries.

    Each entry moves unreviewed -> suggested -> approved, edited_approved or
    rejected. Only approved and edited_approved entries are written on commit;
    rejected ones stay pending for a later pass.
    """

    def __init__(
        self,
        entries: List[JournalEntry],
        journal_repo: IJournalRepository,
        strategies: Sequence[ISuggestionStrategy] = (),
        projects: Optional[Dict[str, Project]] = None,
    ):
        self._repo = journal_repo
        self._strategies = list(strategies)
        self._projects = projects or {}
        self._entries: Dict[str, JournalEntry] = {e.id: e for e in entries}
        self._items: Dict[str, ClassificationSuggestion] = {
            e.id: ClassificationSuggestion(entry_id=e.id) for e in entries
        }
        self._committed: set[str] = set()

    @property
    def items(self) -> List[ClassificationSuggestion]:
        return list(self._items.values())

    def item(self, entry_id: str) -> ClassificationSuggestion:
        if entry_id not in self._items:
            raise EntryNotInSessionException(entry_id)
        return self._items[entry_id]

    def by_state(self, *states: ReviewState) -> List[ClassificationSuggestion]:
        return [i for i in self._items.values() if i.state in states]

    async def suggest(self) -> List[ClassificationSuggestion]:
        """
        Run the strategies in order for every unreviewed entry and attach the
        first suggestion. Adapter errors are kept on the entry and the next
        strategy is tried.
        """
        for entry_id, entry in self._entries.items():
            item = self._items[entry_id]
            if item.state != ReviewState.UNREVIEWED:
                continue
            for strategy in self._strategies:
                try:
                    suggestion = await strategy.suggest(entry)
                except AdapterException as e:
                    logger.warning(f"No {strategy.source.value} suggestion: {e}")
                    item.error = "Kunde inte analysera resan"
                    continue
                if suggestion is not None:
                    self.attach(entry_id, suggestion)
                    break
        return self.items

    def attach(
        self, entry_id: str, suggestion: ClassificationSuggestion
    ) -> ClassificationSuggestion:
        current = self.item(entry_id)
        if current.state not in (ReviewState.UNREVIEWED, ReviewState.SUGGESTED):
            raise InvalidTransitionException(entry_id, current.state.value, "attach")
        item = suggestion.model_copy(
            update={
                "entry_id": entry_id,
                "state": ReviewState.SUGGESTED,
                "error": None,
                "project_id": suggestion.project_id
                or self._project_id_for(suggestion.project_code),
            }
        )
        self._items[entry_id] = item
        return item

    def approve(self, entry_id: str) -> ClassificationSuggestion:
        item = self.item(entry_id)
        if item.state == ReviewState.UNREVIEWED:
            raise InvalidTransitionException(entry_id, item.state.value, "approve")
        if item.state in (ReviewState.APPROVED, ReviewState.EDITED_APPROVED):
            return item
        item.state = ReviewState.APPROVED
        return item

    def edit(self, entry_id: str, **changes: Any) -> ClassificationSuggestion:
        """Manual classification; allowed from any state, including after an error."""
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot edit fields: {', '.join(sorted(unknown))}")
        item = self.item(entry_id)

        if "trip_type" in changes and changes["trip_type"] is not None:
            changes["trip_type"] = TripType(changes["trip_type"])
        project_id = changes.get("project_id")
        if project_id and project_id in self._projects:
            project = self._projects[project_id]
            changes.setdefault("project_code", project.project_code)
            changes.setdefault("customer", project.customer)

        for field, value in changes.items():
            setattr(item, field, value)
        if item.source is None:
            item.source = SuggestionSource.MANUAL
        item.state = ReviewState.EDITED_APPROVED
        return item

    def reject(self, entry_id: str) -> ClassificationSuggestion:
        item = self.item(entry_id)
        item.state = ReviewState.REJECTED
        return item

    def approve_all(self) -> int:
        suggested = self.by_state(ReviewState.SUGGESTED)
        for item in suggested:
            item.state = ReviewState.APPROVED
        return len(suggested)

    def validate(self) -> None:
        reasons: Dict[str, str] = {}
        for item in self.by_state(ReviewState.APPROVED, ReviewState.EDITED_APPROVED):
            if item.trip_type in (None, TripType.PENDING):
                reasons[item.entry_id] = "trip type missing"
            elif item.trip_type == TripType.BUSINESS and not _has_text(item.purpose):
                reasons[item.entry_id] = "purpose required for business trips"
        if reasons:
            logger.warning(f"Classification batch blocked: {reasons}")
            raise JournalValidationException(reasons)

    async def commit(self, submitter: CurrentUser) -> CommitResult:
        """
        Write every approved entry. Nothing is written when validation fails.
        A store failure stops the batch and reports the ids already written;
        those writes are not rolled back.
        """
        self.validate()

        written: List[str] = []
        approved = self.by_state(ReviewState.APPROVED, ReviewState.EDITED_APPROVED)
        for item in approved:
            if item.entry_id in self._committed:
                continue
            try:
                await self._repo.update(item.entry_id, self._patch(item, submitter))
            except EntityStoreException as e:
                logger.error(
                    f"Commit stopped at entry {item.entry_id} "
                    f"after {len(written)} writes: {e}"
                )
                raise StoreWriteException(
                    JOURNAL_ENTRIES, str(e), written_ids=written
                ) from e
            written.append(item.entry_id)
            self._committed.add(item.entry_id)

        logger.info(f"Committed {len(written)} journal entries for {submitter.email}")
        return CommitResult(
            written_ids=written,
            rejected_ids=[i.entry_id for i in self.by_state(ReviewState.REJECTED)],
            untouched_ids=[
                i.entry_id
                for i in self.by_state(ReviewState.UNREVIEWED, ReviewState.SUGGESTED)
            ],
        )

    def _patch(
        self, item: ClassificationSuggestion, submitter: CurrentUser
    ) -> Dict[str, Any]:
        patch: Dict[str, Any] = {
            "trip_type": item.trip_type.value,
            "purpose": item.purpose,
            "project_id": item.project_id,
            "project_code": item.project_code,
            "customer": item.customer,
            "status": EntryStatus.SUBMITTED.value,
            "driver_email": submitter.email,
            "driver_name": submitter.full_name,
        }
        if item.notes is not None:
            patch["notes"] = item.notes
        if item.source not in (None, SuggestionSource.MANUAL):
            patch["suggested_classification"] = item.to_snapshot()
        return patch

    def _project_id_for(self, project_code: Optional[str]) -> Optional[str]:
        if not project_code:
            return None
        for project in self._projects.values():
            if project.project_code == project_code:
                return project.id
        return None


def _has_text(value: Optional[str]) -> bool:
    return bool(value and value.strip())

