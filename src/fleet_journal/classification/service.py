import logging
from typing import List, Optional, Sequence

from src.fleet_journal.classification.ai_adapter import AISuggestionAdapter, LLMClient
from src.fleet_journal.classification.schemas import (
    ClassificationSuggestion,
    CommitResult,
    RegisterItem,
    ReviewState,
    SuggestionSource,
)
from src.fleet_journal.classification.strategies.factory import (
    SuggestionStrategyFactory,
)
from src.fleet_journal.classification.strategies.interface import ISuggestionStrategy
from src.fleet_journal.classification.workflow import ClassificationSession
from src.fleet_journal.config import Settings
from src.fleet_journal.geofences.repositories import GeofenceRepository
from src.fleet_journal.journal.exceptions import JournalEntryNotFoundException
from src.fleet_journal.journal.repositories import (
    IJournalRepository,
    JournalPolicyRepository,
    ProjectRepository,
)
from src.fleet_journal.journal.schemas import CurrentUser, JournalEntry, TripType

logger = logging.getLogger(__name__)

AI_HISTORY_LIMIT = 50


class ClassificationService:
    """Builds review sessions with the context each suggestion source needs."""

    def __init__(
        self,
        journal_repo: IJournalRepository,
        geofence_repo: GeofenceRepository,
        project_repo: ProjectRepository,
        policy_repo: JournalPolicyRepository,
        settings: Settings,
        llm: Optional[LLMClient] = None,
    ):
        self._journal = journal_repo
        self._geofences = geofence_repo
        self._projects = project_repo
        self._policies = policy_repo
        self._settings = settings
        self._llm = llm or LLMClient.from_settings(settings)

    async def _load_entries(self, entry_ids: Sequence[str]) -> List[JournalEntry]:
        entries = await self._journal.find_by_ids(list(dict.fromkeys(entry_ids)))
        found = {e.id for e in entries}
        for entry_id in entry_ids:
            if entry_id not in found:
                raise JournalEntryNotFoundException(entry_id)
        return [e for e in entries if not e.is_deleted]

    async def _build_strategies(
        self, sources: Sequence[SuggestionSource], user: CurrentUser
    ) -> List[ISuggestionStrategy]:
        strategies: List[ISuggestionStrategy] = []
        for source in dict.fromkeys(sources):
            if source == SuggestionSource.GEOFENCE:
                strategy = SuggestionStrategyFactory.create(
                    source, geofences=await self._geofences.list_active()
                )
            elif source == SuggestionSource.HISTORY:
                strategy = SuggestionStrategyFactory.create(
                    source,
                    history=await self._journal.list_approved(),
                    tz=self._settings.TIMEZONE,
                )
            elif source == SuggestionSource.AI:
                adapter = AISuggestionAdapter(
                    self._llm, policy=await self._policies.current()
                )
                history = await self._journal.list_approved(
                    driver_email=user.email,
                    trip_type=TripType.BUSINESS,
                    limit=AI_HISTORY_LIMIT,
                )
                strategy = SuggestionStrategyFactory.create(
                    source, history=history, adapter=adapter
                )
            else:
                continue
            strategies.append(strategy)
        return strategies

    async def open_session(
        self,
        entry_ids: Sequence[str],
        user: CurrentUser,
        sources: Sequence[SuggestionSource] = (),
    ) -> ClassificationSession:
        entries = await self._load_entries(entry_ids)
        project_ids = [e.project_id for e in entries if e.project_id]
        return ClassificationSession(
            entries,
            self._journal,
            strategies=await self._build_strategies(sources, user),
            projects=await self._projects.find_by_ids(project_ids),
        )

    async def suggest(
        self,
        entry_ids: Sequence[str],
        user: CurrentUser,
        sources: Sequence[SuggestionSource],
    ) -> List[ClassificationSuggestion]:
        session = await self.open_session(entry_ids, user, sources)
        return await session.suggest()

    async def register(
        self, items: Sequence[RegisterItem], submitter: CurrentUser
    ) -> CommitResult:
        """Replay the reviewer's decisions on a session and commit it."""
        entries = await self._load_entries([i.entry_id for i in items])
        project_ids = [i.project_id for i in items if i.project_id]
        session = ClassificationSession(
            entries,
            self._journal,
            projects=await self._projects.find_by_ids(project_ids),
        )
        live = {e.id for e in entries}
        for item in items:
            if item.entry_id not in live:
                continue
            if not item.approved:
                session.reject(item.entry_id)
                continue
            if item.source not in (None, SuggestionSource.MANUAL):
                session.attach(
                    item.entry_id,
                    ClassificationSuggestion(
                        entry_id=item.entry_id,
                        source=item.source,
                        confidence=item.confidence,
                        reasoning=item.reasoning,
                        state=ReviewState.SUGGESTED,
                    ),
                )
            session.edit(
                item.entry_id,
                **item.model_dump(
                    include={
                        "trip_type",
                        "purpose",
                        "project_id",
                        "project_code",
                        "customer",
                        "notes",
                    },
                    exclude_none=True,
                ),
            )
        return await session.commit(submitter)
