import logging
from abc import ABC, abstractmethod

import pendulum

from src.fleet_journal.journal.exceptions import (
    InvalidReviewException,
    JournalEntryNotFoundException,
)
from src.fleet_journal.journal.repositories import IJournalRepository
from src.fleet_journal.journal.schemas import (
    CurrentUser,
    EntryStatus,
    JournalEntry,
    ReviewDecision,
    ReviewRequest,
    TripType,
)

logger = logging.getLogger(__name__)


class IJournalReviewService(ABC):
    @abstractmethod
    async def review(
        self, entry_id: str, request: ReviewRequest, reviewer: CurrentUser
    ) -> JournalEntry:
        pass

    @abstractmethod
    async def soft_delete(self, entry_id: str) -> JournalEntry:
        pass


class JournalReviewService(IJournalReviewService):
    def __init__(self, journal_repo: IJournalRepository):
        self._repo = journal_repo

    async def _get_live(self, entry_id: str) -> JournalEntry:
        entry = await self._repo.get(entry_id)
        if entry is None or entry.is_deleted:
            raise JournalEntryNotFoundException(entry_id)
        return entry

    async def review(
        self, entry_id: str, request: ReviewRequest, reviewer: CurrentUser
    ) -> JournalEntry:
        """Approve or reject a classified entry on behalf of an approver."""
        entry = await self._get_live(entry_id)
        if entry.trip_type == TripType.PENDING:
            raise InvalidReviewException(entry_id, "entry is not classified yet")

        status = (
            EntryStatus.APPROVED
            if request.decision == ReviewDecision.APPROVE
            else EntryStatus.REJECTED
        )
        logger.info(f"{reviewer.email} set entry {entry_id} to {status.value}")
        return await self._repo.update(
            entry_id,
            {
                "status": status.value,
                "reviewed_by": reviewer.email,
                "reviewed_at": pendulum.now("UTC").isoformat(),
                "review_comment": request.comment,
            },
        )

    async def soft_delete(self, entry_id: str) -> JournalEntry:
        await self._get_live(entry_id)
        logger.info(f"Soft deleting journal entry {entry_id}")
        return await self._repo.update(entry_id, {"is_deleted": True})
