import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from src.fleet_journal.classification.schemas import JournalPolicy
from src.fleet_journal.entity_store.exceptions import (
    EntityStoreException,
    StoreWriteException,
)
from src.fleet_journal.entity_store.interface import (
    JOURNAL_ENTRIES,
    JOURNAL_POLICIES,
    PROJECTS,
    IEntityStore,
)
from src.fleet_journal.journal.schemas import (
    EntryStatus,
    JournalEntry,
    JournalEntryCreate,
    Project,
    TripType,
)

logger = logging.getLogger(__name__)


class IJournalRepository(ABC):
    @abstractmethod
    async def list_for_vehicle(self, vehicle_id: str) -> List[JournalEntry]: ...

    @abstractmethod
    async def list_for_vehicles(self, vehicle_ids: List[str]) -> List[JournalEntry]: ...

    @abstractmethod
    async def get(self, entry_id: str) -> Optional[JournalEntry]: ...

    @abstractmethod
    async def find_by_ids(self, entry_ids: List[str]) -> List[JournalEntry]: ...

    @abstractmethod
    async def list_pending(self) -> List[JournalEntry]: ...

    @abstractmethod
    async def list_approved(
        self,
        driver_email: Optional[str] = None,
        trip_type: Optional[TripType] = None,
        limit: Optional[int] = None,
    ) -> List[JournalEntry]: ...

    @abstractmethod
    async def create(self, entry: JournalEntryCreate) -> JournalEntry: ...

    @abstractmethod
    async def update(self, entry_id: str, patch: Dict[str, Any]) -> JournalEntry: ...


class JournalRepository(IJournalRepository):
    def __init__(self, store: IEntityStore):
        self._entries = store.collection(JOURNAL_ENTRIES)

    async def list_for_vehicle(self, vehicle_id: str) -> List[JournalEntry]:
        records = await self._entries.filter({"vehicle_id": vehicle_id})
        return [JournalEntry.model_validate(r) for r in records]

    async def list_for_vehicles(self, vehicle_ids: List[str]) -> List[JournalEntry]:
        if not vehicle_ids:
            return []
        records = await self._entries.filter({"vehicle_id": list(vehicle_ids)})
        return [JournalEntry.model_validate(r) for r in records]

    async def get(self, entry_id: str) -> Optional[JournalEntry]:
        record = await self._entries.get(entry_id)
        return JournalEntry.model_validate(record) if record else None

    async def find_by_ids(self, entry_ids: List[str]) -> List[JournalEntry]:
        if not entry_ids:
            return []
        records = await self._entries.filter({"id": list(entry_ids)})
        return [JournalEntry.model_validate(r) for r in records]

    async def list_pending(self) -> List[JournalEntry]:
        records = await self._entries.filter(
            {"trip_type": TripType.PENDING.value, "is_deleted": False}
        )
        return [JournalEntry.model_validate(r) for r in records]

    async def list_approved(
        self,
        driver_email: Optional[str] = None,
        trip_type: Optional[TripType] = None,
        limit: Optional[int] = None,
    ) -> List[JournalEntry]:
        conditions: Dict[str, Any] = {
            "status": EntryStatus.APPROVED.value,
            "is_deleted": False,
        }
        if driver_email:
            conditions["driver_email"] = driver_email
        if trip_type:
            conditions["trip_type"] = trip_type.value
        records = await self._entries.filter(
            conditions, order_by="-created_date", limit=limit
        )
        return [JournalEntry.model_validate(r) for r in records]

    async def create(self, entry: JournalEntryCreate) -> JournalEntry:
        try:
            record = await self._entries.create(entry.to_record())
        except EntityStoreException:
            raise
        except Exception as e:
            logger.error(f"Error creating journal entry: {str(e)}")
            raise StoreWriteException(JOURNAL_ENTRIES, str(e)) from e
        return JournalEntry.model_validate(record)

    async def update(self, entry_id: str, patch: Dict[str, Any]) -> JournalEntry:
        try:
            record = await self._entries.update(entry_id, patch)
        except EntityStoreException:
            raise
        except Exception as e:
            logger.error(f"Error updating journal entry {entry_id}: {str(e)}")
            raise StoreWriteException(JOURNAL_ENTRIES, str(e)) from e
        return JournalEntry.model_validate(record)


class ProjectRepository:
    def __init__(self, store: IEntityStore):
        self._projects = store.collection(PROJECTS)

    async def find_by_ids(self, project_ids: List[str]) -> Dict[str, Project]:
        if not project_ids:
            return {}
        records = await self._projects.filter({"id": list(project_ids)})
        return {r["id"]: Project.model_validate(r) for r in records}


class JournalPolicyRepository:
    def __init__(self, store: IEntityStore):
        self._policies = store.collection(JOURNAL_POLICIES)

    async def current(self) -> Optional[JournalPolicy]:
        """The first stored policy applies to the whole fleet."""
        records = await self._policies.list(order_by="created_date", limit=1)
        return JournalPolicy.model_validate(records[0]) if records else None
