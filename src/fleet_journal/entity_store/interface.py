from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

Record = Dict[str, Any]

# Collection names used by the journal pipeline
VEHICLES = "Vehicle"
JOURNAL_ENTRIES = "DrivingJournalEntry"
GEOFENCES = "Geofence"
PROJECTS = "Project"
USERS = "User"
JOURNAL_POLICIES = "JournalPolicy"


class IEntityCollection(ABC):
    """CRUD handle over one named collection."""

    name: str

    @abstractmethod
    async def list(
        self, order_by: Optional[str] = "created_date", limit: Optional[int] = 100
    ) -> List[Record]: ...

    @abstractmethod
    async def filter(
        self,
        conditions: Dict[str, Any],
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Record]:
        """
        Return records whose fields equal every condition. A list value
        means "field is one of the values".
        """
        ...

    @abstractmethod
    async def get(self, entity_id: str) -> Optional[Record]: ...

    @abstractmethod
    async def create(self, data: Record) -> Record: ...

    @abstractmethod
    async def update(self, entity_id: str, patch: Record) -> Record: ...

    @abstractmethod
    async def delete(self, entity_id: str) -> Dict[str, bool]: ...


class IEntityStore(ABC):
    @abstractmethod
    def collection(self, name: str) -> IEntityCollection: ...

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass


def matches(record: Record, conditions: Dict[str, Any]) -> bool:
    for key, value in conditions.items():
        if isinstance(value, (list, tuple, set)):
            if record.get(key) not in value:
                return False
        elif record.get(key) != value:
            return False
    return True


def sort_records(records: List[Record], order_by: Optional[str]) -> List[Record]:
    """Sort by a field name, "-field" for descending. Missing values go last."""
    if not order_by:
        return list(records)
    descending = order_by.startswith("-")
    field = order_by[1:] if descending else order_by
    present = [r for r in records if r.get(field) is not None]
    missing = [r for r in records if r.get(field) is None]
    present.sort(key=lambda r: r[field], reverse=descending)
    return present + missing


def apply_query(
    records: List[Record],
    conditions: Optional[Dict[str, Any]],
    order_by: Optional[str],
    limit: Optional[int],
) -> List[Record]:
    if conditions:
        records = [r for r in records if matches(r, conditions)]
    records = sort_records(records, order_by)
    if limit is not None:
        records = records[:limit]
    return records
