import asyncio
import copy
import logging
import uuid
from typing import Any, Dict, List, Optional

import pendulum

from src.fleet_journal.entity_store.exceptions import EntityNotFoundException
from src.fleet_journal.entity_store.interface import (
    IEntityCollection,
    IEntityStore,
    Record,
    apply_query,
)

logger = logging.getLogger(__name__)


def generate_id() -> str:
    return uuid.uuid4().hex


def utc_now_iso() -> str:
    return pendulum.now("UTC").isoformat()


class InMemoryCollection(IEntityCollection):
    def __init__(self, name: str, table: List[Record], lock: asyncio.Lock):
        self.name = name
        self._table = table
        self._lock = lock

    async def list(
        self, order_by: Optional[str] = "created_date", limit: Optional[int] = 100
    ) -> List[Record]:
        return copy.deepcopy(apply_query(self._table, None, order_by, limit))

    async def filter(
        self,
        conditions: Dict[str, Any],
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Record]:
        return copy.deepcopy(apply_query(self._table, conditions, order_by, limit))

    async def get(self, entity_id: str) -> Optional[Record]:
        for record in self._table:
            if record["id"] == entity_id:
                return copy.deepcopy(record)
        return None

    async def create(self, data: Record) -> Record:
        now = utc_now_iso()
        record = {
            **copy.deepcopy(data),
            "id": data.get("id") or generate_id(),
            "created_date": now,
            "updated_date": now,
        }
        async with self._lock:
            self._table.append(record)
        logger.debug(f"Created {self.name} record {record['id']}")
        return copy.deepcopy(record)

    async def update(self, entity_id: str, patch: Record) -> Record:
        async with self._lock:
            for index, record in enumerate(self._table):
                if record["id"] == entity_id:
                    # Swap in a new dict so readers never see a half-applied patch
                    updated = {
                        **record,
                        **copy.deepcopy(patch),
                        "id": entity_id,
                        "updated_date": utc_now_iso(),
                    }
                    self._table[index] = updated
                    return copy.deepcopy(updated)
        raise EntityNotFoundException(self.name, entity_id)

    async def delete(self, entity_id: str) -> Dict[str, bool]:
        async with self._lock:
            self._table[:] = [r for r in self._table if r["id"] != entity_id]
        return {"success": True}


class InMemoryEntityStore(IEntityStore):
    """Process-scoped store: one ordered list of records per collection name."""

    def __init__(self, initial: Optional[Dict[str, List[Record]]] = None):
        self._tables: Dict[str, List[Record]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        for name, records in (initial or {}).items():
            self.seed(name, records)

    def collection(self, name: str) -> InMemoryCollection:
        if name not in self._tables:
            self._tables[name] = []
            self._locks[name] = asyncio.Lock()
        return InMemoryCollection(name, self._tables[name], self._locks[name])

    def seed(self, name: str, records: List[Record]) -> None:
        """Replace a collection's contents, filling in ids and timestamps."""
        now = utc_now_iso()
        self.collection(name)
        self._tables[name][:] = [
            {
                **r,
                "id": r.get("id") or generate_id(),
                "created_date": r.get("created_date") or now,
                "updated_date": r.get("updated_date") or now,
            }
            for r in copy.deepcopy(records)
        ]

    def clear(self) -> None:
        for table in self._tables.values():
            table.clear()
