from typing import List

from src.fleet_journal.entity_store.interface import GEOFENCES, IEntityStore
from src.fleet_journal.geofences.schemas import Geofence, GeofenceCreate


class GeofenceRepository:
    def __init__(self, store: IEntityStore):
        self._geofences = store.collection(GEOFENCES)

    async def list_all(self) -> List[Geofence]:
        records = await self._geofences.list(order_by="-created_date", limit=None)
        return [Geofence.model_validate(r) for r in records]

    async def list_active(self) -> List[Geofence]:
        records = await self._geofences.filter({"is_active": True})
        return [Geofence.model_validate(r) for r in records]

    async def create(self, geofence: GeofenceCreate) -> Geofence:
        record = await self._geofences.create(geofence.model_dump(mode="json"))
        return Geofence.model_validate(record)

    async def delete(self, geofence_id: str) -> None:
        await self._geofences.delete(geofence_id)
