from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from src.fleet_journal.entity_store.interface import USERS, VEHICLES, IEntityStore
from src.fleet_journal.journal.schemas import CurrentUser
from src.fleet_journal.vehicles.schemas import Vehicle


class IVehicleRepository(ABC):
    @abstractmethod
    async def list_all(self) -> List[Vehicle]: ...

    @abstractmethod
    async def list_with_gps(self) -> List[Vehicle]: ...

    @abstractmethod
    async def get(self, vehicle_id: str) -> Optional[Vehicle]: ...

    @abstractmethod
    async def create(self, data: Dict[str, Any]) -> Vehicle: ...

    @abstractmethod
    async def find_user(self, email: str) -> Optional[CurrentUser]: ...


class VehicleRepository(IVehicleRepository):
    def __init__(self, store: IEntityStore):
        self._vehicles = store.collection(VEHICLES)
        self._users = store.collection(USERS)

    async def list_all(self) -> List[Vehicle]:
        records = await self._vehicles.list(order_by="registration_number", limit=None)
        return [Vehicle.model_validate(r) for r in records]

    async def list_with_gps(self) -> List[Vehicle]:
        return [v for v in await self.list_all() if v.has_gps]

    async def get(self, vehicle_id: str) -> Optional[Vehicle]:
        record = await self._vehicles.get(vehicle_id)
        return Vehicle.model_validate(record) if record else None

    async def create(self, data: Dict[str, Any]) -> Vehicle:
        return Vehicle.model_validate(await self._vehicles.create(data))

    async def find_user(self, email: str) -> Optional[CurrentUser]:
        records = await self._users.filter({"email": email}, limit=1)
        return CurrentUser.model_validate(records[0]) if records else None
