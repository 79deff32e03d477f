from datetime import datetime
from typing import List

from pydantic import BaseModel, computed_field

from src.fleet_journal.journal.schemas import JournalEntry
from src.fleet_journal.vehicles.schemas import Vehicle


class VehicleTrips(BaseModel):
    vehicle: Vehicle
    entries: List[JournalEntry]


class UnregisteredTrips(BaseModel):
    start: datetime
    end: datetime
    groups: List[VehicleTrips]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def caught_up(self) -> bool:
        return not self.groups
