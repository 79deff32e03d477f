from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field, model_validator

from src.fleet_journal.ingestion.schemas import TimeWindow


class VehicleSyncResult(BaseModel):
    vehicle_id: str
    registration_number: Optional[str] = None
    fetched: int = 0
    synced: int = 0
    skipped: int = 0
    linked: int = 0
    write_failures: List[str] = []
    error: Optional[str] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def ok(self) -> bool:
        return self.error is None


class SyncReport(BaseModel):
    """Outcome of a multi-vehicle sync. Failed vehicles never abort the batch."""

    results: List[VehicleSyncResult] = []

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_vehicles(self) -> int:
        return len(self.results)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def synced_vehicles(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def failed_vehicles(self) -> int:
        return self.total_vehicles - self.synced_vehicles

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_synced(self) -> int:
        return sum(r.synced for r in self.results)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_skipped(self) -> int:
        return sum(r.skipped for r in self.results)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def summary(self) -> str:
        return (
            f"synced {self.synced_vehicles} of {self.total_vehicles} vehicles; "
            f"{self.failed_vehicles} failed"
        )


class SyncRequest(BaseModel):
    """Optional bounds; without them the configured lookback window is used."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    max_vehicles: Optional[int] = Field(None, gt=0)

    @model_validator(mode="after")
    def bounds_together(self) -> "SyncRequest":
        if (self.start is None) != (self.end is None):
            raise ValueError("start and end must be given together")
        if self.start and self.end and self.end < self.start:
            raise ValueError("end must be after or equal to start")
        return self

    def window(self, lookback_days: int, tz: str) -> TimeWindow:
        if self.start and self.end:
            return TimeWindow.custom(self.start, self.end)
        return TimeWindow.lookback(lookback_days, tz=tz)
