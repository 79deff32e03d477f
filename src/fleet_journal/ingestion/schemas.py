from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

import pendulum
from pydantic import BaseModel, Field, ValidationInfo, field_validator

from src.fleet_journal.gps_provider.schemas import ProviderTrip


class Period(str, Enum):
    DAY = "day"
    LAST_24H = "24h"
    WEEK = "week"
    MONTH = "month"


class TimeWindow(BaseModel):
    """Closed time window [start, end], both bounds sent to the provider as-is."""

    start: datetime = Field(..., description="Inclusive start")
    end: datetime = Field(..., description="Inclusive end")

    @field_validator("start", "end")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("end")
    @classmethod
    def validate_order(cls, end: datetime, info: ValidationInfo) -> datetime:
        start = info.data.get("start")
        if start and end < start:
            raise ValueError("window end must be after or equal to window start")
        return end

    @property
    def begintime(self) -> int:
        return int(self.start.timestamp())

    @property
    def endtime(self) -> int:
        return int(self.end.timestamp())

    def contains(self, moment: datetime) -> bool:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return self.start <= moment <= self.end

    @classmethod
    def for_period(
        cls, period: Period, now: Optional[datetime] = None, tz: str = "UTC"
    ) -> "TimeWindow":
        current = pendulum.instance(now) if now else pendulum.now(tz)
        current = current.in_timezone(tz)
        if period == Period.DAY:
            start = current.start_of("day")
        elif period == Period.LAST_24H:
            start = current.subtract(hours=24)
        elif period == Period.WEEK:
            start = current.subtract(days=7)
        elif period == Period.MONTH:
            start = current.subtract(days=30)
        else:
            raise ValueError(f"Unsupported period: {period}")
        return cls(start=start, end=current)

    @classmethod
    def lookback(
        cls, days: int, now: Optional[datetime] = None, tz: str = "UTC"
    ) -> "TimeWindow":
        """From the start of the day `days` ago to the end of today."""
        current = pendulum.instance(now) if now else pendulum.now(tz)
        current = current.in_timezone(tz)
        return cls(
            start=current.subtract(days=days).start_of("day"),
            end=current.end_of("day"),
        )

    @classmethod
    def custom(cls, start: datetime, end: datetime) -> "TimeWindow":
        return cls(start=start, end=end)


class DeviceTripsResult(BaseModel):
    device_id: str
    trips: List[ProviderTrip] = []
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None
