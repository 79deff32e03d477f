import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


class ProviderLocation(BaseModel):
    latitude: float
    longitude: float
    address: Optional[str] = None


class ProviderTrip(BaseModel):
    """Trip record as returned by the provider's querytrips action."""

    model_config = ConfigDict(extra="ignore")

    tripid: Optional[str] = None
    begintime: int = Field(..., ge=0)
    endtime: int = Field(..., ge=0)
    mileage: float = 0.0
    slat: Optional[float] = None
    slon: Optional[float] = None
    elat: Optional[float] = None
    elon: Optional[float] = None
    beginlocation: Optional[ProviderLocation] = None
    endlocation: Optional[ProviderLocation] = None

    @field_validator("tripid", mode="before")
    @classmethod
    def coerce_tripid(cls, v: Any) -> Optional[str]:
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("mileage", mode="before")
    @classmethod
    def default_mileage(cls, v: Any) -> float:
        return 0.0 if v is None else v

    @property
    def start_location(self) -> Optional[ProviderLocation]:
        if self.beginlocation:
            return self.beginlocation
        if self.slat is not None and self.slon is not None:
            return ProviderLocation(latitude=self.slat, longitude=self.slon)
        return None

    @property
    def end_location(self) -> Optional[ProviderLocation]:
        if self.endlocation:
            return self.endlocation
        if self.elat is not None and self.elon is not None:
            return ProviderLocation(latitude=self.elat, longitude=self.elon)
        return None


class PositionRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    deviceid: str
    callat: Optional[float] = None
    callon: Optional[float] = None
    speed: Optional[float] = None
    updatetime: Optional[int] = None

    @field_validator("deviceid", mode="before")
    @classmethod
    def coerce_deviceid(cls, v: Any) -> str:
        return str(v)


class Device(BaseModel):
    model_config = ConfigDict(extra="ignore")

    deviceid: str
    devicename: Optional[str] = None
    devicetype: Optional[Any] = None

    @field_validator("deviceid", mode="before")
    @classmethod
    def coerce_deviceid(cls, v: Any) -> str:
        return str(v)


def parse_records(model: type[BaseModel], raw: List[Dict[str, Any]]) -> List[Any]:
    """Validate provider records one by one, dropping the ones that do not fit."""
    parsed = []
    for item in raw or []:
        try:
            parsed.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Dropping malformed {model.__name__}: {e.errors()}")
    return parsed
