from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.fleet_journal.journal.schemas import TripType


class GeofenceType(str, Enum):
    OFFICE = "kontor"
    CUSTOMER_SITE = "kundplats"
    WAREHOUSE = "lager"
    WORKSHOP = "verkstad"
    OTHER = "övrigt"


class GeofenceBase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    type: GeofenceType = GeofenceType.OFFICE
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    radius_meters: float = Field(200, gt=0)
    auto_classify_as: Optional[TripType] = None
    default_project_code: Optional[str] = None
    default_customer: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool = True

    @model_validator(mode="after")
    def directive_is_final_type(self) -> "GeofenceBase":
        if self.auto_classify_as == TripType.PENDING:
            raise ValueError("auto_classify_as must be tjänst, privat or empty")
        return self


class GeofenceCreate(GeofenceBase):
    pass


class Geofence(GeofenceBase):
    id: str
    created_date: Optional[datetime] = None
