from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TripType(str, Enum):
    PENDING = "väntar"
    BUSINESS = "tjänst"
    PRIVATE = "privat"


class EntryStatus(str, Enum):
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class Location(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class JournalEntryBase(BaseModel):
    """Fields shared by new and persisted driving journal entries."""

    model_config = ConfigDict(extra="ignore", use_enum_values=False)

    vehicle_id: str
    registration_number: Optional[str] = None
    gps_trip_id: Optional[str] = None
    driver_email: Optional[str] = None
    driver_name: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    start_location: Optional[Location] = None
    end_location: Optional[Location] = None
    distance_km: float = Field(0.0, ge=0)
    duration_minutes: int = Field(0, ge=0)
    trip_type: TripType = TripType.PENDING
    purpose: Optional[str] = None
    project_id: Optional[str] = None
    project_code: Optional[str] = None
    customer: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[EntryStatus] = None
    is_deleted: bool = False
    is_anomaly: bool = False
    anomaly_reason: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class JournalEntryCreate(JournalEntryBase):
    """A new entry as produced by the sync reconciler."""

    @model_validator(mode="after")
    def pending_has_no_attribution(self) -> "JournalEntryCreate":
        if self.trip_type == TripType.PENDING and (
            self.purpose or self.project_id or self.project_code or self.customer
        ):
            raise ValueError(
                "Pending entries cannot carry purpose, project or customer"
            )
        return self


class JournalEntry(JournalEntryBase):
    id: str
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_comment: Optional[str] = None
    suggested_classification: Optional[Dict[str, Any]] = None
    created_date: Optional[datetime] = None
    updated_date: Optional[datetime] = None

    @property
    def needs_classification(self) -> bool:
        return self.trip_type == TripType.PENDING or not (self.purpose or "").strip()


class Project(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: Optional[str] = None
    project_code: Optional[str] = None
    customer: Optional[str] = None
    status: Optional[str] = None


class CurrentUser(BaseModel):
    """Identity of the user performing an action."""

    email: str
    full_name: Optional[str] = None
    role: str = "user"


class ReviewDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class ReviewRequest(BaseModel):
    decision: ReviewDecision
    comment: Optional[str] = None
