from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from src.fleet_journal.journal.schemas import TripType


class SuggestionSource(str, Enum):
    GEOFENCE = "geofence"
    HISTORY = "history"
    AI = "ai"
    MANUAL = "manual"


class ReviewState(str, Enum):
    UNREVIEWED = "unreviewed"
    SUGGESTED = "suggested"
    APPROVED = "approved"
    EDITED_APPROVED = "edited_approved"
    REJECTED = "rejected"


class ClassificationSuggestion(BaseModel):
    """A proposed classification for one journal entry, plus its review state."""

    entry_id: str
    trip_type: Optional[TripType] = None
    purpose: Optional[str] = None
    project_id: Optional[str] = None
    project_code: Optional[str] = None
    customer: Optional[str] = None
    notes: Optional[str] = None
    confidence: Optional[float] = Field(None, ge=0, le=100)
    reasoning: Optional[str] = None
    source: Optional[SuggestionSource] = None
    error: Optional[str] = None
    state: ReviewState = ReviewState.UNREVIEWED

    @computed_field  # type: ignore[prop-decorator]
    @property
    def approved(self) -> bool:
        return self.state in (ReviewState.APPROVED, ReviewState.EDITED_APPROVED)

    def to_snapshot(self) -> Dict[str, Any]:
        return self.model_dump(
            mode="json",
            include={
                "trip_type",
                "purpose",
                "project_code",
                "customer",
                "confidence",
                "reasoning",
                "source",
            },
        )


class OfficeLocation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    latitude: float
    longitude: float
    radius_meters: Optional[float] = None


class JournalPolicy(BaseModel):
    """Company rules for automatic journal processing."""

    model_config = ConfigDict(extra="ignore")

    auto_categorize_enabled: bool = False
    # 0 = Sunday, matching the stored policy records
    work_days: Optional[List[int]] = None
    work_hours_start: Optional[str] = None
    work_hours_end: Optional[str] = None
    office_locations: List[OfficeLocation] = []
    require_purpose_over_km: Optional[float] = None
    auto_approve_threshold_km: Optional[float] = None


class CommitResult(BaseModel):
    written_ids: List[str] = []
    rejected_ids: List[str] = []
    untouched_ids: List[str] = []


class SuggestRequest(BaseModel):
    entry_ids: List[str] = Field(..., min_length=1)
    sources: List[SuggestionSource] = [
        SuggestionSource.GEOFENCE,
        SuggestionSource.HISTORY,
        SuggestionSource.AI,
    ]


class RegisterItem(BaseModel):
    """One reviewed trip as submitted by the reviewer."""

    entry_id: str
    approved: bool = True
    trip_type: Optional[TripType] = None
    purpose: Optional[str] = None
    project_id: Optional[str] = None
    project_code: Optional[str] = None
    customer: Optional[str] = None
    notes: Optional[str] = None
    source: Optional[SuggestionSource] = None
    confidence: Optional[float] = Field(None, ge=0, le=100)
    reasoning: Optional[str] = None


class RegisterRequest(BaseModel):
    items: List[RegisterItem] = Field(..., min_length=1)
