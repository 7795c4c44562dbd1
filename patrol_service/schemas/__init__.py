# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Request / Response schemas, API contract definitions, plus the status
vocabularies and state machines shared by the service layer.
"""
import datetime as dt
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from patrol_service.models.domain import ConflictEntry

# ── Incident statuses ──
INCIDENT_STATUSES = ("pending", "verified", "rejected", "in_progress", "resolved", "cancelled")

# Administrative review; only legal before any patrol group references the incident.
REVIEW_TRANSITIONS: Dict[str, set] = {
    "pending":     {"verified", "rejected", "cancelled"},
    "verified":    {"rejected", "cancelled"},
    "rejected":    set(),
    "in_progress": set(),
    "resolved":    set(),
    "cancelled":   set(),
}
SCHEDULABLE_INCIDENT_STATUSES = ("verified", "in_progress")

# ── Patrol group statuses ──
GROUP_STATUSES = ("scheduled", "in_progress", "completed", "cancelled")
ACTIVE_GROUP_STATUSES = ("scheduled", "in_progress")
TERMINAL_GROUP_STATUSES = ("completed", "cancelled")

ALLOWED_TRANSITIONS: Dict[str, set] = {
    "scheduled":   {"in_progress", "cancelled"},
    "in_progress": {"completed", "cancelled"},
    "completed":   set(),  # terminal
    "cancelled":   set(),  # terminal
}


def normalise_status(value: str) -> str:
    return value.strip().lower().replace(" ", "_").replace("-", "_")


# ── Incidents ──

class IncidentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=5000)
    location: Optional[str] = Field(None, max_length=500)


class IncidentReview(BaseModel):
    status: str
    reviewed_by: Optional[str] = Field(None, max_length=255)

    @field_validator("status")
    @classmethod
    def normalise_review_status(cls, v: str) -> str:
        v = normalise_status(v)
        if v not in ("verified", "rejected", "cancelled"):
            raise ValueError("status must be one of ('verified', 'rejected', 'cancelled')")
        return v


class IncidentOut(BaseModel):
    id: int
    title: str
    description: Optional[str]
    location: Optional[str]
    status: str
    reviewed_by: Optional[str]
    dispatched: bool = False
    created_at: dt.datetime
    updated_at: dt.datetime


class PaginatedIncidents(BaseModel):
    total: int
    page: int
    per_page: int
    incidents: List[IncidentOut]


# ── Staff ──

class StaffCreate(BaseModel):
    display_name: str = Field(..., min_length=1, max_length=255)
    contact_number: Optional[str] = Field(None, max_length=64)


class StaffUpdate(BaseModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    contact_number: Optional[str] = Field(None, max_length=64)
    active: Optional[bool] = None


class StaffOut(BaseModel):
    id: int
    display_name: str
    contact_number: Optional[str]
    active: bool
    created_at: dt.datetime


# ── Patrol groups ──

class PatrolGroupCreate(BaseModel):
    incident_id: int
    # Emptiness is a domain validation error (400), not a schema error.
    staff_ids: List[int] = Field(default_factory=list)
    date: dt.date
    time: dt.time
    notes: Optional[str] = Field(None, max_length=5000)


class ConflictCheckRequest(BaseModel):
    staff_ids: List[int] = Field(default_factory=list)
    date: dt.date
    time: dt.time
    exclude_group_id: Optional[int] = None


class PatrolGroupUpdate(BaseModel):
    """Status transition, reschedule, or both in one request."""

    status: Optional[str] = None
    date: Optional[dt.date] = None
    time: Optional[dt.time] = None
    notes: Optional[str] = Field(None, max_length=5000)

    @field_validator("status")
    @classmethod
    def normalise_group_status(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = normalise_status(v)
        if v not in GROUP_STATUSES:
            raise ValueError(f"status must be one of {GROUP_STATUSES}")
        return v

    @model_validator(mode="after")
    def require_change(self) -> "PatrolGroupUpdate":
        if self.status is None and self.date is None and self.time is None \
                and "notes" not in self.model_fields_set:
            raise ValueError("at least one of status, date, time, notes is required")
        return self


class StaffAssignment(BaseModel):
    staff_id: int


class StaffRef(BaseModel):
    id: int
    display_name: str


class PatrolGroupOut(BaseModel):
    id: int
    incident_id: int
    staff_ids: List[int]
    staff: List[StaffRef] = []
    date: dt.date
    time: dt.time
    status: str
    notes: Optional[str]
    created_at: dt.datetime
    updated_at: dt.datetime
    incident_status: Optional[str] = None


class IncidentDetail(IncidentOut):
    patrol_groups: List[PatrolGroupOut] = []


class ConflictCheckResponse(BaseModel):
    has_conflict: bool
    conflicts: List[ConflictEntry]


class StaffRemovalResponse(BaseModel):
    group_id: int
    removed_staff_id: int
    remaining_staff_ids: List[int]


class PatrolGroupTimeline(BaseModel):
    group_id: int
    total: int
    timeline: List[Dict[str, Any]]


class ErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None
