# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Domain models, pure data structures, NO FastAPI dependency.
"""

from datetime import date, datetime, time, timedelta

from pydantic import BaseModel, ConfigDict, Field


class TimeWindow(BaseModel):
    """The half-open slot [start, start + minutes) a patrol group occupies."""

    model_config = ConfigDict(frozen=True)

    patrol_date: date
    start: time
    minutes: int = Field(..., gt=0)

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.patrol_date, self.start)

    @property
    def ends_at(self) -> datetime:
        return self.starts_at + timedelta(minutes=self.minutes)

    def overlaps(self, other: "TimeWindow") -> bool:
        # Only windows on the same calendar date can collide; touching ends do not.
        if self.patrol_date != other.patrol_date:
            return False
        return self.starts_at < other.ends_at and other.starts_at < self.ends_at


class ConflictEntry(BaseModel):
    """One staff member already booked by another non-terminal group."""

    model_config = ConfigDict(frozen=True)

    staff_id: int
    group_id: int
