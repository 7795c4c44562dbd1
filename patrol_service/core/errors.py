# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Error taxonomy for the scheduling core.
Every error is local to the request that raised it; main.py renders them
as {"error": <code>, "detail": <message>, ...extras}.
"""

from typing import Any, Optional


class PatrolError(Exception):
    """Base class for every rejected scheduling operation."""

    status_code: int = 500
    error: str = "patrol_error"

    def __init__(self, message: str, /, **extras: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extras = extras

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error, "detail": self.message, **self.extras}


class ValidationError(PatrolError):
    """Bad input, rejected before any transaction opens."""

    status_code = 400
    error = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        if field is not None:
            super().__init__(message, field=field)
        else:
            super().__init__(message)
        self.field = field


class NotFoundError(PatrolError):
    status_code = 404
    error = "not_found"


class ConflictError(PatrolError):
    """One or more staff members are already booked in an overlapping window."""

    status_code = 409
    error = "schedule_conflict"

    def __init__(self, conflicts: list[dict[str, int]]) -> None:
        names = ", ".join(
            f"staff {c['staff_id']} (group {c['group_id']})" for c in conflicts
        )
        super().__init__(f"Schedule conflict detected: {names}", conflicts=conflicts)
        self.conflicts = conflicts


class LastMemberError(PatrolError):
    """Removing this member would leave a non-terminal group empty."""

    status_code = 409
    error = "last_staff_member"
    MESSAGE = "cannot remove the last staff member"

    def __init__(self, group_id: int, staff_id: int) -> None:
        super().__init__(
            self.MESSAGE,
            message=self.MESSAGE,
            group_id=group_id,
            staff_id=staff_id,
            suggested_action="cancel",
        )


class StateError(PatrolError):
    """The record exists but its lifecycle state forbids the operation."""

    status_code = 409
    error = "invalid_state"


class ConsistencyError(PatrolError):
    """The incident status sync failed; the whole unit of work was rolled back."""

    status_code = 503
    error = "consistency_error"

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=True)


class LockTimeoutError(PatrolError):
    status_code = 503
    error = "lock_timeout"

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=True)
