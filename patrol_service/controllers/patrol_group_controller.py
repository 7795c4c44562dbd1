# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Controller: Patrol group scheduling, lifecycle and staff membership.
Thin HTTP layer, delegates ALL logic to PatrolScheduleService; domain
errors are rendered by the PatrolError handler in main.py.
"""
import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from patrol_service.core.dependencies import get_patrol_service
from patrol_service.schemas import (
    ConflictCheckRequest, ConflictCheckResponse, PatrolGroupCreate, PatrolGroupOut,
    PatrolGroupTimeline, PatrolGroupUpdate, StaffAssignment,
    StaffRemovalResponse, normalise_status,
)
from patrol_service.services.patrol_schedule_service import PatrolScheduleService

router = APIRouter(prefix="/api/v1", tags=["Patrol Groups"])


@router.post("/patrol-groups", status_code=201, response_model=PatrolGroupOut)
def create_patrol_group(body: PatrolGroupCreate,
                        service: PatrolScheduleService = Depends(get_patrol_service)):
    """Dispatch one or more staff members to an incident as a single unit."""
    return PatrolGroupOut(**service.create_group(
        incident_id=body.incident_id,
        staff_ids=body.staff_ids,
        patrol_date=body.date,
        patrol_time=body.time,
        notes=body.notes,
    ))


@router.post("/patrol-groups/conflict-check", response_model=ConflictCheckResponse)
def check_conflicts(body: ConflictCheckRequest,
                    service: PatrolScheduleService = Depends(get_patrol_service)):
    """Advisory pre-flight; the authoritative check runs inside create."""
    return service.check_conflict(body.staff_ids, body.date, body.time, body.exclude_group_id)


@router.get("/patrol-groups", response_model=List[PatrolGroupOut])
def list_patrol_groups(
    status: Optional[str] = None,
    incident_id: Optional[int] = None,
    patrol_date: Optional[dt.date] = Query(default=None, alias="date"),
    service: PatrolScheduleService = Depends(get_patrol_service),
):
    groups = service.list_groups(
        normalise_status(status) if status else None, incident_id, patrol_date,
    )
    return [PatrolGroupOut(**g) for g in groups]


@router.get("/patrol-groups/{group_id}", response_model=PatrolGroupOut)
def get_patrol_group(group_id: int,
                     service: PatrolScheduleService = Depends(get_patrol_service)):
    return PatrolGroupOut(**service.get_group(group_id))


@router.put("/patrol-groups/{group_id}", response_model=PatrolGroupOut)
def update_patrol_group(group_id: int, body: PatrolGroupUpdate,
                        service: PatrolScheduleService = Depends(get_patrol_service)):
    """Transition status and/or reschedule; a move re-runs the conflict check."""
    extra = {"notes": body.notes} if "notes" in body.model_fields_set else {}
    return PatrolGroupOut(**service.update_group(
        group_id, status=body.status, patrol_date=body.date, patrol_time=body.time, **extra,
    ))


@router.delete("/patrol-groups/{group_id}")
def delete_patrol_group(group_id: int,
                        service: PatrolScheduleService = Depends(get_patrol_service)):
    return service.delete_group(group_id)


@router.post("/patrol-groups/{group_id}/staff", response_model=PatrolGroupOut)
def add_staff_member(group_id: int, body: StaffAssignment,
                     service: PatrolScheduleService = Depends(get_patrol_service)):
    return PatrolGroupOut(**service.add_staff_member(group_id, body.staff_id))


@router.delete("/patrol-groups/{group_id}/staff/{staff_id}", response_model=StaffRemovalResponse)
def remove_staff_member(group_id: int, staff_id: int,
                        service: PatrolScheduleService = Depends(get_patrol_service)):
    group = service.remove_staff_member(group_id, staff_id)
    return StaffRemovalResponse(
        group_id=group_id, removed_staff_id=staff_id, remaining_staff_ids=group["staff_ids"],
    )


@router.get("/patrol-groups/{group_id}/timeline", response_model=PatrolGroupTimeline)
def get_patrol_group_timeline(group_id: int,
                              service: PatrolScheduleService = Depends(get_patrol_service)):
    return service.get_timeline(group_id)
