# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Controller: Incident reports, administrative review, dispatch overview."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from patrol_service.core.config import settings
from patrol_service.core.dependencies import get_incident_service
from patrol_service.schemas import (
    IncidentCreate, IncidentDetail, IncidentOut, IncidentReview,
    PaginatedIncidents, PatrolGroupOut, normalise_status,
)
from patrol_service.services.incident_service import IncidentService

router = APIRouter(prefix="/api/v1", tags=["Incidents"])


@router.post("/incidents", status_code=201, response_model=IncidentOut)
def create_incident(body: IncidentCreate,
                    service: IncidentService = Depends(get_incident_service)):
    """Submit a citizen report; it starts out pending review."""
    return IncidentOut(**service.create_incident(body.title, body.description, body.location))


@router.get("/incidents", response_model=PaginatedIncidents)
def list_incidents(
    status: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=200),
    service: IncidentService = Depends(get_incident_service),
):
    total, incidents = service.list_incidents(
        normalise_status(status) if status else None, page, per_page,
    )
    return PaginatedIncidents(
        total=total, page=page, per_page=per_page,
        incidents=[IncidentOut(**i) for i in incidents],
    )


@router.get("/incidents/{incident_id}", response_model=IncidentDetail)
def get_incident(incident_id: int,
                 service: IncidentService = Depends(get_incident_service)):
    return IncidentDetail(**service.get_incident_detail(incident_id))


@router.patch("/incidents/{incident_id}/review", response_model=IncidentOut)
def review_incident(incident_id: int, body: IncidentReview,
                    service: IncidentService = Depends(get_incident_service)):
    """Verify, reject or cancel a report before any patrol is dispatched."""
    return IncidentOut(**service.review_incident(incident_id, body.status, body.reviewed_by))


@router.get("/incidents/{incident_id}/patrol-groups", response_model=List[PatrolGroupOut])
def list_incident_patrol_groups(incident_id: int,
                                service: IncidentService = Depends(get_incident_service)):
    return [PatrolGroupOut(**g) for g in service.list_patrol_groups(incident_id)]
