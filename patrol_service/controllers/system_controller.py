# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Controller: System endpoints, health, readiness, metrics.
Pure HTTP layer, no business logic.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from patrol_service.core.config import settings
from patrol_service.core.dependencies import get_incident_repo

router = APIRouter(tags=["System"])


@router.get("/health")
def health_check():
    """Liveness probe for Docker and orchestration."""
    return {
        "status": "ok",
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/ready")
def readiness_check():
    try:
        get_incident_repo().verify_connection()
        return {"status": "ok", "database": "connected"}
    except Exception as exc:
        raise HTTPException(status_code=503, detail=f"Database unavailable: {exc}")


@router.get("/metrics")
def prometheus_metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
