# type: ignore
# pyright: reportGeneralTypeIssues=false
# pyright: reportOptionalMemberAccess=false
"""
Patrol Scheduling Service
=========================
Dispatches field staff to verified animal-control incidents as patrol
groups, guarantees nobody is double-booked in overlapping slots, and keeps
each incident's status in step with the patrols assigned to it.

Patrol group state-machine:
    scheduled ─► in_progress ─► completed
    scheduled ─► cancelled
    in_progress ─► cancelled

Port: 8005
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from patrol_service.controllers import (
    incident_controller, patrol_group_controller, staff_controller, system_controller,
)
from patrol_service.core.config import settings
from patrol_service.core.database import engine, init_schema
from patrol_service.core.dependencies import get_patrol_service
from patrol_service.core.errors import PatrolError
from patrol_service.core.logging import get_logger
from patrol_service.middleware import MetricsMiddleware, RequestIDMiddleware

logger = get_logger(settings.SERVICE_NAME)


# ── Lifespan ──────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    init_schema(engine)
    try:
        get_patrol_service().seed_gauges()
    except Exception:
        logger.warning("Could not seed gauges, DB may not be ready yet")
    yield
    engine.dispose()
    logger.info("Shutting down, connection pool disposed")


# ── FastAPI App ───────────────────────────────────────────────────────────
app = FastAPI(
    title="Patrol Scheduling Service",
    description="Patrol group dispatch, double-booking prevention and incident status sync.",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestIDMiddleware)


@app.exception_handler(PatrolError)
async def patrol_error_handler(request: Request, exc: PatrolError):
    if exc.status_code >= 500:
        logger.error("Request failed: %s", exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception")
    return JSONResponse(status_code=500, content={"error": "internal_server_error", "detail": str(exc)})


app.include_router(system_controller.router)
app.include_router(incident_controller.router)
app.include_router(staff_controller.router)
app.include_router(patrol_group_controller.router)


# ── Entrypoint ────────────────────────────────────────────────────────────
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.SERVICE_PORT, log_level="info")
