# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
FastAPI dependency injection, wire repositories and services.
"""
from patrol_service.core.database import engine
from patrol_service.core.locking import TransactionManager
from patrol_service.repositories.incident_repository import IncidentRepository
from patrol_service.repositories.patrol_group_repository import PatrolGroupRepository
from patrol_service.repositories.staff_repository import StaffRepository
from patrol_service.services.conflict_detector import ConflictDetector
from patrol_service.services.incident_service import IncidentService
from patrol_service.services.patrol_schedule_service import PatrolScheduleService
from patrol_service.services.staff_directory import StaffDirectory
from patrol_service.services.status_sync import StatusSyncEngine

# ── Singleton repository instances ──
_incident_repo = IncidentRepository(engine)
_staff_repo = StaffRepository(engine)
_group_repo = PatrolGroupRepository(engine)
_tx = TransactionManager(engine)

# ── Service instances (with injected dependencies) ──
_staff_directory = StaffDirectory(_staff_repo)
_conflict_detector = ConflictDetector(engine, _group_repo)
_status_sync = StatusSyncEngine(_incident_repo, _group_repo)
_patrol_service = PatrolScheduleService(
    tx=_tx,
    group_repo=_group_repo,
    incident_repo=_incident_repo,
    staff_directory=_staff_directory,
    conflict_detector=_conflict_detector,
    status_sync=_status_sync,
)
_incident_service = IncidentService(_tx, _incident_repo, _group_repo)


# ── FastAPI dependency functions ──
def get_incident_repo() -> IncidentRepository:
    return _incident_repo


def get_incident_service() -> IncidentService:
    return _incident_service


def get_staff_directory() -> StaffDirectory:
    return _staff_directory


def get_patrol_service() -> PatrolScheduleService:
    return _patrol_service


def get_status_sync() -> StatusSyncEngine:
    return _status_sync


def get_transaction_manager() -> TransactionManager:
    return _tx
