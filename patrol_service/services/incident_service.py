# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Business logic for incident reports and administrative review."""
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.engine import Connection

from patrol_service.core.errors import NotFoundError, StateError, ValidationError
from patrol_service.core.locking import TransactionManager, incident_key
from patrol_service.core.logging import get_logger
from patrol_service.repositories.incident_repository import IncidentRepository
from patrol_service.repositories.patrol_group_repository import PatrolGroupRepository
from patrol_service.schemas import REVIEW_TRANSITIONS

logger = get_logger(__name__)


class IncidentService:
    def __init__(self, tx: TransactionManager, repo: IncidentRepository,
                 group_repo: PatrolGroupRepository):
        self._tx = tx
        self._repo = repo
        self._groups = group_repo

    def create_incident(self, title: str, description: Optional[str] = None,
                        location: Optional[str] = None) -> Dict[str, Any]:
        result = self._repo.create_incident(title.strip(), description, location)
        logger.info("Incident reported id=%s", result["id"])
        return result

    def get_incident(self, incident_id: int) -> Dict[str, Any]:
        incident = self._repo.get_incident(incident_id)
        if incident is None:
            raise NotFoundError(f"Incident {incident_id} not found")
        return incident

    def get_incident_detail(self, incident_id: int) -> Dict[str, Any]:
        incident = self.get_incident(incident_id)
        incident["patrol_groups"] = self._groups.list_for_incident(incident_id)
        return incident

    def list_incidents(self, status=None, page=1,
                       per_page=50) -> Tuple[int, List[Dict[str, Any]]]:
        return self._repo.list_incidents(status, page, per_page)

    def list_patrol_groups(self, incident_id: int) -> List[Dict[str, Any]]:
        self.get_incident(incident_id)
        return self._groups.list_for_incident(incident_id)

    def review_incident(self, incident_id: int, status: str,
                        reviewed_by: Optional[str] = None) -> Dict[str, Any]:
        """Administrative verify / reject / cancel, only before any dispatch."""
        self.get_incident(incident_id)

        def work(conn: Connection) -> Dict[str, Any]:
            current = self._repo.lock_incident(conn, incident_id)
            if current is None:
                raise NotFoundError(f"Incident {incident_id} not found")
            if current["dispatched"]:
                raise StateError(
                    f"Incident {incident_id} has been dispatched; its status now "
                    "follows patrol dispatch"
                )
            allowed = REVIEW_TRANSITIONS.get(current["status"], set())
            if status not in allowed:
                raise ValidationError(
                    f"Cannot transition from '{current['status']}' to '{status}'. "
                    f"Allowed: {sorted(allowed) if allowed else 'none (terminal state)'}",
                    field="status",
                )
            return self._repo.apply_review(conn, incident_id, status, reviewed_by)

        result = self._tx.run([incident_key(incident_id)], work)
        logger.info("Incident reviewed id=%s status=%s by=%s", incident_id, status, reviewed_by)
        return result
