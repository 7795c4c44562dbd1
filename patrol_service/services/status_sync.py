# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Incident status synchronisation.

Once a patrol group has referenced an incident, this module is the only
writer of ``incidents.status``. The reducer is pure; the engine applies it
inside the caller's unit of work so the group mutation and the incident
status commit (or roll back) together.

    verified ──GroupCreated──► in_progress
    in_progress ──GroupClosed(completed), no other active──► resolved
    in_progress ──GroupClosed(cancelled), no other active──► verified
    in_progress ──GroupClosed(*), other groups active──► in_progress
"""
from typing import Optional

from sqlalchemy.engine import Connection

from patrol_service.core.errors import ConsistencyError, NotFoundError
from patrol_service.core.logging import get_logger
from patrol_service.metrics import CONSISTENCY_FAILURES, STATUS_SYNCS
from patrol_service.repositories.incident_repository import IncidentRepository
from patrol_service.repositories.patrol_group_repository import PatrolGroupRepository
from patrol_service.schemas import TERMINAL_GROUP_STATUSES

logger = get_logger(__name__)

GROUP_CREATED = "group_created"
GROUP_CLOSED = "group_closed"


def reduce_incident_status(current: str, event: str,
                           group_status: Optional[str] = None,
                           other_active: int = 0) -> str:
    """Next incident status for ``event``. Raises ValueError on an impossible input."""
    if event == GROUP_CREATED:
        if current in ("verified", "in_progress"):
            return "in_progress"
        raise ValueError(f"cannot dispatch a patrol to an incident in status '{current}'")

    if event == GROUP_CLOSED:
        if group_status not in TERMINAL_GROUP_STATUSES:
            raise ValueError(f"'{group_status}' is not a closing status")
        if current != "in_progress":
            raise ValueError(
                f"incident status '{current}' does not reflect an active patrol"
            )
        if other_active > 0:
            return "in_progress"
        return "resolved" if group_status == "completed" else "verified"

    raise ValueError(f"unknown patrol group event '{event}'")


class StatusSyncEngine:
    def __init__(self, incident_repo: IncidentRepository,
                 group_repo: PatrolGroupRepository) -> None:
        self._incidents = incident_repo
        self._groups = group_repo

    def sync(self, conn: Connection, incident_id: int, event: str, group_id: int,
             group_status: Optional[str] = None) -> str:
        """Recompute and persist the incident status. Returns the resulting status."""
        incident = self._incidents.lock_incident(conn, incident_id)
        if incident is None:
            self._fail(f"incident {incident_id} vanished during {event}")
        current = incident["status"]
        other_active = self._groups.count_active_for_incident(
            conn, incident_id, exclude_group_id=group_id,
        )
        try:
            new_status = reduce_incident_status(current, event, group_status, other_active)
        except ValueError as exc:
            self._fail(f"incident {incident_id}: {exc}")

        if event == GROUP_CREATED and not incident["dispatched"]:
            if self._incidents.mark_dispatched(conn, incident_id) != 1:
                self._fail(f"incident {incident_id} dispatch flag write affected no rows")

        if new_status != current:
            if self._incidents.set_status(conn, incident_id, new_status) != 1:
                self._fail(f"incident {incident_id} status write affected no rows")
            self._groups.add_event(conn, group_id, "incident_status_synced", {
                "incident_id": incident_id, "from": current, "to": new_status, "event": event,
            })
            logger.info("Incident status synced incident=%s %s -> %s event=%s group=%s",
                        incident_id, current, new_status, event, group_id)
        STATUS_SYNCS.labels(event=event, status=new_status).inc()
        return new_status

    def current_status(self, incident_id: int) -> str:
        """Live incident status; never a copy held elsewhere."""
        incident = self._incidents.get_incident(incident_id)
        if incident is None:
            raise NotFoundError(f"Incident {incident_id} not found")
        return incident["status"]

    @staticmethod
    def _fail(message: str) -> None:
        CONSISTENCY_FAILURES.inc()
        logger.error("Status sync failed, rolling back: %s", message)
        raise ConsistencyError(f"Incident status sync failed: {message}")
