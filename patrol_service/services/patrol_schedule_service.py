# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Patrol scheduling, the dispatch-unit lifecycle.

Each mutating operation validates cheaply outside the transaction, then
re-reads and re-validates inside a unit of work that also holds the locks
for the affected incident and staff/date keys. The conflict read, the write,
the incident status sync and the audit events share one transaction.
"""
from datetime import date, time
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.engine import Connection

from patrol_service.core.errors import (
    ConflictError, LastMemberError, NotFoundError, StateError, ValidationError,
)
from patrol_service.core.locking import TransactionManager, incident_key, staff_key
from patrol_service.core.logging import get_logger
from patrol_service.metrics import PATROL_GROUPS_ACTIVE, PATROL_GROUPS_CREATED
from patrol_service.repositories.incident_repository import IncidentRepository
from patrol_service.repositories.patrol_group_repository import PatrolGroupRepository
from patrol_service.schemas import (
    ALLOWED_TRANSITIONS, GROUP_STATUSES, SCHEDULABLE_INCIDENT_STATUSES,
    TERMINAL_GROUP_STATUSES,
)
from patrol_service.services.conflict_detector import ConflictDetector, window_for
from patrol_service.services.staff_directory import StaffDirectory
from patrol_service.services.status_sync import GROUP_CLOSED, GROUP_CREATED, StatusSyncEngine

logger = get_logger(__name__)

# Distinguishes "leave notes alone" from an explicit null.
UNCHANGED = object()


def _unique(staff_ids: Iterable[int]) -> List[int]:
    seen: Dict[int, None] = {}
    for sid in staff_ids:
        seen.setdefault(sid, None)
    return list(seen)


class PatrolScheduleService:
    def __init__(self, tx: TransactionManager, group_repo: PatrolGroupRepository,
                 incident_repo: IncidentRepository, staff_directory: StaffDirectory,
                 conflict_detector: ConflictDetector, status_sync: StatusSyncEngine) -> None:
        self._tx = tx
        self._groups = group_repo
        self._incidents = incident_repo
        self._staff = staff_directory
        self._conflicts = conflict_detector
        self._sync = status_sync

    def seed_gauges(self) -> None:
        self._refresh_active_gauge()
        logger.info("Prometheus gauges loaded from DB")

    def _refresh_active_gauge(self) -> None:
        PATROL_GROUPS_ACTIVE.set(self._groups.count_active())

    # ── Commands ──

    def create_group(self, incident_id: int, staff_ids: Iterable[int], patrol_date: date,
                     patrol_time: time, notes: Optional[str] = None) -> Dict[str, Any]:
        """Create one dispatch unit with its full staff set, or nothing at all."""
        members = _unique(staff_ids)
        if not members:
            raise ValidationError("At least one staff member must be assigned", field="staff_ids")
        self._require_schedulable(self._incidents.get_incident(incident_id), incident_id)
        self._staff.require_active(members)
        window = window_for(patrol_date, patrol_time)
        keys = [incident_key(incident_id)] + [staff_key(sid, patrol_date) for sid in members]

        def work(conn: Connection) -> Dict[str, Any]:
            self._require_schedulable(self._incidents.lock_incident(conn, incident_id), incident_id)
            conflicts = self._conflicts.check_conflict(conn, members, window, source="create")
            if conflicts:
                raise ConflictError([c.model_dump() for c in conflicts])
            group_id = self._groups.insert_group(
                conn, incident_id, patrol_date, patrol_time, notes, members,
            )
            self._groups.add_event(conn, group_id, "created", {
                "incident_id": incident_id, "staff_ids": members,
                "date": patrol_date.isoformat(), "time": patrol_time.isoformat(),
            })
            self._sync.sync(conn, incident_id, GROUP_CREATED, group_id)
            return self._groups.get_group(group_id, conn=conn)

        group = self._tx.run(keys, work)
        PATROL_GROUPS_CREATED.inc()
        self._refresh_active_gauge()
        logger.info("Patrol group created id=%s incident=%s staff=%s date=%s time=%s",
                    group["id"], incident_id, group["staff_ids"], patrol_date, patrol_time)
        return group

    def update_status(self, group_id: int, new_status: str) -> Dict[str, Any]:
        return self.update_group(group_id, status=new_status)

    def update_group(self, group_id: int, status: Optional[str] = None,
                     patrol_date: Optional[date] = None, patrol_time: Optional[time] = None,
                     notes: Any = UNCHANGED) -> Dict[str, Any]:
        """Reschedule and/or transition a group in one unit of work.

        A move to a new date or time re-runs the conflict check for every
        member against the target slot, excluding the group itself.
        """
        if status is not None and status not in GROUP_STATUSES:
            raise ValidationError(f"status must be one of {GROUP_STATUSES}", field="status")
        group = self.get_group(group_id)
        if status is not None:
            self._check_transition(group["status"], status)
        edits = patrol_date is not None or patrol_time is not None or notes is not UNCHANGED
        if edits:
            self._require_open(group)
        target_date = patrol_date if patrol_date is not None else group["date"]
        keys = [incident_key(group["incident_id"])]
        if patrol_date is not None or patrol_time is not None:
            keys += [staff_key(sid, target_date) for sid in group["staff_ids"]]

        def work(conn: Connection) -> Dict[str, Any]:
            current = self._locked_group(conn, group_id)
            if edits:
                self._require_open(current)
                self._apply_edits(conn, group, current, status, patrol_date, patrol_time, notes)
            if status is not None:
                self._check_transition(current["status"], status)
                self._groups.update_status(conn, group_id, status)
                self._groups.add_event(conn, group_id, "status_changed", {
                    "from": current["status"], "to": status,
                })
                if status in TERMINAL_GROUP_STATUSES:
                    self._sync.sync(conn, current["incident_id"], GROUP_CLOSED, group_id, status)
            return self._groups.get_group(group_id, conn=conn)

        updated = self._tx.run(keys, work)
        if status is not None:
            self._refresh_active_gauge()
            logger.info("Patrol group status changed id=%s %s -> %s",
                        group_id, group["status"], status)
        if edits:
            logger.info("Patrol group updated id=%s date=%s time=%s",
                        group_id, updated["date"], updated["time"])
        return updated

    def _apply_edits(self, conn: Connection, seen: Dict[str, Any], current: Dict[str, Any],
                     status: Optional[str], patrol_date: Optional[date],
                     patrol_time: Optional[time], notes: Any) -> None:
        new_date = patrol_date if patrol_date is not None else current["date"]
        new_time = patrol_time if patrol_time is not None else current["time"]
        new_notes = current["notes"] if notes is UNCHANGED else notes
        moved = (new_date, new_time) != (current["date"], current["time"])
        if moved:
            # Staff/date locks cover the membership and date read before the unit of work.
            seen_date = patrol_date if patrol_date is not None else seen["date"]
            if new_date != seen_date or not set(current["staff_ids"]) <= set(seen["staff_ids"]):
                raise StateError(
                    f"Patrol group {current['id']} changed while it was being rescheduled; retry"
                )
            if (status or current["status"]) not in TERMINAL_GROUP_STATUSES:
                conflicts = self._conflicts.check_conflict(
                    conn, current["staff_ids"], window_for(new_date, new_time),
                    exclude_group_id=current["id"], source="reschedule",
                )
                if conflicts:
                    raise ConflictError([c.model_dump() for c in conflicts])
        self._groups.update_schedule(conn, current["id"], new_date, new_time, new_notes)
        if moved:
            self._groups.add_event(conn, current["id"], "rescheduled", {
                "from": {"date": current["date"].isoformat(), "time": current["time"].isoformat()},
                "to": {"date": new_date.isoformat(), "time": new_time.isoformat()},
            })
        if new_notes != current["notes"]:
            self._groups.add_event(conn, current["id"], "notes_updated", {})

    def add_staff_member(self, group_id: int, staff_id: int) -> Dict[str, Any]:
        group = self.get_group(group_id)
        self._require_open(group)
        if staff_id in group["staff_ids"]:
            raise ValidationError(
                f"Staff member {staff_id} is already assigned to patrol group {group_id}",
                field="staff_id",
            )
        self._staff.require_active([staff_id])
        window = window_for(group["date"], group["time"])
        keys = [incident_key(group["incident_id"]), staff_key(staff_id, group["date"])]

        def work(conn: Connection) -> Dict[str, Any]:
            current = self._locked_group(conn, group_id)
            self._require_open(current)
            if staff_id in current["staff_ids"]:
                raise ValidationError(
                    f"Staff member {staff_id} is already assigned to patrol group {group_id}",
                    field="staff_id",
                )
            conflicts = self._conflicts.check_conflict(
                conn, [staff_id], window, exclude_group_id=group_id, source="add_staff",
            )
            if conflicts:
                raise ConflictError([c.model_dump() for c in conflicts])
            self._groups.add_member(conn, group_id, staff_id)
            self._groups.add_event(conn, group_id, "staff_added", {"staff_id": staff_id})
            return self._groups.get_group(group_id, conn=conn)

        updated = self._tx.run(keys, work)
        logger.info("Staff added to patrol group id=%s staff=%s", group_id, staff_id)
        return updated

    def remove_staff_member(self, group_id: int, staff_id: int) -> Dict[str, Any]:
        """Shrinking a group only relaxes conflicts, so no conflict re-check runs here."""
        group = self.get_group(group_id)
        self._check_removable(group, staff_id)

        def work(conn: Connection) -> Dict[str, Any]:
            current = self._locked_group(conn, group_id)
            self._check_removable(current, staff_id)
            self._groups.remove_member(conn, group_id, staff_id)
            self._groups.add_event(conn, group_id, "staff_removed", {"staff_id": staff_id})
            return self._groups.get_group(group_id, conn=conn)

        updated = self._tx.run([incident_key(group["incident_id"])], work)
        logger.info("Staff removed from patrol group id=%s staff=%s remaining=%s",
                    group_id, staff_id, updated["staff_ids"])
        return updated

    def delete_group(self, group_id: int) -> Dict[str, Any]:
        group = self.get_group(group_id)

        def work(conn: Connection) -> None:
            current = self._locked_group(conn, group_id)
            if current["status"] not in TERMINAL_GROUP_STATUSES:
                raise StateError(
                    f"Patrol group {group_id} is '{current['status']}'; "
                    "cancel it before deleting"
                )
            self._groups.delete_group(conn, group_id)

        self._tx.run([incident_key(group["incident_id"])], work)
        logger.info("Patrol group deleted id=%s", group_id)
        return {"status": "deleted", "id": group_id}

    # ── Queries ──

    def get_group(self, group_id: int) -> Dict[str, Any]:
        # incident_status comes from the live incidents row via a join.
        group = self._groups.get_group(group_id)
        if group is None:
            raise NotFoundError(f"Patrol group {group_id} not found")
        return group

    def list_groups(self, status: Optional[str] = None, incident_id: Optional[int] = None,
                    patrol_date: Optional[date] = None) -> List[Dict[str, Any]]:
        return self._groups.list_groups(status, incident_id, patrol_date)

    def get_timeline(self, group_id: int) -> Dict[str, Any]:
        self.get_group(group_id)
        timeline = self._groups.get_timeline(group_id)
        return {"group_id": group_id, "total": len(timeline), "timeline": timeline}

    def check_conflict(self, staff_ids: Iterable[int], patrol_date: date, patrol_time: time,
                       exclude_group_id: Optional[int] = None) -> Dict[str, Any]:
        members = _unique(staff_ids)
        if not members:
            raise ValidationError("At least one staff member must be given", field="staff_ids")
        return self._conflicts.preflight(members, patrol_date, patrol_time, exclude_group_id)

    # ── Private ──

    def _locked_group(self, conn: Connection, group_id: int) -> Dict[str, Any]:
        group = self._groups.get_group(group_id, conn=conn)
        if group is None:
            raise NotFoundError(f"Patrol group {group_id} not found")
        return group

    @staticmethod
    def _require_schedulable(incident: Optional[Dict[str, Any]], incident_id: int) -> None:
        if incident is None:
            raise ValidationError(f"Incident {incident_id} not found", field="incident_id")
        if incident["status"] not in SCHEDULABLE_INCIDENT_STATUSES:
            raise ValidationError(
                f"Incident {incident_id} is '{incident['status']}'; patrols can only be "
                f"scheduled for incidents in {SCHEDULABLE_INCIDENT_STATUSES}",
                field="incident_id",
            )

    @staticmethod
    def _require_open(group: Dict[str, Any]) -> None:
        if group["status"] in TERMINAL_GROUP_STATUSES:
            raise ValidationError(
                f"Patrol group {group['id']} is '{group['status']}' and can no longer change",
                field="status",
            )

    @staticmethod
    def _check_transition(old_status: str, new_status: str) -> None:
        allowed = ALLOWED_TRANSITIONS.get(old_status, set())
        if new_status not in allowed:
            raise ValidationError(
                f"Cannot transition from '{old_status}' to '{new_status}'. "
                f"Allowed: {sorted(allowed) if allowed else 'none (terminal state)'}",
                field="status",
            )

    def _check_removable(self, group: Dict[str, Any], staff_id: int) -> None:
        self._require_open(group)
        if staff_id not in group["staff_ids"]:
            raise ValidationError(
                f"Staff member {staff_id} is not assigned to patrol group {group['id']}",
                field="staff_id",
            )
        if len(group["staff_ids"]) <= 1:
            raise LastMemberError(group["id"], staff_id)
