# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Conflict detection, finds staff already booked by another
non-terminal patrol group in an overlapping window.

``check_conflict`` must be called with the connection of the unit of work
that will perform the write; ``preflight`` is the advisory, read-only variant
behind the conflict-check endpoint. Both run the same algorithm.
"""
from datetime import date, time
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.engine import Connection, Engine

from patrol_service.core.config import settings
from patrol_service.core.logging import get_logger
from patrol_service.metrics import SCHEDULE_CONFLICTS
from patrol_service.models.domain import ConflictEntry, TimeWindow
from patrol_service.repositories.patrol_group_repository import PatrolGroupRepository

logger = get_logger(__name__)


def window_for(patrol_date: date, patrol_time: time) -> TimeWindow:
    return TimeWindow(
        patrol_date=patrol_date, start=patrol_time, minutes=settings.PATROL_SLOT_MINUTES,
    )


def find_conflicts(staff_ids: Iterable[int], window: TimeWindow,
                   active_groups: Iterable[Dict[str, Any]]) -> List[ConflictEntry]:
    """Pure overlap scan: one entry per (staff, group) collision, sorted."""
    candidates = set(staff_ids)
    conflicts: List[ConflictEntry] = []
    for group in active_groups:
        if not window.overlaps(window_for(group["date"], group["time"])):
            continue
        for staff_id in sorted(candidates.intersection(group["staff_ids"])):
            conflicts.append(ConflictEntry(staff_id=staff_id, group_id=group["id"]))
    return sorted(conflicts, key=lambda c: (c.staff_id, c.group_id))


class ConflictDetector:
    def __init__(self, engine: Engine, group_repo: PatrolGroupRepository) -> None:
        self._engine = engine
        self._groups = group_repo

    def check_conflict(self, conn: Connection, staff_ids: Iterable[int], window: TimeWindow,
                       exclude_group_id: Optional[int] = None,
                       source: str = "create") -> List[ConflictEntry]:
        active = self._groups.list_active_on_date(conn, window.patrol_date, exclude_group_id)
        conflicts = find_conflicts(staff_ids, window, active)
        if conflicts:
            SCHEDULE_CONFLICTS.labels(source=source).inc()
            logger.warning(
                "Schedule conflict source=%s date=%s time=%s conflicts=%s",
                source, window.patrol_date, window.start,
                [(c.staff_id, c.group_id) for c in conflicts],
            )
        return conflicts

    def preflight(self, staff_ids: Iterable[int], patrol_date: date, patrol_time: time,
                  exclude_group_id: Optional[int] = None) -> Dict[str, Any]:
        with self._engine.connect() as conn:
            conflicts = self.check_conflict(
                conn, staff_ids, window_for(patrol_date, patrol_time),
                exclude_group_id, source="preflight",
            )
        return {"has_conflict": bool(conflicts), "conflicts": conflicts}
