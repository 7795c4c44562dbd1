# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Data-access layer for patrol groups, their staff membership and timeline.
Mutating methods take the caller's connection so they join its transaction.
"""
import json
from collections import defaultdict
from datetime import date, datetime, time, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.engine import Connection, Engine

from patrol_service.core.database import (
    incidents, patrol_group_events, patrol_group_staff, patrol_groups, staff_members,
)
from patrol_service.schemas import ACTIVE_GROUP_STATUSES

GROUP_COLUMNS = (
    patrol_groups.c.id,
    patrol_groups.c.incident_id,
    patrol_groups.c.patrol_date,
    patrol_groups.c.patrol_time,
    patrol_groups.c.status,
    patrol_groups.c.notes,
    patrol_groups.c.created_at,
    patrol_groups.c.updated_at,
    incidents.c.status.label("incident_status"),
)


def _row_to_dict(row, staff: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "id": row.id,
        "incident_id": row.incident_id,
        "staff_ids": [s["id"] for s in staff],
        "staff": staff,
        "date": row.patrol_date,
        "time": row.patrol_time,
        "status": row.status,
        "notes": row.notes,
        "created_at": row.created_at,
        "updated_at": row.updated_at,
        "incident_status": row.incident_status,
    }


class PatrolGroupRepository:
    def __init__(self, engine: Engine):
        self._engine = engine

    # ── Write ──────────────────────────────────────────────────────────

    def insert_group(self, conn: Connection, incident_id: int, patrol_date: date,
                     patrol_time: time, notes: Optional[str],
                     staff_ids: Iterable[int], status: str = "scheduled") -> int:
        """Insert one group row plus its full membership."""
        now = datetime.now(timezone.utc)
        group_id = conn.execute(
            insert(patrol_groups).values(
                incident_id=incident_id, patrol_date=patrol_date,
                patrol_time=patrol_time, status=status, notes=notes,
                created_at=now, updated_at=now,
            ).returning(patrol_groups.c.id)
        ).scalar_one()
        conn.execute(
            insert(patrol_group_staff),
            [{"group_id": group_id, "staff_id": sid} for sid in staff_ids],
        )
        return group_id

    def add_member(self, conn: Connection, group_id: int, staff_id: int) -> None:
        conn.execute(insert(patrol_group_staff).values(group_id=group_id, staff_id=staff_id))
        self._touch(conn, group_id)

    def remove_member(self, conn: Connection, group_id: int, staff_id: int) -> int:
        result = conn.execute(
            delete(patrol_group_staff).where(
                patrol_group_staff.c.group_id == group_id,
                patrol_group_staff.c.staff_id == staff_id,
            )
        )
        self._touch(conn, group_id)
        return result.rowcount

    def update_status(self, conn: Connection, group_id: int, status: str) -> None:
        conn.execute(
            update(patrol_groups)
            .where(patrol_groups.c.id == group_id)
            .values(status=status, updated_at=datetime.now(timezone.utc))
        )

    def update_schedule(self, conn: Connection, group_id: int, patrol_date: date,
                        patrol_time: time, notes: Optional[str]) -> None:
        conn.execute(
            update(patrol_groups)
            .where(patrol_groups.c.id == group_id)
            .values(patrol_date=patrol_date, patrol_time=patrol_time, notes=notes,
                    updated_at=datetime.now(timezone.utc))
        )

    def delete_group(self, conn: Connection, group_id: int) -> None:
        conn.execute(delete(patrol_group_events).where(patrol_group_events.c.group_id == group_id))
        conn.execute(delete(patrol_group_staff).where(patrol_group_staff.c.group_id == group_id))
        conn.execute(delete(patrol_groups).where(patrol_groups.c.id == group_id))

    def add_event(self, conn: Connection, group_id: int, event_type: str,
                  detail: Optional[Dict[str, Any]] = None) -> None:
        conn.execute(
            insert(patrol_group_events).values(
                group_id=group_id, event_type=event_type,
                detail=json.dumps(detail or {}), created_at=datetime.now(timezone.utc),
            )
        )

    # ── Read ───────────────────────────────────────────────────────────

    def get_group(self, group_id: int,
                  conn: Optional[Connection] = None) -> Optional[Dict[str, Any]]:
        groups = self._fetch(conn, patrol_groups.c.id == group_id)
        return groups[0] if groups else None

    def list_groups(self, status: Optional[str] = None, incident_id: Optional[int] = None,
                    patrol_date: Optional[date] = None) -> List[Dict[str, Any]]:
        conditions = []
        if status:
            conditions.append(patrol_groups.c.status == status)
        if incident_id is not None:
            conditions.append(patrol_groups.c.incident_id == incident_id)
        if patrol_date is not None:
            conditions.append(patrol_groups.c.patrol_date == patrol_date)
        return self._fetch(None, *conditions)

    def list_active_on_date(self, conn: Connection, patrol_date: date,
                            exclude_group_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """Scheduled / in-progress groups on one calendar date."""
        conditions = [
            patrol_groups.c.patrol_date == patrol_date,
            patrol_groups.c.status.in_(ACTIVE_GROUP_STATUSES),
        ]
        if exclude_group_id is not None:
            conditions.append(patrol_groups.c.id != exclude_group_id)
        return self._fetch(conn, *conditions)

    def list_for_incident(self, incident_id: int,
                          conn: Optional[Connection] = None) -> List[Dict[str, Any]]:
        return self._fetch(conn, patrol_groups.c.incident_id == incident_id)

    def count_active_for_incident(self, conn: Connection, incident_id: int,
                                  exclude_group_id: Optional[int] = None) -> int:
        stmt = select(func.count()).select_from(patrol_groups).where(
            patrol_groups.c.incident_id == incident_id,
            patrol_groups.c.status.in_(ACTIVE_GROUP_STATUSES),
        )
        if exclude_group_id is not None:
            stmt = stmt.where(patrol_groups.c.id != exclude_group_id)
        return conn.execute(stmt).scalar() or 0

    def count_active(self) -> int:
        with self._engine.connect() as conn:
            return conn.execute(
                select(func.count()).select_from(patrol_groups)
                .where(patrol_groups.c.status.in_(ACTIVE_GROUP_STATUSES))
            ).scalar() or 0

    def get_timeline(self, group_id: int) -> List[Dict[str, Any]]:
        with self._engine.connect() as conn:
            rows = conn.execute(
                select(patrol_group_events)
                .where(patrol_group_events.c.group_id == group_id)
                .order_by(patrol_group_events.c.id)
            ).fetchall()
        return [
            {"id": r.id, "event_type": r.event_type,
             "detail": json.loads(r.detail or "{}"),
             "created_at": r.created_at.isoformat() if r.created_at else None}
            for r in rows
        ]

    # ── Private ────────────────────────────────────────────────────────

    def _touch(self, conn: Connection, group_id: int) -> None:
        conn.execute(
            update(patrol_groups)
            .where(patrol_groups.c.id == group_id)
            .values(updated_at=datetime.now(timezone.utc))
        )

    def _fetch(self, conn: Optional[Connection], *conditions) -> List[Dict[str, Any]]:
        if conn is None:
            with self._engine.connect() as own:
                return self._fetch(own, *conditions)
        stmt = (
            select(*GROUP_COLUMNS)
            .select_from(patrol_groups.join(incidents, incidents.c.id == patrol_groups.c.incident_id))
            .where(*conditions)
            .order_by(patrol_groups.c.patrol_date.desc(), patrol_groups.c.patrol_time.desc(),
                      patrol_groups.c.id.desc())
        )
        rows = conn.execute(stmt).fetchall()
        if not rows:
            return []
        members: Dict[int, List[Dict[str, Any]]] = defaultdict(list)
        for group_id, staff_id, display_name in conn.execute(
            select(patrol_group_staff.c.group_id, patrol_group_staff.c.staff_id,
                   staff_members.c.display_name)
            .select_from(patrol_group_staff.join(
                staff_members, staff_members.c.id == patrol_group_staff.c.staff_id))
            .where(patrol_group_staff.c.group_id.in_([r.id for r in rows]))
            .order_by(patrol_group_staff.c.staff_id)
        ).fetchall():
            members[group_id].append({"id": staff_id, "display_name": display_name})
        return [_row_to_dict(r, members[r.id]) for r in rows]
