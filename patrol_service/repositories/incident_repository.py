# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Data-access layer for incidents."""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, insert, select, text, update
from sqlalchemy.engine import Connection, Engine

from patrol_service.core.database import incidents
from patrol_service.core.logging import get_logger

logger = get_logger(__name__)


def _row_to_dict(row) -> Dict[str, Any]:
    return {
        "id": row.id,
        "title": row.title,
        "description": row.description,
        "location": row.location,
        "status": row.status,
        "reviewed_by": row.reviewed_by,
        "dispatched": bool(row.dispatched),
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    }


class IncidentRepository:
    def __init__(self, engine: Engine):
        self._engine = engine

    # ── Write ──────────────────────────────────────────────────────────

    def create_incident(self, title: str, description: Optional[str],
                        location: Optional[str], status: str = "pending") -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        with self._engine.begin() as conn:
            incident_id = conn.execute(
                insert(incidents).values(
                    title=title, description=description, location=location,
                    status=status, dispatched=False, created_at=now, updated_at=now,
                ).returning(incidents.c.id)
            ).scalar_one()
            row = conn.execute(
                select(incidents).where(incidents.c.id == incident_id)
            ).fetchone()
        return _row_to_dict(row)

    def set_status(self, conn: Connection, incident_id: int, status: str) -> int:
        """Write ``status``. Returns the number of rows touched."""
        result = conn.execute(
            update(incidents)
            .where(incidents.c.id == incident_id)
            .values(status=status, updated_at=datetime.now(timezone.utc))
        )
        return result.rowcount

    def mark_dispatched(self, conn: Connection, incident_id: int) -> int:
        result = conn.execute(
            update(incidents)
            .where(incidents.c.id == incident_id)
            .values(dispatched=True)
        )
        return result.rowcount

    def apply_review(self, conn: Connection, incident_id: int, status: str,
                     reviewed_by: Optional[str]) -> Dict[str, Any]:
        conn.execute(
            update(incidents)
            .where(incidents.c.id == incident_id)
            .values(status=status, reviewed_by=reviewed_by,
                    updated_at=datetime.now(timezone.utc))
        )
        return self.get_incident(incident_id, conn=conn)

    # ── Read ───────────────────────────────────────────────────────────

    def get_incident(self, incident_id: int,
                     conn: Optional[Connection] = None) -> Optional[Dict[str, Any]]:
        stmt = select(incidents).where(incidents.c.id == incident_id)
        if conn is not None:
            row = conn.execute(stmt).fetchone()
        else:
            with self._engine.connect() as own:
                row = own.execute(stmt).fetchone()
        return _row_to_dict(row) if row else None

    def lock_incident(self, conn: Connection, incident_id: int) -> Optional[Dict[str, Any]]:
        """Read the incident row with FOR UPDATE where the dialect supports it."""
        row = conn.execute(
            select(incidents).where(incidents.c.id == incident_id).with_for_update()
        ).fetchone()
        return _row_to_dict(row) if row else None

    def list_incidents(self, status: Optional[str] = None, page: int = 1,
                       per_page: int = 50) -> Tuple[int, List[Dict[str, Any]]]:
        count_stmt = select(func.count()).select_from(incidents)
        stmt = select(incidents)
        if status:
            count_stmt = count_stmt.where(incidents.c.status == status)
            stmt = stmt.where(incidents.c.status == status)
        stmt = (
            stmt.order_by(incidents.c.created_at.desc(), incidents.c.id.desc())
            .limit(per_page)
            .offset((page - 1) * per_page)
        )
        with self._engine.connect() as conn:
            total = conn.execute(count_stmt).scalar() or 0
            rows = conn.execute(stmt).fetchall()
        return total, [_row_to_dict(r) for r in rows]

    def count_by_status(self, status: str) -> int:
        with self._engine.connect() as conn:
            return conn.execute(
                select(func.count()).select_from(incidents)
                .where(incidents.c.status == status)
            ).scalar() or 0

    def verify_connection(self):
        with self._engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def dispose(self):
        self._engine.dispose()
