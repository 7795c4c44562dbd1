# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Repository: Staff (catcher) roster data access.
NO business rules here, pure CRUD.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Engine

from patrol_service.core.database import staff_members


def _row_to_dict(row) -> Dict[str, Any]:
    return {
        "id": row.id,
        "display_name": row.display_name,
        "contact_number": row.contact_number,
        "active": bool(row.active),
        "created_at": row.created_at,
    }


class StaffRepository:
    def __init__(self, engine: Engine):
        self._engine = engine

    # ── Read ──

    def get_all(self, active: Optional[bool] = None) -> List[Dict[str, Any]]:
        stmt = select(staff_members).order_by(staff_members.c.display_name, staff_members.c.id)
        if active is not None:
            stmt = stmt.where(staff_members.c.active == active)
        with self._engine.connect() as conn:
            return [_row_to_dict(r) for r in conn.execute(stmt).fetchall()]

    def get_by_id(self, staff_id: int) -> Optional[Dict[str, Any]]:
        with self._engine.connect() as conn:
            row = conn.execute(
                select(staff_members).where(staff_members.c.id == staff_id)
            ).fetchone()
        return _row_to_dict(row) if row else None

    def get_many(self, staff_ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
        ids = list(staff_ids)
        if not ids:
            return {}
        with self._engine.connect() as conn:
            rows = conn.execute(
                select(staff_members).where(staff_members.c.id.in_(ids))
            ).fetchall()
        return {r.id: _row_to_dict(r) for r in rows}

    # ── Write ──

    def create(self, display_name: str, contact_number: Optional[str]) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        with self._engine.begin() as conn:
            staff_id = conn.execute(
                insert(staff_members).values(
                    display_name=display_name, contact_number=contact_number,
                    active=True, created_at=now,
                ).returning(staff_members.c.id)
            ).scalar_one()
        return self.get_by_id(staff_id)

    def update(self, staff_id: int, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if changes:
            with self._engine.begin() as conn:
                conn.execute(
                    update(staff_members)
                    .where(staff_members.c.id == staff_id)
                    .values(**changes)
                )
        return self.get_by_id(staff_id)
