# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Staff directory, roster lookups and maintenance.
Reads here happen outside the scheduling transaction; slightly stale
answers are acceptable because the conflict check is the authority.
"""
from typing import Any, Dict, Iterable, List, Optional

from patrol_service.core.errors import NotFoundError, ValidationError
from patrol_service.core.logging import get_logger
from patrol_service.repositories.staff_repository import StaffRepository

logger = get_logger(__name__)


class StaffDirectory:
    def __init__(self, repo: StaffRepository) -> None:
        self._repo = repo

    # ── Lookups used by the scheduler ──

    def is_active(self, staff_id: int) -> bool:
        member = self._repo.get_by_id(staff_id)
        return bool(member and member["active"])

    def require_active(self, staff_ids: Iterable[int]) -> None:
        """Raise ValidationError naming every unknown or inactive id."""
        ids = list(staff_ids)
        found = self._repo.get_many(ids)
        unknown = [sid for sid in ids if sid not in found]
        inactive = [sid for sid in ids if sid in found and not found[sid]["active"]]
        if unknown:
            raise ValidationError(f"Unknown staff member(s): {unknown}", field="staff_ids")
        if inactive:
            raise ValidationError(f"Inactive staff member(s): {inactive}", field="staff_ids")

    # ── Roster maintenance ──

    def create_member(self, display_name: str, contact_number: Optional[str] = None) -> Dict[str, Any]:
        member = self._repo.create(display_name.strip(), contact_number)
        logger.info("Staff member created id=%s name=%s", member["id"], member["display_name"])
        return member

    def list_members(self, active: Optional[bool] = None) -> List[Dict[str, Any]]:
        return self._repo.get_all(active)

    def get_member(self, staff_id: int) -> Dict[str, Any]:
        member = self._repo.get_by_id(staff_id)
        if member is None:
            raise NotFoundError(f"Staff member {staff_id} not found")
        return member

    def update_member(self, staff_id: int, display_name: Optional[str] = None,
                      contact_number: Optional[str] = None,
                      active: Optional[bool] = None) -> Dict[str, Any]:
        current = self.get_member(staff_id)
        changes: Dict[str, Any] = {}
        if display_name is not None and display_name.strip() != current["display_name"]:
            changes["display_name"] = display_name.strip()
        if contact_number is not None and contact_number != current["contact_number"]:
            changes["contact_number"] = contact_number
        if active is not None and active != current["active"]:
            changes["active"] = active
        updated = self._repo.update(staff_id, changes)
        if changes:
            logger.info("Staff member updated id=%s fields=%s", staff_id, sorted(changes))
        return updated
