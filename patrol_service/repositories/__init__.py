# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Repository package, re-exports the data-access classes."""
from patrol_service.repositories.incident_repository import IncidentRepository
from patrol_service.repositories.patrol_group_repository import PatrolGroupRepository
from patrol_service.repositories.staff_repository import StaffRepository

__all__ = ["IncidentRepository", "PatrolGroupRepository", "StaffRepository"]
