# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Controller: Staff directory endpoints.
Thin HTTP layer, delegates ALL logic to StaffDirectory.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends

from patrol_service.core.dependencies import get_staff_directory
from patrol_service.schemas import StaffCreate, StaffOut, StaffUpdate
from patrol_service.services.staff_directory import StaffDirectory

router = APIRouter(prefix="/api/v1", tags=["Staff"])


@router.post("/staff", status_code=201, response_model=StaffOut)
def create_staff_member(body: StaffCreate,
                        directory: StaffDirectory = Depends(get_staff_directory)):
    return directory.create_member(body.display_name, body.contact_number)


@router.get("/staff", response_model=List[StaffOut])
def list_staff(active: Optional[bool] = None,
               directory: StaffDirectory = Depends(get_staff_directory)):
    return directory.list_members(active)


@router.get("/staff/{staff_id}", response_model=StaffOut)
def get_staff_member(staff_id: int,
                     directory: StaffDirectory = Depends(get_staff_directory)):
    return directory.get_member(staff_id)


@router.patch("/staff/{staff_id}", response_model=StaffOut)
def update_staff_member(staff_id: int, body: StaffUpdate,
                        directory: StaffDirectory = Depends(get_staff_directory)):
    """Rename, change contact details, or (de)activate a staff member."""
    return directory.update_member(
        staff_id,
        display_name=body.display_name,
        contact_number=body.contact_number,
        active=body.active,
    )
