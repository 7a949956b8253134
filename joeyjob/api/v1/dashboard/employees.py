# joeyjob/api/v1/dashboard/employees.py
"""Dashboard employee roster endpoints"""
import logging

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from joeyjob.api.dependencies import get_simpro_client
from joeyjob.config.database import get_db
from joeyjob.core.errors import NotFoundError
from joeyjob.schemas.booking import EmployeeUpdate
from joeyjob.services.booking.booking_submission_service import categorize_external_error
from joeyjob.services.employee.employee_service import EmployeeService
from joeyjob.services.simpro.simpro_client import SimproApiError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/employees")


@router.get("")
async def list_employees(
        organization_id: str = Query(...),
        include_inactive: bool = Query(False, description="Include employees no longer in SimPro"),
        db: Session = Depends(get_db)
):
    employees = EmployeeService.list_employees(db, organization_id, include_inactive=include_inactive)
    return {
        "organization_id": organization_id,
        "total_employees": len(employees),
        "employees": [employee.to_dict() for employee in employees],
    }


@router.post("/sync")
async def sync_employees(
        organization_id: str = Query(...),
        db: Session = Depends(get_db)
):
    """Pull the employee list from SimPro into the local roster"""
    client = get_simpro_client(db, organization_id)
    try:
        result = await EmployeeService.sync_organization_employees(db, organization_id, client)
    except SimproApiError as e:
        raise categorize_external_error(e) from e
    finally:
        await client.aclose()
    return {"success": True, **result}


@router.patch("/{employee_id}")
async def update_employee(
        update: EmployeeUpdate,
        employee_id: str = Path(..., description="The organization employee ID"),
        organization_id: str = Query(...),
        db: Session = Depends(get_db)
):
    """Enable or disable an employee for bookings; synced employees start disabled"""
    employee = EmployeeService.set_enabled(db, organization_id, employee_id, update.is_enabled)
    if not employee:
        raise NotFoundError("Employee not found", details={"employee_id": employee_id})
    return {"success": True, "employee": employee.to_dict()}
