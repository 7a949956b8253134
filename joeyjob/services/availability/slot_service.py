# joeyjob/services/availability/slot_service.py
"""Bookable slots for a service on a given day (public booking form)"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from joeyjob.config.settings import get_settings
from joeyjob.core.errors import NotFoundError
from joeyjob.models.organization import Organization
from joeyjob.schemas.booking import AvailabilityResponse
from joeyjob.services.availability.availability_service import AvailabilityService, SchedulingPolicy, utc_now
from joeyjob.services.booking.service_tree import get_active_form, get_bookable_service
from joeyjob.services.employee.employee_service import EmployeeService
from joeyjob.services.simpro.simpro_client import SimproClient
from joeyjob.utils.time_utils import parse_booking_date

settings = get_settings()
logger = logging.getLogger(__name__)


async def get_service_availability(
        db: Session,
        organization_id: str,
        service_id: str,
        date: str,
        simpro_client: Optional[SimproClient] = None,
        clock=utc_now,
) -> AvailabilityResponse:
    organization = db.get(Organization, organization_id)
    if not organization:
        raise NotFoundError("Organization not found")

    form = get_active_form(db, organization_id)
    service = get_bookable_service(form, service_id)
    day = parse_booking_date(date)

    employees = EmployeeService.get_enabled_employees(db, organization_id, service.assigned_employee_ids)
    availability = AvailabilityService(db, simpro_client, organization.timezone, clock=clock)

    slots = []
    if employees and service.duration > 0:
        slots = await availability.calculate_available_slots_for_date(
            organization_id,
            [employee.simpro_employee_id for employee in employees],
            day,
            SchedulingPolicy.from_service(service),
        )

    logger.info(f"{len(slots)} slots for service {service_id} on {day} (org {organization_id})")
    return AvailabilityResponse(
        service_id=service_id,
        date=day.isoformat(),
        timezone=availability.tz.key,
        slots=slots,
    )
