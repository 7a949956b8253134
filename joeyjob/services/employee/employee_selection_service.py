# joeyjob/services/employee/employee_selection_service.py
"""
Pick one employee for a requested slot.

Candidates are ranked (default employee first, then caller order), all of
them are evaluated concurrently against one availability snapshot, and the
first available candidate in ranked order wins.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from joeyjob.config.settings import get_settings
from joeyjob.core.errors import NoEligibleEmployeesError
from joeyjob.services.availability.availability_service import (
    AvailabilityService,
    SchedulingPolicy,
    utc_now,
)
from joeyjob.services.simpro.simpro_client import SimproClient
from joeyjob.utils.time_utils import build_booking_window

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass
class Candidate:
    employee_id: int
    employee_name: Optional[str] = None
    is_default: bool = False
    is_available: bool = False


@dataclass
class EmployeeSelection:
    selected_employee: Candidate
    available_employees: List[Candidate] = field(default_factory=list)
    candidates: List[Candidate] = field(default_factory=list)
    total_employees_checked: int = 0


def rank_candidates(employee_ids: List[int], default_flags: Optional[Dict[int, bool]] = None) -> List[int]:
    """
    Evaluation order: default employee(s) first, then everyone else in the
    order given. Duplicates keep their first position.
    """
    default_flags = default_flags or {}
    unique_ids = list(dict.fromkeys(employee_ids))
    defaults = [employee_id for employee_id in unique_ids if default_flags.get(employee_id)]
    others = [employee_id for employee_id in unique_ids if not default_flags.get(employee_id)]
    return defaults + others


async def select_employee_for_booking(
        db: Session,
        candidate_employee_ids: List[int],
        date: str,
        time: str,
        policy: SchedulingPolicy,
        organization_id: str,
        user_id: Optional[str] = None,
        default_flags: Optional[Dict[int, bool]] = None,
        *,
        simpro_client: Optional[SimproClient] = None,
        timezone: Optional[str] = None,
        employee_names: Optional[Dict[int, str]] = None,
        exclude_booking_id: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
) -> Optional[EmployeeSelection]:
    """
    Select the best available employee for a booking.

    Returns None when nobody is free for the slot. Raises
    NoEligibleEmployeesError for an empty pool without reading any
    availability data; AvailabilitySourceError propagates from the loader.
    """
    if not candidate_employee_ids:
        raise NoEligibleEmployeesError()

    default_flags = default_flags or {}
    employee_names = employee_names or {}
    ranked_ids = rank_candidates(candidate_employee_ids, default_flags)

    window = build_booking_window(date, time, policy.duration, timezone, settings.DEFAULT_TIMEZONE)
    availability = AvailabilityService(db, simpro_client, window.timezone, clock=clock)

    logger.info(
        f"Selecting employee for org {organization_id} (user {user_id}) on {window.local_date} "
        f"{window.start_time}-{window.end_time} {window.timezone} from {ranked_ids}"
    )

    snapshot = await availability.load_snapshot(
        organization_id, ranked_ids, window.local_date, exclude_booking_id=exclude_booking_id
    )
    results = await asyncio.gather(*(
        availability.check_employee_availability(snapshot, employee_id, window.start_at, window.end_at, policy)
        for employee_id in ranked_ids
    ))

    candidates = []
    for employee_id, is_available in zip(ranked_ids, results):
        hours = snapshot.working_hours.get(employee_id)
        candidates.append(Candidate(
            employee_id=employee_id,
            employee_name=employee_names.get(employee_id) or (hours.employee_name if hours else None),
            is_default=bool(default_flags.get(employee_id)),
            is_available=is_available,
        ))

    available = [candidate for candidate in candidates if candidate.is_available]
    if not available:
        logger.info(f"No employees available for org {organization_id} at {window.start_at.isoformat()}")
        return None

    selected = available[0]
    if not selected.is_default and any(candidate.is_default for candidate in candidates):
        logger.info(f"Default employee unavailable, falling back to employee {selected.employee_id}")
    logger.info(
        f"Selected employee {selected.employee_id} ({selected.employee_name}), "
        f"{len(available)}/{len(candidates)} available"
    )

    return EmployeeSelection(
        selected_employee=selected,
        available_employees=available,
        candidates=candidates,
        total_employees_checked=len(candidates),
    )
