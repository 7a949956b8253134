# joeyjob/services/availability/availability_service.py
"""
Employee availability for a booking window.

Data is loaded once per request into an AvailabilitySnapshot (SimPro
working hours and schedules plus local bookings), then every employee is
evaluated against it with the pure ``is_employee_available`` check. A
SimPro read failure raises AvailabilitySourceError; an unreachable source
never counts as "available".
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from joeyjob.config.settings import get_settings
from joeyjob.core.errors import AvailabilitySourceError
from joeyjob.models.booking import Booking
from joeyjob.models.booking_employee import BookingEmployee
from joeyjob.models.organization_employee import OrganizationEmployee
from joeyjob.schemas.booking import BookingStatus
from joeyjob.schemas.service_tree import ServiceNode
from joeyjob.services.simpro.simpro_client import SimproApiError, SimproClient
from joeyjob.utils.time_utils import (
    WEEKDAY_NAMES,
    ensure_utc,
    local_to_utc,
    minutes_to_12_hour,
    resolve_timezone,
    time_to_minutes,
)

settings = get_settings()
logger = logging.getLogger(__name__)

# Bookings in these states hold their slot
BLOCKING_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def default_day_window() -> List[Tuple[int, int]]:
    """Working block assumed for employees without SimPro working hours"""
    return [(time_to_minutes(settings.DEFAULT_DAY_START), time_to_minutes(settings.DEFAULT_DAY_END))]


@dataclass(frozen=True)
class SchedulingPolicy:
    """Per-service scheduling rules; all values in minutes"""
    duration: int
    interval: int = 30
    buffer_time: int = 15
    minimum_notice: int = 0

    @classmethod
    def from_service(cls, service: ServiceNode) -> "SchedulingPolicy":
        return cls(
            duration=service.duration,
            interval=service.interval or settings.DEFAULT_SERVICE_INTERVAL,
            buffer_time=service.buffer_time if service.buffer_time is not None else settings.DEFAULT_BUFFER_TIME,
            minimum_notice=(
                service.minimum_notice if service.minimum_notice is not None else settings.DEFAULT_MINIMUM_NOTICE
            ),
        )


@dataclass(frozen=True)
class BusyBlock:
    employee_id: int
    start_at: datetime
    end_at: datetime
    source: str = "simpro"  # simpro, local

    def overlaps(self, start_at: datetime, end_at: datetime, buffer_minutes: int = 0) -> bool:
        buffer = timedelta(minutes=buffer_minutes)
        return start_at < self.end_at + buffer and end_at > self.start_at - buffer


@dataclass
class EmployeeWorkingHours:
    """Weekly working blocks from SimPro, as minutes since local midnight"""
    employee_id: int
    employee_name: str
    working_days: Dict[str, List[Tuple[int, int]]] = field(default_factory=dict)

    @property
    def has_schedule(self) -> bool:
        return any(self.working_days.values())

    def blocks_for(self, weekday_name: str) -> List[Tuple[int, int]]:
        return self.working_days.get(weekday_name, [])


@dataclass
class AvailabilitySnapshot:
    """Everything needed to evaluate a set of employees for one day"""
    timezone: ZoneInfo
    day: date
    working_hours: Dict[int, EmployeeWorkingHours] = field(default_factory=dict)
    busy_blocks: Dict[int, List[BusyBlock]] = field(default_factory=dict)
    missing_employee_ids: Set[int] = field(default_factory=set)
    external_source: bool = True

    def blocks_for(self, employee_id: int) -> List[BusyBlock]:
        return self.busy_blocks.get(employee_id, [])


def is_employee_available(
        working_hours: Optional[EmployeeWorkingHours],
        busy_blocks: Iterable[BusyBlock],
        start_at: datetime,
        end_at: datetime,
        policy: SchedulingPolicy,
        now: datetime,
        tz: ZoneInfo,
) -> bool:
    """Whether an employee can take the window [start_at, end_at)."""
    # Minimum notice
    if start_at < now + timedelta(minutes=policy.minimum_notice):
        return False

    # Working hours, or the default day when SimPro reports none
    local_start = start_at.astimezone(tz)
    start_minutes = local_start.hour * 60 + local_start.minute
    end_minutes = start_minutes + int((end_at - start_at).total_seconds() // 60)
    if working_hours is not None and working_hours.has_schedule:
        blocks = working_hours.blocks_for(WEEKDAY_NAMES[local_start.weekday()])
    else:
        blocks = default_day_window()
    if not any(work_start <= start_minutes and end_minutes <= work_end for work_start, work_end in blocks):
        return False

    # Existing bookings, widened by the buffer on both sides
    return not any(block.overlaps(start_at, end_at, policy.buffer_time) for block in busy_blocks)


class AvailabilityService:
    """Loads availability data and evaluates employees against it"""

    def __init__(
            self,
            db: Session,
            simpro_client: Optional[SimproClient] = None,
            timezone_name: Optional[str] = None,
            clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.simpro_client = simpro_client
        self.tz = resolve_timezone(timezone_name, settings.DEFAULT_TIMEZONE)
        self.clock = clock

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_snapshot(
            self,
            organization_id: str,
            employee_ids: List[int],
            day: date,
            exclude_booking_id: Optional[str] = None,
    ) -> AvailabilitySnapshot:
        snapshot = AvailabilitySnapshot(
            timezone=self.tz,
            day=day,
            external_source=self.simpro_client is not None,
        )

        # Neighbouring days are included so buffers across midnight still count
        range_start = local_to_utc(day - timedelta(days=1), 0, self.tz)
        range_end = local_to_utc(day + timedelta(days=2), 0, self.tz)

        if self.simpro_client is not None:
            working_hours, missing = await self._fetch_working_hours(employee_ids)
            snapshot.working_hours = working_hours
            snapshot.missing_employee_ids = missing
            for block in await self._fetch_external_busy_blocks(day, employee_ids):
                snapshot.busy_blocks.setdefault(block.employee_id, []).append(block)

        for block in self._load_local_busy_blocks(
                organization_id, employee_ids, range_start, range_end, exclude_booking_id
        ):
            snapshot.busy_blocks.setdefault(block.employee_id, []).append(block)

        return snapshot

    async def _fetch_working_hours(
            self, employee_ids: List[int]
    ) -> Tuple[Dict[int, EmployeeWorkingHours], Set[int]]:
        """Fetch employee details concurrently and build weekly working blocks"""

        async def fetch(employee_id: int):
            try:
                return employee_id, await self.simpro_client.get_employee_details(employee_id)
            except SimproApiError as e:
                if e.status_code == 404:
                    logger.warning(f"Employee {employee_id} not found in SimPro, treating as unavailable")
                    return employee_id, None
                raise

        try:
            results = await asyncio.gather(*(fetch(employee_id) for employee_id in employee_ids))
        except SimproApiError as e:
            logger.error(f"Failed to load employee working hours from SimPro: {e.message}")
            raise AvailabilitySourceError(details={"simpro_error": e.message, "status_code": e.status_code}) from e

        working_hours: Dict[int, EmployeeWorkingHours] = {}
        missing: Set[int] = set()
        for employee_id, details in results:
            if details is None:
                missing.add(employee_id)
                continue

            hours = EmployeeWorkingHours(employee_id=employee_id, employee_name=details.get("Name", ""))
            for availability in details.get("Availability") or []:
                try:
                    block = (time_to_minutes(availability["StartTime"]), time_to_minutes(availability["EndTime"]))
                except (KeyError, ValueError, AttributeError):
                    logger.warning(f"Skipping malformed availability block for employee {employee_id}: {availability}")
                    continue
                hours.working_days.setdefault(availability.get("StartDate", ""), []).append(block)
            working_hours[employee_id] = hours

        return working_hours, missing

    async def _fetch_external_busy_blocks(self, day: date, employee_ids: List[int]) -> List[BusyBlock]:
        """SimPro schedule blocks for the relevant employees around the requested day"""
        start = (day - timedelta(days=1)).isoformat()
        end = (day + timedelta(days=1)).isoformat()
        try:
            schedules = await self.simpro_client.get_schedules(start_date=start, end_date=end)
        except SimproApiError as e:
            logger.error(f"Failed to load schedules from SimPro: {e.message}")
            raise AvailabilitySourceError(details={"simpro_error": e.message, "status_code": e.status_code}) from e

        wanted = set(employee_ids)
        blocks: List[BusyBlock] = []
        for schedule in schedules:
            staff = schedule.get("Staff")
            staff_id = staff.get("ID") if isinstance(staff, dict) else staff
            if staff_id not in wanted:
                continue
            for block in schedule.get("Blocks") or []:
                parsed = self._parse_schedule_block(staff_id, schedule.get("Date"), block)
                if parsed:
                    blocks.append(parsed)
        return blocks

    def _parse_schedule_block(self, employee_id: int, schedule_date: Optional[str], block: dict) -> Optional[BusyBlock]:
        iso_start = block.get("ISO8601StartTime")
        iso_end = block.get("ISO8601EndTime")
        try:
            if iso_start and iso_end:
                start_at = datetime.fromisoformat(iso_start)
                end_at = datetime.fromisoformat(iso_end)
                if start_at.tzinfo is None:
                    start_at = start_at.replace(tzinfo=self.tz)
                    end_at = end_at.replace(tzinfo=self.tz)
                return BusyBlock(employee_id, ensure_utc(start_at), ensure_utc(end_at))

            block_day = date.fromisoformat(schedule_date)
            start_minutes = time_to_minutes(block["StartTime"])
            end_minutes = time_to_minutes(block["EndTime"])
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Skipping malformed schedule block for employee {employee_id}: {block}")
            return None

        if end_minutes <= start_minutes:
            end_minutes += 24 * 60
        return BusyBlock(
            employee_id,
            local_to_utc(block_day, start_minutes, self.tz),
            local_to_utc(block_day, end_minutes, self.tz),
        )

    def _load_local_busy_blocks(
            self,
            organization_id: str,
            employee_ids: List[int],
            range_start: datetime,
            range_end: datetime,
            exclude_booking_id: Optional[str] = None,
    ) -> List[BusyBlock]:
        """Pending/confirmed local bookings already assigned to these employees"""
        if not employee_ids:
            return []

        query = (
            self.db.query(Booking, OrganizationEmployee.simpro_employee_id)
            .join(BookingEmployee, BookingEmployee.booking_id == Booking.id)
            .join(OrganizationEmployee, OrganizationEmployee.id == BookingEmployee.organization_employee_id)
            .filter(
                Booking.organization_id == organization_id,
                Booking.status.in_(BLOCKING_STATUSES),
                Booking.booking_start_at < range_end,
                Booking.booking_end_at > range_start,
                OrganizationEmployee.simpro_employee_id.in_(employee_ids),
            )
        )
        if exclude_booking_id:
            query = query.filter(Booking.id != exclude_booking_id)

        return [
            BusyBlock(
                employee_id=simpro_employee_id,
                start_at=ensure_utc(booking.booking_start_at),
                end_at=ensure_utc(booking.booking_end_at),
                source="local",
            )
            for booking, simpro_employee_id in query.all()
        ]

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def evaluate(
            self,
            snapshot: AvailabilitySnapshot,
            employee_id: int,
            start_at: datetime,
            end_at: datetime,
            policy: SchedulingPolicy,
            now: Optional[datetime] = None,
    ) -> bool:
        if employee_id in snapshot.missing_employee_ids:
            return False
        return is_employee_available(
            snapshot.working_hours.get(employee_id),
            snapshot.blocks_for(employee_id),
            start_at,
            end_at,
            policy,
            now or self.clock(),
            snapshot.timezone,
        )

    async def check_employee_availability(
            self,
            snapshot: AvailabilitySnapshot,
            employee_id: int,
            start_at: datetime,
            end_at: datetime,
            policy: SchedulingPolicy,
    ) -> bool:
        """Awaitable form of ``evaluate`` so callers can gather many employees"""
        return self.evaluate(snapshot, employee_id, start_at, end_at, policy)

    async def calculate_available_slots_for_date(
            self,
            organization_id: str,
            employee_ids: List[int],
            day: date,
            policy: SchedulingPolicy,
    ) -> List[str]:
        """Slot labels ("9:00am") on a day where at least one employee is free"""
        if not employee_ids:
            return []

        snapshot = await self.load_snapshot(organization_id, employee_ids, day)
        weekday = WEEKDAY_NAMES[day.weekday()]
        default_window = default_day_window()
        now = self.clock()

        slot_minutes: Set[int] = set()
        for employee_id in employee_ids:
            if employee_id in snapshot.missing_employee_ids:
                continue
            hours = snapshot.working_hours.get(employee_id)
            windows = hours.blocks_for(weekday) if hours and hours.has_schedule else default_window

            for work_start, work_end in windows:
                current = work_start
                while current + policy.duration <= work_end:
                    if current not in slot_minutes:
                        start_at = local_to_utc(day, current, self.tz)
                        end_at = start_at + timedelta(minutes=policy.duration)
                        if self.evaluate(snapshot, employee_id, start_at, end_at, policy, now):
                            slot_minutes.add(current)
                    current += policy.interval

        return [minutes_to_12_hour(minutes) for minutes in sorted(slot_minutes)]
