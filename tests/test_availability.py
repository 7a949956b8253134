"""Tests for the availability evaluator and slot listing."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import httpx
import pytest

from joeyjob.core.errors import AvailabilitySourceError
from joeyjob.models import Booking, BookingEmployee
from joeyjob.services.availability.availability_service import (
    AvailabilityService,
    BusyBlock,
    EmployeeWorkingHours,
    SchedulingPolicy,
    is_employee_available,
)
from joeyjob.schemas.service_tree import ServiceNode
from joeyjob.services.simpro.simpro_client import SimproApiError, SimproClient
from tests.conftest import (
    ALICE_SIMPRO_ID,
    BOB_SIMPRO_ID,
    FakeSimproClient,
    FIXED_NOW,
    ORG_TIMEZONE,
    fixed_clock,
    schedule_entry,
    seed_employee,
    seed_organization,
    working_week,
)

UTC = timezone.utc
TZ = ZoneInfo("UTC")
DAY = date(2025, 9, 17)  # Wednesday
POLICY = SchedulingPolicy(duration=60, interval=30, buffer_time=15, minimum_notice=0)


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 9, 17, hour, minute, tzinfo=UTC)


def block(start: datetime, end: datetime) -> BusyBlock:
    return BusyBlock(employee_id=1, start_at=start, end_at=end)


def hours(**days) -> EmployeeWorkingHours:
    return EmployeeWorkingHours(employee_id=1, employee_name="Alice", working_days=days)


class TestSchedulingPolicy:
    def test_defaults_when_unset(self):
        service = ServiceNode.model_validate({"id": "s", "type": "service", "duration": 45})
        policy = SchedulingPolicy.from_service(service)
        assert policy == SchedulingPolicy(duration=45, interval=30, buffer_time=15, minimum_notice=0)

    def test_zero_buffer_is_kept(self):
        service = ServiceNode.model_validate(
            {"id": "s", "type": "service", "duration": 45, "bufferTime": 0, "minimumNotice": 120, "interval": 15}
        )
        policy = SchedulingPolicy.from_service(service)
        assert policy.buffer_time == 0
        assert policy.minimum_notice == 120
        assert policy.interval == 15


class TestIsEmployeeAvailable:
    def test_free_employee(self):
        assert is_employee_available(None, [], at(14), at(15), POLICY, FIXED_NOW, TZ)

    def test_overlapping_booking(self):
        assert not is_employee_available(None, [block(at(14, 30), at(15, 30))], at(14), at(15), POLICY, FIXED_NOW, TZ)

    def test_conflict_inside_buffer(self):
        # 13:45-15:15 existing, 15 minute buffer
        busy = [block(at(13, 45), at(15, 15))]
        assert not is_employee_available(None, busy, at(14), at(15), POLICY, FIXED_NOW, TZ)

    def test_buffer_before_start(self):
        busy = [block(at(12), at(13, 50))]
        assert not is_employee_available(None, busy, at(14), at(15), POLICY, FIXED_NOW, TZ)

    def test_buffer_boundary_is_exclusive(self):
        busy = [block(at(12), at(13, 45)), block(at(15, 15), at(16))]
        assert is_employee_available(None, busy, at(14), at(15), POLICY, FIXED_NOW, TZ)

    def test_zero_buffer_allows_back_to_back(self):
        policy = SchedulingPolicy(duration=60, buffer_time=0)
        busy = [block(at(13), at(14)), block(at(15), at(16))]
        assert is_employee_available(None, busy, at(14), at(15), policy, FIXED_NOW, TZ)

    def test_minimum_notice(self):
        policy = SchedulingPolicy(duration=60, minimum_notice=120)
        now = at(12, 30)
        assert not is_employee_available(None, [], at(14), at(15), policy, now, TZ)
        assert is_employee_available(None, [], at(14, 30), at(15, 30), policy, now, TZ)

    def test_past_slot_rejected(self):
        assert not is_employee_available(None, [], at(14), at(15), POLICY, at(16), TZ)

    def test_inside_working_hours(self):
        working = hours(Wednesday=[(8 * 60, 17 * 60)])
        assert is_employee_available(working, [], at(14), at(15), POLICY, FIXED_NOW, TZ)

    def test_outside_working_hours(self):
        working = hours(Wednesday=[(8 * 60, 17 * 60)])
        assert not is_employee_available(working, [], at(16, 30), at(17, 30), POLICY, FIXED_NOW, TZ)

    def test_split_shift_must_contain_whole_window(self):
        working = hours(Wednesday=[(8 * 60, 12 * 60), (13 * 60, 17 * 60)])
        assert not is_employee_available(working, [], at(11, 30), at(12, 30), POLICY, FIXED_NOW, TZ)
        assert is_employee_available(working, [], at(13), at(14), POLICY, FIXED_NOW, TZ)

    def test_not_working_that_weekday(self):
        working = hours(Monday=[(8 * 60, 17 * 60)])
        assert not is_employee_available(working, [], at(14), at(15), POLICY, FIXED_NOW, TZ)

    def test_no_working_data_uses_default_day(self):
        assert is_employee_available(hours(), [], at(16), at(17), POLICY, FIXED_NOW, TZ)
        assert not is_employee_available(hours(), [], at(22), at(23), POLICY, FIXED_NOW, TZ)
        assert not is_employee_available(None, [], at(3), at(4), POLICY, FIXED_NOW, TZ)

    def test_window_across_midnight_never_fits_a_day(self):
        working = hours(Wednesday=[(0, 24 * 60)])
        start = at(23, 45)
        assert not is_employee_available(working, [], start, start + timedelta(minutes=30), POLICY, FIXED_NOW, TZ)

    def test_working_hours_use_local_time(self):
        # 16:30Z is 15:30 in UTC-1, inside an 08:00-17:00 local day
        working = hours(Wednesday=[(8 * 60, 17 * 60)])
        tz = ZoneInfo(ORG_TIMEZONE)
        assert is_employee_available(working, [], at(16, 30), at(17, 30), POLICY, FIXED_NOW, tz)
        assert not is_employee_available(working, [], at(8, 30), at(9, 30), POLICY, FIXED_NOW, tz)


class TestAvailabilityService:
    def _service(self, db, client=None, tz="UTC"):
        return AvailabilityService(db, client, tz, clock=fixed_clock)

    @pytest.mark.asyncio
    async def test_snapshot_from_simpro(self, db):
        organization = seed_organization(db, "UTC")
        client = FakeSimproClient(schedules=[
            schedule_entry(ALICE_SIMPRO_ID, "2025-09-17", "13:45", "15:15"),
            schedule_entry(999, "2025-09-17", "09:00", "10:00"),
        ])
        service = self._service(db, client)

        snapshot = await service.load_snapshot(organization.id, [ALICE_SIMPRO_ID, BOB_SIMPRO_ID], DAY)

        assert sorted(client.detail_calls) == [ALICE_SIMPRO_ID, BOB_SIMPRO_ID]
        assert snapshot.working_hours[ALICE_SIMPRO_ID].blocks_for("Wednesday") == [(480, 1020)]
        assert snapshot.blocks_for(ALICE_SIMPRO_ID) == [
            BusyBlock(ALICE_SIMPRO_ID, at(13, 45), at(15, 15), "simpro")
        ]
        assert snapshot.blocks_for(BOB_SIMPRO_ID) == []
        assert 999 not in snapshot.busy_blocks

        assert not service.evaluate(snapshot, ALICE_SIMPRO_ID, at(14), at(15), POLICY)
        assert service.evaluate(snapshot, BOB_SIMPRO_ID, at(14), at(15), POLICY)

    @pytest.mark.asyncio
    async def test_local_bookings_block_employee(self, db):
        organization = seed_organization(db, "UTC")
        alice = seed_employee(db, organization, ALICE_SIMPRO_ID, "Alice")
        booking = Booking(
            organization_id=organization.id,
            service_id="svc",
            service_name="Leak Repair",
            service_duration=60,
            customer_name="Someone",
            booking_start_at=at(13, 45),
            booking_end_at=at(15, 15),
            status="confirmed",
            confirmation_code="JJ00000001",
        )
        db.add(booking)
        db.flush()
        db.add(BookingEmployee(booking_id=booking.id, organization_employee_id=alice.id, simpro_status="scheduled"))
        db.commit()

        service = self._service(db)
        snapshot = await service.load_snapshot(organization.id, [ALICE_SIMPRO_ID], DAY)
        assert not service.evaluate(snapshot, ALICE_SIMPRO_ID, at(14), at(15), POLICY)

        excluded = await service.load_snapshot(organization.id, [ALICE_SIMPRO_ID], DAY, exclude_booking_id=booking.id)
        assert service.evaluate(excluded, ALICE_SIMPRO_ID, at(14), at(15), POLICY)

    @pytest.mark.asyncio
    async def test_cancelled_bookings_do_not_block(self, db):
        organization = seed_organization(db, "UTC")
        alice = seed_employee(db, organization, ALICE_SIMPRO_ID, "Alice")
        booking = Booking(
            organization_id=organization.id,
            service_id="svc",
            service_name="Leak Repair",
            service_duration=60,
            customer_name="Someone",
            booking_start_at=at(14),
            booking_end_at=at(15),
            status="cancelled",
            confirmation_code="JJ00000002",
        )
        db.add(booking)
        db.flush()
        db.add(BookingEmployee(booking_id=booking.id, organization_employee_id=alice.id))
        db.commit()

        service = self._service(db)
        snapshot = await service.load_snapshot(organization.id, [ALICE_SIMPRO_ID], DAY)
        assert service.evaluate(snapshot, ALICE_SIMPRO_ID, at(14), at(15), POLICY)

    @pytest.mark.asyncio
    async def test_unreachable_source_fails_closed(self, db):
        organization = seed_organization(db, "UTC")
        client = FakeSimproClient(read_error=SimproApiError("SimPro request timed out"))

        with pytest.raises(AvailabilitySourceError):
            await self._service(db, client).load_snapshot(organization.id, [ALICE_SIMPRO_ID], DAY)

    @pytest.mark.asyncio
    async def test_non_json_simpro_response_fails_closed(self, db):
        organization = seed_organization(db, "UTC")

        def handler(request):
            return httpx.Response(200, text="<html>Scheduled maintenance</html>")

        client = SimproClient(
            build_name="acme",
            domain="simprosuite.com",
            access_token="access",
            refresh_token="refresh",
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        with pytest.raises(AvailabilitySourceError):
            await self._service(db, client).load_snapshot(organization.id, [ALICE_SIMPRO_ID], DAY)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_employee_missing_in_simpro_is_unavailable(self, db):
        organization = seed_organization(db, "UTC")

        class MissingEmployeeClient(FakeSimproClient):
            async def get_employee_details(self, employee_id):
                if employee_id == BOB_SIMPRO_ID:
                    raise SimproApiError("Not Found", status_code=404)
                return await super().get_employee_details(employee_id)

        service = self._service(db, MissingEmployeeClient())
        snapshot = await service.load_snapshot(organization.id, [ALICE_SIMPRO_ID, BOB_SIMPRO_ID], DAY)

        assert snapshot.missing_employee_ids == {BOB_SIMPRO_ID}
        assert not service.evaluate(snapshot, BOB_SIMPRO_ID, at(14), at(15), POLICY)
        assert service.evaluate(snapshot, ALICE_SIMPRO_ID, at(14), at(15), POLICY)

    @pytest.mark.asyncio
    async def test_iso_schedule_times(self, db):
        organization = seed_organization(db, "UTC")
        client = FakeSimproClient(schedules=[{
            "Staff": {"ID": ALICE_SIMPRO_ID},
            "Date": "2025-09-17",
            "Blocks": [{
                "ISO8601StartTime": "2025-09-17T14:00:00+00:00",
                "ISO8601EndTime": "2025-09-17T15:00:00+00:00",
            }],
        }])
        snapshot = await self._service(db, client).load_snapshot(organization.id, [ALICE_SIMPRO_ID], DAY)
        assert snapshot.blocks_for(ALICE_SIMPRO_ID)[0].start_at == at(14)


class TestAvailableSlots:
    @pytest.mark.asyncio
    async def test_slots_skip_busy_periods(self, db):
        organization = seed_organization(db, "UTC")
        client = FakeSimproClient(
            employees={ALICE_SIMPRO_ID: {"ID": ALICE_SIMPRO_ID, "Availability": working_week("09:00", "12:00")}},
            schedules=[schedule_entry(ALICE_SIMPRO_ID, "2025-09-17", "10:00", "10:30")],
        )
        service = AvailabilityService(db, client, "UTC", clock=fixed_clock)

        slots = await service.calculate_available_slots_for_date(
            organization.id, [ALICE_SIMPRO_ID], DAY, SchedulingPolicy(duration=30, interval=30, buffer_time=0)
        )
        assert slots == ["9:00am", "9:30am", "10:30am", "11:00am", "11:30am"]

    @pytest.mark.asyncio
    async def test_slots_union_across_employees(self, db):
        organization = seed_organization(db, "UTC")
        client = FakeSimproClient(employees={
            ALICE_SIMPRO_ID: {"ID": ALICE_SIMPRO_ID, "Availability": working_week("09:00", "10:00")},
            BOB_SIMPRO_ID: {"ID": BOB_SIMPRO_ID, "Availability": working_week("10:00", "11:00")},
        })
        service = AvailabilityService(db, client, "UTC", clock=fixed_clock)

        slots = await service.calculate_available_slots_for_date(
            organization.id, [ALICE_SIMPRO_ID, BOB_SIMPRO_ID], DAY, SchedulingPolicy(duration=60, interval=30)
        )
        assert slots == ["9:00am", "10:00am"]

    @pytest.mark.asyncio
    async def test_default_day_window_without_working_hours(self, db):
        organization = seed_organization(db, "UTC")
        service = AvailabilityService(db, None, "UTC", clock=fixed_clock)

        slots = await service.calculate_available_slots_for_date(
            organization.id, [ALICE_SIMPRO_ID], DAY, SchedulingPolicy(duration=60, interval=60)
        )
        assert slots[0] == "8:00am"
        assert slots[-1] == "4:00pm"
        assert len(slots) == 9

    @pytest.mark.asyncio
    async def test_weekend_without_working_blocks(self, db):
        organization = seed_organization(db, "UTC")
        service = AvailabilityService(db, FakeSimproClient(), "UTC", clock=fixed_clock)

        slots = await service.calculate_available_slots_for_date(
            organization.id, [ALICE_SIMPRO_ID], DAY + timedelta(days=3), SchedulingPolicy(duration=60)
        )
        assert slots == []
