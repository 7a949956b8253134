"""Tests for dashboard booking queries and lifecycle transitions."""

from datetime import date, datetime, timedelta, timezone

import pytest

from joeyjob.core.errors import InvalidStateError, NotFoundError
from joeyjob.models import Booking, BookingEmployee, SimproConnection
from joeyjob.schemas.booking import BookingStatus
from joeyjob.services.booking.booking_service import BookingService
from joeyjob.utils.encryption import encrypt_token
from tests.conftest import ALICE_SIMPRO_ID, SERVICE_ID, seed_employee, seed_organization

START = datetime(2025, 9, 17, 15, 0, tzinfo=timezone.utc)


def seed_booking(db, organization, status="pending", start_at=START, job_id=None, employee=None):
    booking = Booking(
        organization_id=organization.id,
        service_id=SERVICE_ID,
        service_name="Leak Repair",
        service_duration=60,
        customer_name="Jane Doe",
        booking_start_at=start_at,
        booking_end_at=start_at + timedelta(hours=1),
        status=status,
        confirmation_code="JJ00000001",
    )
    db.add(booking)
    db.flush()
    if employee is not None:
        db.add(BookingEmployee(
            booking_id=booking.id,
            organization_employee_id=employee.id,
            simpro_job_id=job_id,
            simpro_status="scheduled" if job_id else "failed",
        ))
    db.commit()
    return booking


def connect_simpro(db, organization):
    db.add(SimproConnection(
        organization_id=organization.id,
        build_name="acme",
        domain="simprosuite.com",
        access_token_encrypted=encrypt_token("access"),
        refresh_token_encrypted=encrypt_token("refresh"),
    ))
    db.commit()


class TestStatusTransitions:
    def test_confirm_scheduled_booking(self, db):
        organization = seed_organization(db)
        connect_simpro(db, organization)
        alice = seed_employee(db, organization, ALICE_SIMPRO_ID, "Alice")
        booking = seed_booking(db, organization, job_id=701, employee=alice)

        updated = BookingService.update_booking_status(db, organization.id, booking.id, BookingStatus.CONFIRMED)

        assert updated.status == "confirmed"

    def test_confirm_requires_simpro_job_when_connected(self, db):
        organization = seed_organization(db)
        connect_simpro(db, organization)
        alice = seed_employee(db, organization, ALICE_SIMPRO_ID, "Alice")
        booking = seed_booking(db, organization, employee=alice)

        with pytest.raises(InvalidStateError, match="scheduled in SimPro"):
            BookingService.update_booking_status(db, organization.id, booking.id, BookingStatus.CONFIRMED)

        db.refresh(booking)
        assert booking.status == "pending"

    def test_confirm_without_connection(self, db):
        organization = seed_organization(db)
        booking = seed_booking(db, organization)

        updated = BookingService.update_booking_status(db, organization.id, booking.id, BookingStatus.CONFIRMED)
        assert updated.status == "confirmed"

    def test_cancel_records_reason(self, db):
        organization = seed_organization(db)
        booking = seed_booking(db, organization, status="confirmed")

        updated = BookingService.update_booking_status(
            db, organization.id, booking.id, BookingStatus.CANCELLED, reason="Customer rescheduled"
        )

        assert updated.status == "cancelled"
        assert updated.cancellation_reason == "Customer rescheduled"
        assert updated.cancelled_at is not None

    @pytest.mark.parametrize("current,target", [
        ("pending", BookingStatus.COMPLETED),
        ("pending", BookingStatus.NO_SHOW),
        ("cancelled", BookingStatus.CONFIRMED),
        ("completed", BookingStatus.CANCELLED),
    ])
    def test_disallowed_transitions(self, db, current, target):
        organization = seed_organization(db)
        booking = seed_booking(db, organization, status=current)

        with pytest.raises(InvalidStateError):
            BookingService.update_booking_status(db, organization.id, booking.id, target)

    def test_other_organizations_booking_not_found(self, db):
        organization = seed_organization(db)
        booking = seed_booking(db, organization)

        with pytest.raises(NotFoundError):
            BookingService.update_booking_status(db, "other-org", booking.id, BookingStatus.CANCELLED)


class TestListBookings:
    def test_filters_and_pagination(self, db):
        organization = seed_organization(db)
        for offset in range(3):
            seed_booking(db, organization, start_at=START + timedelta(days=offset))
        seed_booking(db, organization, status="cancelled", start_at=START)

        result = BookingService.list_bookings(db, organization.id, status="pending", limit=2)

        assert result["total_bookings"] == 3
        assert result["page"]["total_pages"] == 2
        assert len(result["bookings"]) == 2
        assert result["bookings"][0]["booking_start_at"].startswith("2025-09-19")

    def test_date_range(self, db):
        organization = seed_organization(db)
        for offset in range(3):
            seed_booking(db, organization, start_at=START + timedelta(days=offset))

        result = BookingService.list_bookings(
            db, organization.id, start_date=date(2025, 9, 18), end_date=date(2025, 9, 18)
        )

        assert result["total_bookings"] == 1
        assert result["filters"]["start_date"] == "2025-09-18"

    def test_details_include_assignment(self, db):
        organization = seed_organization(db)
        alice = seed_employee(db, organization, ALICE_SIMPRO_ID, "Alice")
        booking = seed_booking(db, organization, job_id=701, employee=alice)

        details = BookingService.get_booking_details(db, organization.id, booking.id)

        assert details["assignment"]["employee_name"] == "Alice"
        assert details["assignment"]["simpro_job_id"] == 701
        assert "internal_notes" in details
