# joeyjob/services/booking/booking_service.py
"""Dashboard-side booking queries and status transitions"""
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from joeyjob.core.errors import InvalidStateError, NotFoundError
from joeyjob.models.booking import Booking
from joeyjob.schemas.booking import BookingStatus
from joeyjob.services.simpro.connection_service import SimproConnectionService

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW},
}


class BookingService:
    """Service layer for booking queries and lifecycle changes."""

    @staticmethod
    def list_bookings(
            db: Session,
            organization_id: str,
            status: Optional[str] = None,
            start_date: Optional[date] = None,
            end_date: Optional[date] = None,
            skip: int = 0,
            limit: int = 50
    ) -> Dict[str, Any]:
        """Paginated bookings, newest appointment first. Dates are UTC calendar days."""
        query = db.query(Booking).filter(Booking.organization_id == organization_id)

        if status:
            query = query.filter(Booking.status == status)
        if start_date:
            query = query.filter(
                Booking.booking_start_at >= datetime.combine(start_date, time.min, tzinfo=timezone.utc)
            )
        if end_date:
            query = query.filter(
                Booking.booking_start_at < datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
            )

        total = query.count()
        bookings = query.order_by(Booking.booking_start_at.desc()).offset(skip).limit(limit).all()

        return {
            "organization_id": organization_id,
            "total_bookings": total,
            "page": {
                "skip": skip,
                "limit": limit,
                "total_pages": (total + limit - 1) // limit if total > 0 else 0
            },
            "filters": {
                "status": status,
                "start_date": start_date.isoformat() if start_date else None,
                "end_date": end_date.isoformat() if end_date else None,
            },
            "bookings": [BookingService._serialize_booking(booking) for booking in bookings]
        }

    @staticmethod
    def get_booking(db: Session, organization_id: str, booking_id: str) -> Booking:
        booking = db.query(Booking).filter(
            Booking.id == booking_id,
            Booking.organization_id == organization_id
        ).first()
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    @staticmethod
    def get_booking_details(db: Session, organization_id: str, booking_id: str) -> Dict[str, Any]:
        booking = BookingService.get_booking(db, organization_id, booking_id)
        return BookingService._serialize_booking(booking, detailed=True)

    @staticmethod
    def update_booking_status(
            db: Session,
            organization_id: str,
            booking_id: str,
            new_status: BookingStatus,
            reason: Optional[str] = None
    ) -> Booking:
        """
        Move a booking through its lifecycle.

        pending -> confirmed | cancelled
        confirmed -> completed | cancelled | no-show

        Confirming needs a SimPro job on the assignment unless the
        organization has no active SimPro connection.
        """
        booking = BookingService.get_booking(db, organization_id, booking_id)
        current = BookingStatus(booking.status)
        new_status = BookingStatus(new_status)

        if new_status not in ALLOWED_TRANSITIONS.get(current, set()):
            raise InvalidStateError(f"Cannot change booking status from {current.value} to {new_status.value}")

        if new_status == BookingStatus.CONFIRMED:
            has_job = booking.assignment is not None and booking.assignment.simpro_job_id is not None
            if not has_job and SimproConnectionService.has_active_connection(db, organization_id):
                raise InvalidStateError("Booking cannot be confirmed before it is scheduled in SimPro")

        booking.status = new_status.value
        if new_status == BookingStatus.CANCELLED:
            booking.cancelled_at = datetime.now(timezone.utc)
            booking.cancellation_reason = reason

        db.commit()
        db.refresh(booking)
        logger.info(f"Booking {booking_id} status {current.value} -> {new_status.value}")
        return booking

    @staticmethod
    def _serialize_booking(booking: Booking, detailed: bool = False) -> Dict[str, Any]:
        data = booking.to_dict()
        data["assignment"] = booking.assignment.to_dict() if booking.assignment else None
        if detailed:
            data["internal_notes"] = booking.internal_notes
            data["cancelled_at"] = booking.cancelled_at.isoformat() if booking.cancelled_at else None
        return data
