# joeyjob/api/v1/dashboard/bookings.py
"""Dashboard booking endpoints - thin HTTP layer over BookingService"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from joeyjob.config.database import get_db
from joeyjob.schemas.booking import BookingStatus, BookingStatusUpdate
from joeyjob.services.booking.booking_service import BookingService

router = APIRouter(prefix="/bookings")


@router.get("")
async def list_bookings(
        organization_id: str = Query(..., description="Organization the bookings belong to"),
        status: Optional[BookingStatus] = Query(None, description="Filter by booking status"),
        start_date: Optional[date] = Query(None, description="Bookings starting on or after this date"),
        end_date: Optional[date] = Query(None, description="Bookings starting on or before this date"),
        skip: int = Query(0, ge=0, description="Number of records to skip"),
        limit: int = Query(50, ge=1, le=100, description="Number of records to return"),
        db: Session = Depends(get_db)
):
    return BookingService.list_bookings(
        db=db,
        organization_id=organization_id,
        status=status.value if status else None,
        start_date=start_date,
        end_date=end_date,
        skip=skip,
        limit=limit
    )


@router.get("/{booking_id}")
async def get_booking(
        booking_id: str = Path(..., description="The booking ID"),
        organization_id: str = Query(...),
        db: Session = Depends(get_db)
):
    return BookingService.get_booking_details(db, organization_id, booking_id)


@router.patch("/{booking_id}/status")
async def update_booking_status(
        update: BookingStatusUpdate,
        booking_id: str = Path(..., description="The booking ID"),
        organization_id: str = Query(...),
        db: Session = Depends(get_db)
):
    """Move a booking to a new lifecycle status"""
    booking = BookingService.update_booking_status(
        db,
        organization_id=organization_id,
        booking_id=booking_id,
        new_status=update.status,
        reason=update.reason,
    )
    return {"success": True, "booking": booking.to_dict()}
