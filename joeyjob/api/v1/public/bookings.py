# joeyjob/api/v1/public/bookings.py
"""Public booking submission endpoint used by hosted booking forms"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from joeyjob.config.database import get_db
from joeyjob.schemas.booking import BookingSubmitRequest, BookingSubmitResponse
from joeyjob.services.booking.booking_submission_service import BookingSubmissionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings")


@router.post("/submit", response_model=BookingSubmitResponse)
async def submit_booking(
        request: BookingSubmitRequest,
        db: Session = Depends(get_db)
):
    """
    Submit a booking: assigns an available employee and schedules the job
    in SimPro. Failures come back as {"success": false, "error": {...}}.
    """
    service = BookingSubmissionService(db)
    return await service.submit_booking(
        organization_id=request.organization_id,
        user_id=request.user_id,
        submission=request.booking_data,
    )
