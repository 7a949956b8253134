# joeyjob/api/v1/public/availability.py
"""Public slot listing for a service"""
from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from joeyjob.api.dependencies import get_simpro_client, local_only_enabled
from joeyjob.config.database import get_db
from joeyjob.schemas.booking import AvailabilityRequest, AvailabilityResponse
from joeyjob.services.availability.slot_service import get_service_availability

router = APIRouter(prefix="/services")


@router.post("/{service_id}/availability", response_model=AvailabilityResponse)
async def get_availability(
        request: AvailabilityRequest,
        service_id: str = Path(..., description="Service node id in the booking form"),
        db: Session = Depends(get_db)
):
    """List the bookable 12-hour slot labels for a service on one day"""
    client = get_simpro_client(db, request.organization_id, allow_missing=local_only_enabled())
    try:
        return await get_service_availability(
            db,
            organization_id=request.organization_id,
            service_id=service_id,
            date=request.date,
            simpro_client=client,
        )
    finally:
        if client is not None:
            await client.aclose()
