# joeyjob/schemas/booking.py
from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, Dict, Any, List
from enum import Enum

from joeyjob.utils.time_utils import parse_booking_date, to_24_hour


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class BookingSource(str, Enum):
    WEB = "web"
    API = "api"
    ADMIN = "admin"


class ServiceReference(BaseModel):
    id: str = Field(..., min_length=1, description="Service node id in the form's service tree")


class BookingSubmitData(BaseModel):
    """Booking payload as sent by the booking form"""
    model_config = ConfigDict(populate_by_name=True)

    service: ServiceReference
    date: str = Field(..., description="ISO date, e.g. 2025-09-17 or 2025-09-17T05:00:00.000Z")
    time: str = Field(..., description="12-hour time, e.g. '2:00 pm'")
    form_data: Dict[str, Any] = Field(..., alias="formData", description="Answers keyed by field id")
    organization_timezone: Optional[str] = Field(None, alias="organizationTimezone")
    idempotency_key: Optional[str] = Field(None, alias="idempotencyKey", max_length=100)
    source: BookingSource = Field(BookingSource.WEB)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        parse_booking_date(v)
        return v

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        to_24_hour(v)
        return v.strip()


class BookingSubmitRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    organization_id: str = Field(..., alias="organizationId", min_length=1)
    user_id: Optional[str] = Field(None, alias="userId", description="Acting user, for audit logs")
    booking_data: BookingSubmitData = Field(..., alias="bookingData")


class SimproReferences(BaseModel):
    job_id: Optional[int] = None
    customer_id: Optional[int] = None
    schedule_id: Optional[int] = None
    site_id: Optional[int] = None


class BookingSubmitResponse(BaseModel):
    success: bool = Field(True)
    booking: Dict[str, Any] = Field(..., description="Stored booking record")
    simpro: Optional[SimproReferences] = Field(None, description="SimPro ids, absent in local-only mode")
    confirmation_code: str
    employee_assigned: bool
    employee_name: Optional[str] = None
    message: str = Field("Booking submitted successfully")


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    reason: Optional[str] = Field(None, max_length=500, description="Cancellation reason")


class EmployeeUpdate(BaseModel):
    is_enabled: bool = Field(..., description="Whether the employee can take bookings")


class AvailabilityRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    organization_id: str = Field(..., alias="organizationId")
    date: str = Field(..., description="ISO date to list slots for")

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        parse_booking_date(v)
        return v


class AvailabilityResponse(BaseModel):
    service_id: str
    date: str
    timezone: str
    slots: List[str] = Field(default_factory=list, description="Bookable 12-hour slot labels")
