# joeyjob/models/__init__.py
from .base import Base
from .organization import Organization, SimproConnection
from .booking_form import BookingForm
from .booking import Booking
from .organization_employee import OrganizationEmployee
from .booking_employee import BookingEmployee

__all__ = [
    "Base",
    "Organization",
    "SimproConnection",
    "BookingForm",
    "Booking",
    "OrganizationEmployee",
    "BookingEmployee",
]
