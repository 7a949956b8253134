# joeyjob/schemas/__init__.py
from .service_tree import ServiceNode

from .booking import (
    BookingStatus,
    BookingSource,
    ServiceReference,
    BookingSubmitData,
    BookingSubmitRequest,
    SimproReferences,
    BookingSubmitResponse,
    BookingStatusUpdate,
    EmployeeUpdate,
    AvailabilityRequest,
    AvailabilityResponse,
)

from .simpro import (
    SimproAddress,
    SimproCustomerInput,
    SimproJobInput,
    ScheduleBlock,
    SimproScheduleInput,
    SimproBookingRequest,
    SimproBookingResult,
)
