# joeyjob/services/booking/booking_submission_service.py
"""
Booking submission: local booking + employee selection + SimPro job.

The booking row is committed as ``pending`` before any external call. What
happens when a later step fails is decided by ExternalFailurePolicy:

- ROLLBACK: the booking row is deleted and a categorized BookingError is
  raised.
- LOCAL_ONLY: SimPro failures leave the booking ``pending`` with a failed
  assignment and a sync note, and the submission still succeeds.

Invalid-state failures (nobody eligible or available) always roll back.
"""
import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from joeyjob.config.settings import get_settings
from joeyjob.core.errors import (
    BookingError,
    ConfigurationError,
    DuplicateSubmissionError,
    ExternalAuthenticationError,
    ExternalSystemError,
    ExternalValidationError,
    InvalidStateError,
    NoAvailabilityError,
    NoEligibleEmployeesError,
    NotFoundError,
)
from joeyjob.models.booking import Booking
from joeyjob.models.booking_employee import BookingEmployee
from joeyjob.models.booking_form import BookingForm
from joeyjob.models.organization import Organization
from joeyjob.models.organization_employee import OrganizationEmployee
from joeyjob.schemas.booking import BookingStatus, BookingSubmitData, BookingSubmitResponse, SimproReferences
from joeyjob.schemas.service_tree import ServiceNode
from joeyjob.schemas.simpro import (
    ScheduleBlock,
    SimproBookingRequest,
    SimproBookingResult,
    SimproJobInput,
    SimproScheduleInput,
)
from joeyjob.services.availability.availability_service import SchedulingPolicy, utc_now
from joeyjob.services.booking.form_responses import (
    build_question_map,
    build_simpro_customer,
    extract_customer,
    format_responses_as_html,
    resolve_form_responses,
)
from joeyjob.services.booking.service_tree import get_active_form, get_bookable_service
from joeyjob.services.employee.employee_selection_service import select_employee_for_booking
from joeyjob.services.employee.employee_service import EmployeeService
from joeyjob.services.simpro.connection_service import SimproConnectionService
from joeyjob.services.simpro.simpro_client import (
    SimproApiError,
    SimproAuthenticationError,
    SimproClient,
    SimproConfigurationError,
)
from joeyjob.utils.time_utils import BookingWindow, build_booking_window

settings = get_settings()
logger = logging.getLogger(__name__)

VALIDATION_STATUS_CODES = (400, 422)


class ExternalFailurePolicy(str, Enum):
    ROLLBACK = "rollback"
    LOCAL_ONLY = "local_only"


def categorize_external_error(error: Exception) -> BookingError:
    """Map a failure after persistence onto the booking error taxonomy"""
    if isinstance(error, BookingError):
        return error

    if isinstance(error, SimproConfigurationError):
        return ConfigurationError(details={"reason": str(error)})

    if isinstance(error, SimproApiError):
        details = {
            "simpro_error": error.message,
            "status_code": error.status_code,
            "endpoint": error.endpoint,
            "response": error.response_text,
        }
        if isinstance(error, SimproAuthenticationError) or error.status_code == 401:
            return ExternalAuthenticationError(details=details)
        if error.status_code in VALIDATION_STATUS_CODES:
            return ExternalValidationError(details=details)
        return ExternalSystemError(details=details)

    return ExternalSystemError(details={"error": f"{type(error).__name__}: {error}"})


def generate_confirmation_code(now: datetime) -> str:
    """Prefix plus the last 8 digits of the millisecond timestamp"""
    millis = int(now.timestamp() * 1000)
    return f"{settings.CONFIRMATION_CODE_PREFIX}{millis % 100_000_000:08d}"


class BookingSubmissionService:
    """Runs one booking submission end to end"""

    def __init__(
            self,
            db: Session,
            simpro_client: Optional[SimproClient] = None,
            failure_policy: Optional[ExternalFailurePolicy] = None,
            clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.simpro_client = simpro_client
        self.failure_policy = ExternalFailurePolicy(failure_policy or settings.BOOKING_EXTERNAL_FAILURE_POLICY)
        self.clock = clock

    async def submit_booking(
            self,
            organization_id: str,
            user_id: Optional[str],
            submission: BookingSubmitData,
    ) -> BookingSubmitResponse:
        # 1. Validate
        organization = self.db.get(Organization, organization_id)
        if not organization:
            raise NotFoundError("Organization not found")

        if submission.idempotency_key:
            replay = self._replay_previous_submission(organization_id, submission.idempotency_key)
            if replay:
                return replay

        form = get_active_form(self.db, organization_id)
        service = get_bookable_service(form, submission.service.id)
        if service.duration <= 0:
            raise InvalidStateError("Service has no duration configured")

        # 2. Derive schedule
        timezone_name = submission.organization_timezone or organization.timezone
        window = build_booking_window(
            submission.date, submission.time, service.duration, timezone_name, settings.DEFAULT_TIMEZONE
        )
        policy = SchedulingPolicy.from_service(service)

        # 3. Persist booking as pending
        question_map = build_question_map(form.form_config, service)
        booking = self._persist_pending_booking(organization_id, form, service, window, submission, question_map)
        logger.info(
            f"Booking {booking.id} ({booking.confirmation_code}) created as pending for org {organization_id} "
            f"by user {user_id}: {service.label} {window.local_date} {window.start_time}-{window.end_time}"
        )

        client, owns_client = None, False
        try:
            client, owns_client = self._resolve_client(organization_id)
            return await self._assign_and_commit(
                booking, organization_id, user_id, service, window, policy, submission, question_map, client
            )
        except Exception as e:
            error = categorize_external_error(e)
            logger.error(f"Booking {booking.id} failed ({error.kind.value}): {error.message} {error.details}")
            self._delete_booking(booking.id)
            if error is e:
                raise
            raise error from e
        finally:
            if client is not None and owns_client:
                await client.aclose()

    # ------------------------------------------------------------------
    # Workflow steps
    # ------------------------------------------------------------------

    def _replay_previous_submission(self, organization_id: str, key: str) -> Optional[BookingSubmitResponse]:
        previous = self.db.query(Booking).filter(
            Booking.organization_id == organization_id,
            Booking.idempotency_key == key,
        ).first()
        if not previous:
            return None

        if previous.assignment is None:
            logger.warning(f"Duplicate submission for in-flight booking {previous.id} (key {key})")
            raise DuplicateSubmissionError(details={"booking_id": previous.id})

        logger.info(f"Returning stored result for booking {previous.id} (key {key})")
        return self._build_response(previous, previous.assignment, message="Booking already submitted")

    def _persist_pending_booking(
            self,
            organization_id: str,
            form: BookingForm,
            service: ServiceNode,
            window: BookingWindow,
            submission: BookingSubmitData,
            question_map: dict,
    ) -> Booking:
        customer = extract_customer(submission.form_data)
        booking = Booking(
            organization_id=organization_id,
            form_id=form.id,
            service_id=service.id,
            service_name=service.label,
            service_description=service.description,
            service_duration=service.duration,
            service_price=service.price or 0,
            customer_name=customer["name"],
            customer_email=customer["email"],
            customer_phone=customer["phone"],
            customer_company=customer["company"],
            booking_start_at=window.start_at,
            booking_end_at=window.end_at,
            customer_timezone=window.timezone,
            form_responses=resolve_form_responses(submission.form_data, question_map),
            status=BookingStatus.PENDING.value,
            confirmation_code=generate_confirmation_code(self.clock()),
            booking_source=submission.source.value,
            idempotency_key=submission.idempotency_key,
        )
        self.db.add(booking)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if submission.idempotency_key:
                raise DuplicateSubmissionError() from e
            raise
        self.db.refresh(booking)
        return booking

    def _resolve_client(self, organization_id: str) -> Tuple[Optional[SimproClient], bool]:
        """(client, owned) - owned clients are closed when the submission ends"""
        if self.simpro_client is not None:
            return self.simpro_client, False
        try:
            return SimproConnectionService.get_client_for_organization(self.db, organization_id), True
        except SimproConfigurationError as e:
            if self.failure_policy == ExternalFailurePolicy.LOCAL_ONLY:
                logger.warning(f"SimPro not configured for org {organization_id}, continuing local-only: {e}")
                return None, False
            raise

    async def _assign_and_commit(
            self,
            booking: Booking,
            organization_id: str,
            user_id: Optional[str],
            service: ServiceNode,
            window: BookingWindow,
            policy: SchedulingPolicy,
            submission: BookingSubmitData,
            question_map: dict,
            client: Optional[SimproClient],
    ) -> BookingSubmitResponse:
        # 4. Resolve employees
        employees = EmployeeService.get_enabled_employees(self.db, organization_id, service.assigned_employee_ids)
        if not employees:
            raise NoEligibleEmployeesError()
        by_simpro_id = {employee.simpro_employee_id: employee for employee in employees}

        # 5. Select
        selection = await select_employee_for_booking(
            self.db,
            [employee.simpro_employee_id for employee in employees],
            submission.date,
            submission.time,
            policy,
            organization_id,
            user_id,
            {employee.simpro_employee_id: employee.id == service.default_employee_id for employee in employees},
            simpro_client=client,
            timezone=window.timezone,
            employee_names={employee.simpro_employee_id: employee.simpro_employee_name for employee in employees},
            exclude_booking_id=booking.id,
            clock=self.clock,
        )
        if selection is None:
            raise NoAvailabilityError()
        employee = by_simpro_id[selection.selected_employee.employee_id]

        # 6. External commit
        if client is None:
            return self._record_sync_failure(booking, employee, "SimPro integration is not configured")

        request = SimproBookingRequest(
            customer=build_simpro_customer(submission.form_data),
            job=SimproJobInput(
                type="Service",
                name=service.label,
                description=service.description or service.label,
                notes=format_responses_as_html(submission.form_data, question_map),
            ),
            schedule=SimproScheduleInput(
                employee_id=employee.simpro_employee_id,
                blocks=[ScheduleBlock(
                    date=window.local_date.isoformat(),
                    start_time=window.start_time,
                    end_time=window.end_time,
                )],
            ),
        )
        try:
            result = await client.create_booking(request)
        except Exception as e:
            if self.failure_policy == ExternalFailurePolicy.LOCAL_ONLY:
                reason = e.message if isinstance(e, SimproApiError) else categorize_external_error(e).message
                return self._record_sync_failure(booking, employee, reason)
            raise

        # 7. Link and confirm
        return self._link_and_confirm(booking, employee, result)

    def _link_and_confirm(
            self,
            booking: Booking,
            employee: OrganizationEmployee,
            result: SimproBookingResult,
    ) -> BookingSubmitResponse:
        try:
            assignment = BookingEmployee(
                booking_id=booking.id,
                organization_employee_id=employee.id,
                simpro_job_id=result.job_id,
                simpro_customer_id=result.customer_id,
                simpro_schedule_id=result.schedule_id,
                simpro_site_id=result.site_id,
                simpro_status="scheduled",
                last_simpro_sync=self.clock(),
            )
            self.db.add(assignment)
            booking.status = BookingStatus.CONFIRMED.value
            self.db.commit()
        except SQLAlchemyError:
            logger.error(
                f"SimPro job {result.job_id} was created but booking {booking.id} could not be linked; "
                f"the SimPro job must be removed manually"
            )
            raise

        self.db.refresh(booking)
        logger.info(
            f"Booking {booking.id} confirmed: employee {employee.simpro_employee_id} "
            f"({employee.simpro_employee_name}), SimPro job {result.job_id}"
        )
        return self._build_response(booking, assignment)

    def _record_sync_failure(
            self,
            booking: Booking,
            employee: OrganizationEmployee,
            reason: str,
    ) -> BookingSubmitResponse:
        """Local-only outcome: keep the booking pending with a failed assignment"""
        now = self.clock()
        assignment = BookingEmployee(
            booking_id=booking.id,
            organization_employee_id=employee.id,
            simpro_status="failed",
            simpro_sync_error=reason,
            last_simpro_sync=now,
        )
        self.db.add(assignment)

        note = f"[{now.isoformat()}] SimPro sync failed: {reason}"
        booking.internal_notes = f"{booking.internal_notes}\n{note}" if booking.internal_notes else note
        self.db.commit()
        self.db.refresh(booking)

        logger.warning(f"Booking {booking.id} kept local-only (pending): {reason}")
        return self._build_response(
            booking,
            assignment,
            message="Booking received. We'll confirm your appointment shortly.",
        )

    def _delete_booking(self, booking_id: str) -> None:
        """Compensating delete for a booking whose downstream steps failed"""
        self.db.rollback()
        try:
            booking = self.db.get(Booking, booking_id)
            if booking:
                self.db.delete(booking)
                self.db.commit()
                logger.info(f"Rolled back booking {booking_id}")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to roll back booking {booking_id}: {e}")

    def _build_response(
            self,
            booking: Booking,
            assignment: Optional[BookingEmployee],
            message: str = "Booking submitted successfully",
    ) -> BookingSubmitResponse:
        simpro = None
        if assignment is not None and assignment.simpro_job_id is not None:
            simpro = SimproReferences(
                job_id=assignment.simpro_job_id,
                customer_id=assignment.simpro_customer_id,
                schedule_id=assignment.simpro_schedule_id,
                site_id=assignment.simpro_site_id,
            )

        return BookingSubmitResponse(
            success=True,
            booking=booking.to_dict(),
            simpro=simpro,
            confirmation_code=booking.confirmation_code,
            employee_assigned=assignment is not None,
            employee_name=assignment.employee.simpro_employee_name if assignment and assignment.employee else None,
            message=message,
        )
