"""Shared test fixtures and helpers."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENCRYPTION_KEY", "ZmDfcTF7_60GrrY167zsiPd67pEvs0aGOv2oasOM1Pg=")
os.environ.setdefault("BOOKING_EXTERNAL_FAILURE_POLICY", "rollback")
os.environ.setdefault("DEFAULT_TIMEZONE", "UTC")

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy.orm import sessionmaker

from joeyjob.config.database import build_engine
from joeyjob.models import Base, BookingForm, Organization, OrganizationEmployee
from joeyjob.schemas.booking import BookingSubmitData
from joeyjob.schemas.simpro import SimproBookingRequest, SimproBookingResult

# 2025-09-17 is a Wednesday; UTC-1 all year, so 2:00 pm local is 15:00Z
ORG_TIMEZONE = "Atlantic/Cape_Verde"
BOOKING_DATE = "2025-09-17"
FIXED_NOW = datetime(2025, 9, 1, 12, 0, tzinfo=timezone.utc)

SERVICE_ID = "svc-plumbing"
ALICE_SIMPRO_ID = 101
BOB_SIMPRO_ID = 202


def fixed_clock() -> datetime:
    return FIXED_NOW


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


# ============================================================================
# Seed helpers
# ============================================================================

def make_service_tree(
        assigned_employee_ids: List[str],
        default_employee_id: Optional[str] = None,
        duration: int = 60,
        buffer_time: Optional[int] = 15,
        minimum_notice: Optional[int] = None,
        interval: Optional[int] = 30,
) -> Dict[str, Any]:
    """Root group -> category group -> bookable service"""
    return {
        "id": "root",
        "type": "start",
        "label": "Book a service",
        "children": [
            {
                "id": "cat-plumbing",
                "type": "category",
                "label": "Plumbing",
                "children": [
                    {
                        "id": SERVICE_ID,
                        "type": "service",
                        "label": "Leak Repair",
                        "description": "Find and fix a leak",
                        "duration": duration,
                        "price": "120.00",
                        "interval": interval,
                        "bufferTime": buffer_time,
                        "minimumNotice": minimum_notice,
                        "assignedEmployeeIds": assigned_employee_ids,
                        "defaultEmployeeId": default_employee_id,
                        "additionalQuestions": [
                            {"id": "q_leak_location", "label": "Where is the leak?"},
                        ],
                    }
                ],
            }
        ],
    }


def seed_organization(db, timezone_name: str = ORG_TIMEZONE) -> Organization:
    organization = Organization(name="Acme Plumbing", slug="acme-plumbing", timezone=timezone_name)
    db.add(organization)
    db.commit()
    return organization


def seed_employee(db, organization: Organization, simpro_id: int, name: str, **overrides) -> OrganizationEmployee:
    employee = OrganizationEmployee(
        organization_id=organization.id,
        simpro_employee_id=simpro_id,
        simpro_employee_name=name,
        simpro_employee_email=f"{name.lower()}@acme.test",
        is_enabled=overrides.pop("is_enabled", True),
        is_active=overrides.pop("is_active", True),
        **overrides,
    )
    db.add(employee)
    db.commit()
    return employee


def seed_form(db, organization: Organization, service_tree: Dict[str, Any]) -> BookingForm:
    form = BookingForm(
        organization_id=organization.id,
        name="Main booking form",
        slug="main",
        is_active=True,
        form_config={
            "serviceTree": service_tree,
            "baseQuestions": [
                {"id": "contact_info", "label": "Contact information"},
                {"id": "q_access_notes", "label": "Access notes"},
            ],
        },
    )
    db.add(form)
    db.commit()
    return form


def make_submission(time: str = "2:00 pm", **overrides) -> BookingSubmitData:
    payload = {
        "service": {"id": SERVICE_ID},
        "date": BOOKING_DATE,
        "time": time,
        "formData": {
            "contact_info": {
                "firstName": "Jane",
                "lastName": "Doe",
                "email": "jane@example.com",
                "phone": "0400 000 000",
            },
            "address_7f3a": {
                "street": "1 Main St",
                "street2": "Unit 2",
                "city": "Springfield",
                "state": "VIC",
                "zip": "3000",
            },
            "q_leak_location": "Kitchen sink",
            "q_access_notes": "Side gate",
        },
        "organizationTimezone": ORG_TIMEZONE,
    }
    payload.update(overrides)
    return BookingSubmitData.model_validate(payload)


@pytest.fixture
def booking_setup(db):
    """Organization with Alice (default) and Bob assigned to the service"""
    organization = seed_organization(db)
    alice = seed_employee(db, organization, ALICE_SIMPRO_ID, "Alice")
    bob = seed_employee(db, organization, BOB_SIMPRO_ID, "Bob")
    form = seed_form(db, organization, make_service_tree([alice.id, bob.id], default_employee_id=alice.id))
    return {"organization": organization, "alice": alice, "bob": bob, "form": form}


# ============================================================================
# Fake SimPro client
# ============================================================================

def working_week(start: str = "08:00", end: str = "17:00") -> List[Dict[str, str]]:
    return [
        {"StartDate": day, "EndDate": day, "StartTime": start, "EndTime": end}
        for day in ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday")
    ]


def schedule_entry(employee_id: int, date: str, start: str, end: str) -> Dict[str, Any]:
    return {
        "ID": 9000 + employee_id,
        "Staff": {"ID": employee_id, "Name": f"Employee {employee_id}"},
        "Date": date,
        "Blocks": [{"StartTime": start, "EndTime": end}],
    }


class FakeSimproClient:
    """Stands in for SimproClient; records calls and returns canned data"""

    def __init__(
            self,
            employees: Optional[Dict[int, Dict[str, Any]]] = None,
            schedules: Optional[List[Dict[str, Any]]] = None,
            booking_error: Optional[Exception] = None,
            read_error: Optional[Exception] = None,
    ):
        self.employees = employees if employees is not None else {
            ALICE_SIMPRO_ID: {"ID": ALICE_SIMPRO_ID, "Name": "Alice", "Availability": working_week()},
            BOB_SIMPRO_ID: {"ID": BOB_SIMPRO_ID, "Name": "Bob", "Availability": working_week()},
        }
        self.schedules = schedules or []
        self.booking_error = booking_error
        self.read_error = read_error
        self.booking_requests: List[SimproBookingRequest] = []
        self.detail_calls: List[int] = []
        self.schedule_calls = 0
        self.closed = False

    async def get_employee_details(self, employee_id: int) -> Dict[str, Any]:
        self.detail_calls.append(employee_id)
        if self.read_error:
            raise self.read_error
        return self.employees.get(employee_id, {"ID": employee_id, "Name": f"Employee {employee_id}"})

    async def get_schedules(self, start_date=None, end_date=None, staff_id=None) -> List[Dict[str, Any]]:
        self.schedule_calls += 1
        if self.read_error:
            raise self.read_error
        return self.schedules

    async def get_employees(self) -> List[Dict[str, Any]]:
        if self.read_error:
            raise self.read_error
        return [{"ID": employee_id, "Name": data.get("Name")} for employee_id, data in self.employees.items()]

    async def create_booking(self, request: SimproBookingRequest) -> SimproBookingResult:
        self.booking_requests.append(request)
        if self.booking_error:
            raise self.booking_error
        return SimproBookingResult(
            customer={"ID": 501, "Sites": [{"ID": 601}]},
            job={"ID": 701},
            schedule={"ID": 801},
        )

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_simpro():
    return FakeSimproClient()
