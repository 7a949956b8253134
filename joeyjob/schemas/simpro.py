# joeyjob/schemas/simpro.py
from __future__ import annotations
from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict, Any, List


VALID_JOB_TYPES = ("Service", "Project", "Prepaid")


class SimproAddress(BaseModel):
    line1: str = "No Address Provided"
    city: str = "Unknown"
    state: str = "Unknown"
    postal_code: str = "00000"
    country: str = "AUS"


class SimproCustomerInput(BaseModel):
    given_name: str = Field("Customer", min_length=1)
    family_name: str = Field("Customer", min_length=1)  # SimPro rejects an empty FamilyName
    email: str = ""
    phone: str = ""
    address: SimproAddress = Field(default_factory=SimproAddress)


class SimproJobInput(BaseModel):
    type: str = Field("Service")
    name: str
    description: str = ""
    notes: str = ""

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        if v not in VALID_JOB_TYPES:
            raise ValueError(f"Invalid job type. Must be one of: {', '.join(VALID_JOB_TYPES)}")
        return v


class ScheduleBlock(BaseModel):
    date: str = Field(..., description="YYYY-MM-DD")
    start_time: str = Field(..., description="HH:MM, 24-hour local")
    end_time: str = Field(..., description="HH:MM, 24-hour local")


class SimproScheduleInput(BaseModel):
    employee_id: int
    blocks: List[ScheduleBlock] = Field(..., min_length=1)


class SimproBookingRequest(BaseModel):
    customer: SimproCustomerInput
    job: SimproJobInput
    schedule: SimproScheduleInput


class SimproBookingResult(BaseModel):
    """Raw SimPro responses for the created customer, job and schedule"""
    customer: Dict[str, Any]
    job: Dict[str, Any]
    schedule: Dict[str, Any]

    @property
    def customer_id(self) -> Optional[int]:
        return self.customer.get("ID")

    @property
    def job_id(self) -> Optional[int]:
        return self.job.get("ID")

    @property
    def schedule_id(self) -> Optional[int]:
        return self.schedule.get("ID")

    @property
    def site_id(self) -> Optional[int]:
        sites = self.customer.get("Sites") or []
        return sites[0].get("ID") if sites else None
