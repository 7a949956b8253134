# joeyjob/schemas/service_tree.py
from __future__ import annotations
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict, Any, List


class ServiceNode(BaseModel):
    """A node in a booking form's service tree (camelCase keys as stored in form_config)"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., description="Node identifier")
    type: str = Field("service", description="'service' for bookable leaves, anything else groups")
    label: str = Field("", description="Display name")
    description: Optional[str] = Field(None, description="Service description")
    duration: int = Field(0, ge=0, description="Duration in minutes")
    price: Optional[Decimal] = Field(None, description="Price at booking time")
    interval: Optional[int] = Field(None, ge=1, description="Slot interval in minutes")
    buffer_time: Optional[int] = Field(None, alias="bufferTime", ge=0, description="Buffer in minutes")
    minimum_notice: Optional[int] = Field(None, alias="minimumNotice", ge=0, description="Lead time in minutes")
    assigned_employee_ids: List[str] = Field(default_factory=list, alias="assignedEmployeeIds")
    default_employee_id: Optional[str] = Field(None, alias="defaultEmployeeId")
    additional_questions: List[Dict[str, Any]] = Field(default_factory=list, alias="additionalQuestions")
