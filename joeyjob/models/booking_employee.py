# joeyjob/models/booking_employee.py
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from joeyjob.models.base import Base
from joeyjob.models.organization import generate_id


class BookingEmployee(Base):
    """Assignment of a committed booking to an employee, with SimPro references"""
    __tablename__ = "booking_employees"

    id = Column(String(36), primary_key=True, default=generate_id)
    booking_id = Column(
        String(36),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    organization_employee_id = Column(
        String(36),
        ForeignKey("organization_employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # SimPro references
    simpro_job_id = Column(Integer, nullable=True)
    simpro_customer_id = Column(Integer, nullable=True)
    simpro_schedule_id = Column(Integer, nullable=True)
    simpro_site_id = Column(Integer, nullable=True)

    # Sync tracking
    simpro_status = Column(String(20), default="pending")  # pending, scheduled, failed
    simpro_sync_error = Column(Text, nullable=True)
    last_simpro_sync = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    booking = relationship("Booking", back_populates="assignment")
    employee = relationship("OrganizationEmployee")

    def to_dict(self):
        return {
            "id": self.id,
            "booking_id": self.booking_id,
            "organization_employee_id": self.organization_employee_id,
            "employee_name": self.employee.simpro_employee_name if self.employee else None,
            "simpro_job_id": self.simpro_job_id,
            "simpro_customer_id": self.simpro_customer_id,
            "simpro_schedule_id": self.simpro_schedule_id,
            "simpro_site_id": self.simpro_site_id,
            "simpro_status": self.simpro_status,
            "simpro_sync_error": self.simpro_sync_error,
        }
