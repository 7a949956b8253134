# joeyjob/models/organization_employee.py
"""
OrganizationEmployee - local mirror of an employee in SimPro
"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.sql import func
from joeyjob.models.base import Base
from joeyjob.models.organization import generate_id


class OrganizationEmployee(Base):
    __tablename__ = "organization_employees"
    __table_args__ = (
        UniqueConstraint("organization_id", "simpro_employee_id", name="uq_org_employees_simpro_id"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    organization_id = Column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    simpro_employee_id = Column(Integer, nullable=False)
    simpro_employee_name = Column(String(200), nullable=False)
    simpro_employee_email = Column(String(200), nullable=True)

    is_enabled = Column(Boolean, default=True, nullable=False)  # chosen for booking by the organization
    is_active = Column(Boolean, default=True, nullable=False)  # still present in SimPro
    display_on_schedule = Column(Boolean, default=True, nullable=False)

    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    sync_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<OrganizationEmployee(id={self.id}, simpro_employee_id={self.simpro_employee_id})>"

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "simpro_employee_id": self.simpro_employee_id,
            "name": self.simpro_employee_name,
            "email": self.simpro_employee_email,
            "is_enabled": self.is_enabled,
            "is_active": self.is_active,
            "display_on_schedule": self.display_on_schedule,
            "last_sync_at": self.last_sync_at.isoformat() if self.last_sync_at else None,
            "sync_error": self.sync_error,
        }
