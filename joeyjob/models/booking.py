# joeyjob/models/booking.py
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, Numeric, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from joeyjob.models.base import Base
from joeyjob.models.organization import generate_id


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        UniqueConstraint("organization_id", "idempotency_key", name="uq_bookings_org_idempotency_key"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)

    # References
    organization_id = Column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    form_id = Column(String(36), ForeignKey("booking_forms.id", ondelete="SET NULL"), nullable=True)

    # Service snapshot (denormalized at booking time)
    service_id = Column(String(100), nullable=False)  # node id inside the form's service tree
    service_name = Column(String(200), nullable=False)
    service_description = Column(Text, nullable=True)
    service_duration = Column(Integer, nullable=False)  # minutes
    service_price = Column(Numeric(10, 2), default=0)

    # Customer info
    customer_name = Column(String(200), nullable=False)
    customer_email = Column(String(200), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    customer_company = Column(String(200), nullable=True)

    # Scheduling (UTC)
    booking_start_at = Column(DateTime(timezone=True), nullable=False, index=True)
    booking_end_at = Column(DateTime(timezone=True), nullable=False)
    customer_timezone = Column(String(50), default="UTC")

    # Resolved form responses: {"contactInfo": {...}, "responses": {field_id: {label, value}}}
    form_responses = Column(JSON, default=dict)

    # Status tracking
    status = Column(String(20), default="pending", nullable=False)  # pending, confirmed, completed, cancelled, no-show
    confirmation_code = Column(String(20), nullable=False)
    booking_source = Column(String(20), default="web")  # web, api, admin
    idempotency_key = Column(String(100), nullable=True)
    internal_notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    assignment = relationship(
        "BookingEmployee",
        back_populates="booking",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Booking(id={self.id}, status={self.status}, confirmation_code={self.confirmation_code})>"

    def to_dict(self):
        """Convert to dictionary for API responses"""
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "form_id": self.form_id,
            "service_id": self.service_id,
            "service_name": self.service_name,
            "service_description": self.service_description,
            "service_duration": self.service_duration,
            "service_price": float(self.service_price) if self.service_price is not None else None,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "customer_company": self.customer_company,
            "booking_start_at": self.booking_start_at.isoformat() if self.booking_start_at else None,
            "booking_end_at": self.booking_end_at.isoformat() if self.booking_end_at else None,
            "customer_timezone": self.customer_timezone,
            "form_responses": self.form_responses,
            "status": self.status,
            "confirmation_code": self.confirmation_code,
            "booking_source": self.booking_source,
            "cancellation_reason": self.cancellation_reason,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
