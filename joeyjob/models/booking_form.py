# joeyjob/models/booking_form.py
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func
from joeyjob.models.base import Base
from joeyjob.models.organization import generate_id


class BookingForm(Base):
    """Published booking form; form_config holds serviceTree and baseQuestions"""
    __tablename__ = "booking_forms"

    id = Column(String(36), primary_key=True, default=generate_id)
    organization_id = Column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = Column(String(200), nullable=False)
    slug = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True)
    form_config = Column(JSON, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)
