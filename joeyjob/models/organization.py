# joeyjob/models/organization.py
"""
Organization Model - the tenant that owns forms, employees and bookings
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, LargeBinary
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
from joeyjob.models.base import Base


def generate_id() -> str:
    return str(uuid.uuid4())


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(200), nullable=False)
    slug = Column(String(100), nullable=False, unique=True)
    timezone = Column(String(50), default="UTC")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    simpro_connection = relationship(
        "SimproConnection",
        back_populates="organization",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Organization(id={self.id}, slug={self.slug})>"


class SimproConnection(Base):
    """Stored SimPro credentials for an organization (tokens are Fernet-encrypted)"""
    __tablename__ = "simpro_connections"

    id = Column(String(36), primary_key=True, default=generate_id)
    organization_id = Column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    build_name = Column(String(100), nullable=True)  # e.g. "acme" in acme.simprosuite.com
    domain = Column(String(100), nullable=True)  # e.g. "simprosuite.com"
    is_active = Column(Boolean, default=True)

    access_token_encrypted = Column(LargeBinary, nullable=True)
    refresh_token_encrypted = Column(LargeBinary, nullable=True)
    token_expires_at = Column(DateTime(timezone=True), nullable=True)
    refresh_token_expires_at = Column(DateTime(timezone=True), nullable=True)
    last_refreshed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    organization = relationship("Organization", back_populates="simpro_connection")

    @property
    def is_configured(self) -> bool:
        return bool(
            self.is_active
            and self.build_name
            and self.domain
            and self.access_token_encrypted
            and self.refresh_token_encrypted
        )
