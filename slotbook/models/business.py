# slotbook/models/business.py
"""
Business Model - one row per tenant.
The tenant_id is the isolation boundary for every other table.
"""
from sqlalchemy import Column, String, Boolean, DateTime, Integer
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid
from slotbook.models.base import Base


class Business(Base):
    __tablename__ = "businesses"

    tenant_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(120), nullable=False)
    slug = Column(String(50), nullable=False, unique=True, index=True)
    timezone = Column(String(80), nullable=False, default="UTC")
    country_code = Column(String(2), nullable=False, default="AR")

    # Bumped on every rule/exception write so slot caches can detect staleness
    schedule_version = Column(Integer, nullable=False, default=0)

    public_booking_enabled = Column(Boolean, nullable=False, default=True)
    block_public_on_billing_issue = Column(Boolean, nullable=False, default=True)

    trial_starts_at = Column(DateTime(timezone=True), nullable=True)
    trial_ends_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Business(tenant_id={self.tenant_id}, slug={self.slug})>"

    def to_dict(self):
        """Convert to dictionary for API responses"""
        return {
            "tenant_id": str(self.tenant_id),
            "name": self.name,
            "slug": self.slug,
            "timezone": self.timezone,
            "country_code": self.country_code,
            "schedule_version": self.schedule_version,
            "public_booking_enabled": self.public_booking_enabled,
            "block_public_on_billing_issue": self.block_public_on_billing_issue,
            "trial_starts_at": self.trial_starts_at.isoformat() if self.trial_starts_at else None,
            "trial_ends_at": self.trial_ends_at.isoformat() if self.trial_ends_at else None,
        }
