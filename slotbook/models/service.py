# slotbook/models/service.py
"""
Service Model - bookable services offered by a business.
The calendar footprint of an appointment is buffer_before + duration + buffer_after.
"""
from sqlalchemy import Column, String, Integer, ForeignKey, Boolean, DateTime
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid
from slotbook.models.base import Base


class Service(Base):
    __tablename__ = "services"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(
        UUID(as_uuid=True),
        ForeignKey("businesses.tenant_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name = Column(String(120), nullable=False)

    duration_min = Column(Integer, nullable=False)
    buffer_before_min = Column(Integer, nullable=False, default=0)
    buffer_after_min = Column(Integer, nullable=False, default=0)

    price_amount_cents = Column(Integer, nullable=False, default=0)
    price_currency = Column(String(3), nullable=False, default="ARS")

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Service(id={self.id}, name={self.name}, tenant_id={self.tenant_id})>"

    @property
    def footprint_min(self) -> int:
        return (self.buffer_before_min or 0) + self.duration_min + (self.buffer_after_min or 0)

    @property
    def is_bookable(self) -> bool:
        return bool(self.is_active) and self.deleted_at is None

    def to_dict(self):
        """Convert to dictionary for API responses"""
        return {
            "id": str(self.id),
            "name": self.name,
            "duration_min": self.duration_min,
            "buffer_before_min": self.buffer_before_min,
            "buffer_after_min": self.buffer_after_min,
            "price_amount_cents": self.price_amount_cents,
            "price_currency": self.price_currency,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
