# ===== slotbook/models/appointment.py =====
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from .base import Base
import enum
from datetime import timezone
import uuid


class AppointmentStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    CANCELED = "canceled"
    NO_SHOW = "no_show"


# canceled and no_show are terminal
ALLOWED_TRANSITIONS = {
    AppointmentStatus.CONFIRMED.value: {
        AppointmentStatus.CONFIRMED.value,
        AppointmentStatus.CANCELED.value,
        AppointmentStatus.NO_SHOW.value,
    },
}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        UniqueConstraint("tenant_id", "idempotency_key", name="uq_appointments_idempotency"),
        Index("ix_appointments_lane_interval", "tenant_id", "staff_user_id", "start_at", "end_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # References
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("businesses.tenant_id"), nullable=False)
    staff_user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    service_id = Column(UUID(as_uuid=True), ForeignKey("services.id"), nullable=False)

    # Customer info
    customer_name = Column(String(120), nullable=False)
    customer_phone = Column(String(32), nullable=False)
    customer_email = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    # Buffered footprint; scheduled_start_at is the customer-visible start
    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=False)
    scheduled_start_at = Column(DateTime(timezone=True), nullable=False)

    status = Column(String(20), nullable=False, default=AppointmentStatus.CONFIRMED.value)
    source = Column(String(20), nullable=False, default="public")  # public, dashboard
    idempotency_key = Column(String(200), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    canceled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_active(self) -> bool:
        return self.status == AppointmentStatus.CONFIRMED.value and self.deleted_at is None

    def to_dict(self):
        """Convert to dictionary for API responses"""
        return {
            "id": str(self.id),
            "staff_user_id": str(self.staff_user_id) if self.staff_user_id else None,
            "service_id": str(self.service_id),
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_email": self.customer_email,
            "notes": self.notes,
            "start_at": _iso_utc(self.start_at),
            "end_at": _iso_utc(self.end_at),
            "scheduled_start_at": _iso_utc(self.scheduled_start_at),
            "status": self.status,
            "source": self.source,
            "created_at": _iso_utc(self.created_at),
            "canceled_at": _iso_utc(self.canceled_at),
            "cancellation_reason": self.cancellation_reason,
        }


def _iso_utc(value):
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()
