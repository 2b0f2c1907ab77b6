# ===== slotbook/models/availability.py =====
from sqlalchemy import Column, String, Integer, Boolean, Date, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from slotbook.models.base import Base
import enum
import uuid


class ExceptionKind(str, enum.Enum):
    CLOSED_FULL_DAY = "closed_full_day"
    CLOSED_PARTIAL = "closed_partial"
    OPEN_SPECIAL = "open_special"
    MANUAL_BLOCK = "manual_block"


class AvailabilityRule(Base):
    """Recurring weekly open hours, per staff member or tenant-wide"""
    __tablename__ = "availability_rules"
    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_rules_day_of_week"),
        CheckConstraint("slot_step_min BETWEEN 5 AND 60", name="ck_rules_slot_step"),
        CheckConstraint("start_local < end_local", name="ck_rules_window"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("businesses.tenant_id"), nullable=False, index=True)
    staff_user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)  # None = all staff

    day_of_week = Column(Integer, nullable=False)  # 0=Sunday, 6=Saturday
    start_local = Column(String(5), nullable=False)  # HH:MM
    end_local = Column(String(5), nullable=False)  # HH:MM, "24:00" allowed
    slot_step_min = Column(Integer, nullable=False, default=15)

    valid_from = Column(Date, nullable=False)
    valid_to = Column(Date, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def to_dict(self):
        return {
            "id": str(self.id),
            "staff_user_id": str(self.staff_user_id) if self.staff_user_id else None,
            "day_of_week": self.day_of_week,
            "start_local": self.start_local,
            "end_local": self.end_local,
            "slot_step_min": self.slot_step_min,
            "valid_from": self.valid_from.isoformat() if self.valid_from else None,
            "valid_to": self.valid_to.isoformat() if self.valid_to else None,
            "is_active": self.is_active,
        }


class AvailabilityException(Base):
    """Date-specific overrides (closures, special openings, manual blocks)"""
    __tablename__ = "availability_exceptions"
    __table_args__ = (
        CheckConstraint("priority BETWEEN 1 AND 1000", name="ck_exceptions_priority"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("businesses.tenant_id"), nullable=False, index=True)
    staff_user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)

    exception_date = Column(Date, nullable=False, index=True)
    kind = Column(String(20), nullable=False)
    start_local = Column(String(5), nullable=True)
    end_local = Column(String(5), nullable=True)
    reason = Column(String(200), nullable=True)  # "Holiday", "Vacation", etc.
    priority = Column(Integer, nullable=False, default=100)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def to_dict(self):
        return {
            "id": str(self.id),
            "staff_user_id": str(self.staff_user_id) if self.staff_user_id else None,
            "exception_date": self.exception_date.isoformat(),
            "kind": self.kind,
            "start_local": self.start_local,
            "end_local": self.end_local,
            "reason": self.reason,
            "priority": self.priority,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
