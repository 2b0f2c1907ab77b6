# slotbook/models/subscription.py
"""Billing subscription state per tenant (provider integration lives elsewhere)"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import enum
import uuid
from slotbook.models.base import Base


class SubscriptionStatus(str, enum.Enum):
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    GRACE = "grace"
    CANCELED = "canceled"
    BLOCKED = "blocked"


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("businesses.tenant_id"), nullable=False, index=True)

    provider = Column(String(40), nullable=False, default="lemon_squeezy")
    status = Column(String(20), nullable=False, default=SubscriptionStatus.TRIALING.value)
    plan_code = Column(String(40), nullable=False, default="monthly_v1")
    price_usd_cents = Column(Integer, nullable=False, default=1500)

    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    grace_ends_at = Column(DateTime(timezone=True), nullable=True)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
