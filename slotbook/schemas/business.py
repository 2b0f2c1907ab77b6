"""
Pydantic schemas for the dashboard (business, catalog, staff, schedule)
"""
from datetime import date
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from slotbook.models.availability import ExceptionKind

HHMM_REGEX = r"^\d{2}:\d{2}$"


# ============================================================================
# Business
# ============================================================================

class BusinessUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=120)
    timezone: Optional[str] = Field(None, min_length=3, max_length=80)
    public_booking_enabled: Optional[bool] = None
    block_public_on_billing_issue: Optional[bool] = None


# ============================================================================
# Service catalog
# ============================================================================

class ServiceCreateRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=120)
    duration_min: int = Field(..., ge=5, le=480)
    buffer_before_min: int = Field(0, ge=0, le=120)
    buffer_after_min: int = Field(0, ge=0, le=120)
    price_amount_cents: int = Field(0, ge=0, le=10_000_000)
    price_currency: str = Field("ARS", min_length=3, max_length=3)
    is_active: bool = True


class ServiceUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=120)
    duration_min: Optional[int] = Field(None, ge=5, le=480)
    buffer_before_min: Optional[int] = Field(None, ge=0, le=120)
    buffer_after_min: Optional[int] = Field(None, ge=0, le=120)
    price_amount_cents: Optional[int] = Field(None, ge=0, le=10_000_000)
    price_currency: Optional[str] = Field(None, min_length=3, max_length=3)
    is_active: Optional[bool] = None


# ============================================================================
# Staff
# ============================================================================

class StaffCreateRequest(BaseModel):
    full_name: str = Field(..., min_length=2, max_length=120)


# ============================================================================
# Availability
# ============================================================================

class RuleCreateRequest(BaseModel):
    staff_user_id: Optional[UUID] = None
    day_of_week: int = Field(..., ge=0, le=6)
    start_local: str = Field(..., pattern=HHMM_REGEX)
    end_local: str = Field(..., pattern=HHMM_REGEX)
    slot_step_min: int = Field(15, ge=5, le=60)
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None


class ExceptionCreateRequest(BaseModel):
    staff_user_id: Optional[UUID] = None
    exception_date: date
    kind: str
    start_local: Optional[str] = Field(None, pattern=HHMM_REGEX)
    end_local: Optional[str] = Field(None, pattern=HHMM_REGEX)
    reason: Optional[str] = Field(None, max_length=200)
    priority: int = Field(100, ge=1, le=1000)

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, v):
        if v not in {k.value for k in ExceptionKind}:
            raise ValueError(f"kind must be one of {[k.value for k in ExceptionKind]}")
        return v


# ============================================================================
# Notifications
# ============================================================================

class WhatsAppSettingsUpdateRequest(BaseModel):
    enabled: bool
    phone_number_id: Optional[str] = Field(None, min_length=5, max_length=120)
    api_token: Optional[str] = Field(None, min_length=20, max_length=500)
    clear_api_token: bool = False
