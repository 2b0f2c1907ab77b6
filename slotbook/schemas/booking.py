"""
Pydantic schemas for public booking requests and responses
"""

from typing import Optional, List, Literal
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, Field, model_validator

PHONE_REGEX = r"^[+0-9()\-\s]+$"
EMAIL_REGEX = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ============================================================================
# Request Schemas
# ============================================================================

class BookingCreateRequest(BaseModel):
    """Body of POST /public/b/{slug}/appointments"""
    service_id: UUID
    staff_user_id: Optional[UUID] = None
    start_at: AwareDatetime
    customer_name: str = Field(..., min_length=2, max_length=120)
    customer_phone: str = Field(..., min_length=8, max_length=32, pattern=PHONE_REGEX)
    customer_email: Optional[str] = Field(None, max_length=255, pattern=EMAIL_REGEX)
    notes: Optional[str] = Field(None, max_length=500)


class ManageAppointmentRequest(BaseModel):
    """Customer self-service: cancel or reschedule, proven by phone"""
    action: Literal["cancel", "reschedule"]
    appointment_id: Optional[UUID] = None
    scheduled_start_at: Optional[AwareDatetime] = None
    customer_phone: str = Field(..., min_length=8, max_length=32)
    new_start_at: Optional[AwareDatetime] = None

    @model_validator(mode="after")
    def require_reference(self):
        if not self.appointment_id and not self.scheduled_start_at:
            raise ValueError("appointment_id or scheduled_start_at is required")
        return self


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, min_length=2, max_length=240)


class RescheduleRequest(BaseModel):
    new_start_at: AwareDatetime


# ============================================================================
# Response Schemas
# ============================================================================

class SlotResponse(BaseModel):
    start_at: str
    end_at: str
    local_start: str
    staff_user_id: Optional[str] = None
    timezone: str


class SlotListResponse(BaseModel):
    timezone: str
    slots: List[SlotResponse]


class BookingResponse(BaseModel):
    appointment_id: str
    status: str
    scheduled_start_at: str
    staff_user_id: Optional[str] = None
    replayed: bool = False
    whatsapp_notification_sent: bool = False
    whatsapp_reason: Optional[str] = None


class AppointmentStatusResponse(BaseModel):
    appointment_id: str
    status: str
    scheduled_start_at: Optional[str] = None
    start_at: Optional[str] = None
    end_at: Optional[str] = None
    canceled_at: Optional[str] = None

