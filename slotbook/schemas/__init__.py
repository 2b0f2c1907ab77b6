# slotbook/schemas/__init__.py
from .booking import (
    BookingCreateRequest,
    ManageAppointmentRequest,
    CancelRequest,
    RescheduleRequest,
    SlotResponse,
    SlotListResponse,
    BookingResponse,
    AppointmentStatusResponse
)

from .business import (
    BusinessUpdateRequest,
    ServiceCreateRequest,
    ServiceUpdateRequest,
    StaffCreateRequest,
    RuleCreateRequest,
    ExceptionCreateRequest,
    WhatsAppSettingsUpdateRequest
)
