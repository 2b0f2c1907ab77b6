# slotbook/api/v1/public/booking.py
"""
Public Booking Endpoints
Slug-addressed, unauthenticated routes used by the booking page
"""
from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.orm import Session
from datetime import date
from typing import Optional
from uuid import UUID
import logging

from slotbook.config.database import get_db
from slotbook.config.settings import settings
from slotbook.core.errors import ForbiddenError, ValidationFailedError
from slotbook.schemas.booking import (
    BookingCreateRequest,
    BookingResponse,
    ManageAppointmentRequest,
    AppointmentStatusResponse,
    SlotListResponse,
)
from slotbook.services.appointment.appointment_query_service import AppointmentQueryService
from slotbook.services.appointment.booking_service import BookingService
from slotbook.services.availability.slot_service import SlotService
from slotbook.services.billing.subscription_service import SubscriptionService
from slotbook.services.business.business_service import BusinessService
from slotbook.services.business.catalog_service import CatalogService
from slotbook.services.notification.whatsapp_service import NotificationService
from slotbook.utils.time_utils import ensure_utc

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/public/b/{slug}", tags=["Public"])


def get_notification_service() -> NotificationService:
    return NotificationService()


def _iso(value) -> Optional[str]:
    return ensure_utc(value).isoformat() if value else None


# ============================================================================
# Config
# ============================================================================

@router.get("/config")
def get_public_config(slug: str, db: Session = Depends(get_db)):
    """Business card, active services and bookable staff"""
    business = BusinessService.get_business_by_slug(db, slug)
    BusinessService.ensure_public_booking_enabled(business)
    if SubscriptionService.is_public_blocked(db, business):
        raise ForbiddenError("Business is temporarily unavailable")

    services = CatalogService.list_services(db, business.tenant_id, active_only=True)
    staff = BusinessService.list_staff(db, business.tenant_id)

    return {
        "business": {
            "name": business.name,
            "slug": business.slug,
            "timezone": business.timezone,
        },
        "services": [
            {
                "id": str(s.id),
                "name": s.name,
                "duration_min": s.duration_min,
                "buffer_before_min": s.buffer_before_min,
                "buffer_after_min": s.buffer_after_min,
                "price_amount_cents": s.price_amount_cents,
                "price_currency": s.price_currency,
            }
            for s in services
        ],
        "staff": [{"id": str(m.user_id), "full_name": m.user.full_name} for m in staff],
    }


# ============================================================================
# Slots
# ============================================================================

@router.get("/slots", response_model=SlotListResponse)
def get_slots(
        slug: str,
        from_date: date = Query(..., alias="from"),
        to_date: date = Query(..., alias="to"),
        service_id: UUID = Query(...),
        staff_user_id: Optional[UUID] = Query(None),
        limit: int = Query(settings.DEFAULT_SLOT_LIMIT, ge=1, le=200),
        db: Session = Depends(get_db)
):
    result = SlotService.get_slots(
        db,
        tenant_slug=slug,
        from_date=from_date,
        to_date=to_date,
        service_id=service_id,
        staff_user_id=staff_user_id,
        limit=limit,
    )
    return result.to_dict()


# ============================================================================
# Booking
# ============================================================================

@router.post("/appointments", response_model=BookingResponse, status_code=201)
def create_appointment(
        slug: str,
        request: BookingCreateRequest,
        idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
        db: Session = Depends(get_db),
        notifier: NotificationService = Depends(get_notification_service)
):
    """
    Book a slot. Replays with the same Idempotency-Key return the original
    appointment without sending another notification.
    """
    if not idempotency_key or not idempotency_key.strip():
        raise ValidationFailedError("Missing Idempotency-Key header")

    business = BusinessService.get_business_by_slug(db, slug)

    booking = BookingService.create_booking(
        db,
        tenant_id=business.tenant_id,
        service_id=request.service_id,
        start_at=request.start_at,
        customer_name=request.customer_name,
        customer_phone=request.customer_phone,
        idempotency_key=idempotency_key.strip(),
        staff_user_id=request.staff_user_id,
        customer_email=request.customer_email,
        notes=request.notes,
        source="public",
    )
    appointment = booking.appointment

    notification_sent, notification_reason = False, None
    if not booking.replayed:
        result = notifier.dispatch_booking_confirmation(db, booking)
        notification_sent, notification_reason = result.sent, result.reason

    return BookingResponse(
        appointment_id=str(appointment.id),
        status=appointment.status,
        scheduled_start_at=_iso(appointment.scheduled_start_at),
        staff_user_id=str(appointment.staff_user_id) if appointment.staff_user_id else None,
        replayed=booking.replayed,
        whatsapp_notification_sent=notification_sent,
        whatsapp_reason=None if notification_sent else notification_reason,
    )


@router.get("/appointments/by-phone")
def find_appointments_by_phone(
        slug: str,
        phone: str = Query("", max_length=32),
        db: Session = Depends(get_db)
):
    business = BusinessService.get_business_by_slug(db, slug)
    return {"appointments": AppointmentQueryService.find_upcoming_by_phone(db, business.tenant_id, phone)}


@router.post("/appointments/manage", response_model=AppointmentStatusResponse)
def manage_appointment(
        slug: str,
        request: ManageAppointmentRequest,
        db: Session = Depends(get_db)
):
    """Customer cancel/reschedule; the phone on the booking must match"""
    business = BusinessService.get_business_by_slug(db, slug)

    if request.action == "cancel":
        appointment = BookingService.cancel_booking(
            db,
            tenant_id=business.tenant_id,
            appointment_id=request.appointment_id,
            scheduled_start_at=request.scheduled_start_at,
            customer_phone=request.customer_phone,
            by_customer=True,
        )
    else:
        appointment = BookingService.reschedule_booking(
            db,
            tenant_id=business.tenant_id,
            appointment_id=request.appointment_id,
            scheduled_start_at=request.scheduled_start_at,
            new_start_at=request.new_start_at,
            customer_phone=request.customer_phone,
            by_customer=True,
        )

    return AppointmentStatusResponse(
        appointment_id=str(appointment.id),
        status=appointment.status,
        scheduled_start_at=_iso(appointment.scheduled_start_at),
        start_at=_iso(appointment.start_at),
        end_at=_iso(appointment.end_at),
        canceled_at=_iso(appointment.canceled_at),
    )
