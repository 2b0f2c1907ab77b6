# ============================================================================
# FILE: slotbook/api/v1/dashboard/appointments.py
# HTTP layer only - all logic lives in the booking and query services
# ============================================================================
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional
from uuid import UUID

from slotbook.api.dependencies import AuthContext, get_auth_context
from slotbook.config.database import get_db
from slotbook.schemas.booking import CancelRequest, RescheduleRequest
from slotbook.services.appointment.appointment_query_service import AppointmentQueryService
from slotbook.services.appointment.booking_service import BookingService

router = APIRouter(tags=["dashboard-appointments"])


@router.get("/appointments")
def list_appointments(
        range_from: Optional[datetime] = Query(None, alias="from"),
        range_to: Optional[datetime] = Query(None, alias="to"),
        status: Optional[str] = Query(None, description="confirmed, canceled or no_show"),
        auth: AuthContext = Depends(get_auth_context),
        db: Session = Depends(get_db)
):
    """Appointments in a range, default now ... +30 days, confirmed only."""
    return AppointmentQueryService.list_appointments(db, auth.tenant_id, range_from, range_to, status)


@router.post("/appointments/{appointment_id}/cancel")
def cancel_appointment(
        appointment_id: UUID,
        request: Optional[CancelRequest] = None,
        auth: AuthContext = Depends(get_auth_context),
        db: Session = Depends(get_db)
):
    appointment = BookingService.cancel_booking(
        db,
        tenant_id=auth.tenant_id,
        appointment_id=appointment_id,
        by_customer=False,
        reason=request.reason if request else None,
    )
    return appointment.to_dict()


@router.post("/appointments/{appointment_id}/no-show")
def mark_no_show(
        appointment_id: UUID,
        auth: AuthContext = Depends(get_auth_context),
        db: Session = Depends(get_db)
):
    appointment = BookingService.mark_no_show(db, auth.tenant_id, appointment_id)
    return appointment.to_dict()


@router.post("/appointments/{appointment_id}/reschedule")
def reschedule_appointment(
        appointment_id: UUID,
        request: RescheduleRequest,
        auth: AuthContext = Depends(get_auth_context),
        db: Session = Depends(get_db)
):
    appointment = BookingService.reschedule_booking(
        db,
        tenant_id=auth.tenant_id,
        appointment_id=appointment_id,
        new_start_at=request.new_start_at,
        by_customer=False,
    )
    return appointment.to_dict()
