# ============================================================================
# FILE: slotbook/services/appointment/appointment_query_service.py
# Read-side queries for the dashboard and the public lookup - no FastAPI here
# ============================================================================
from sqlalchemy.orm import Session
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List

from slotbook.core.errors import ValidationFailedError
from slotbook.models.appointment import Appointment, AppointmentStatus
from slotbook.models.service import Service
from slotbook.models.user import User
from slotbook.services.business.business_service import TenantScope
from slotbook.utils.text_processing import normalize_phone, MIN_PHONE_DIGITS
from slotbook.utils.time_utils import ensure_utc, utcnow

DEFAULT_RANGE_DAYS = 30
MAX_LIST_RESULTS = 500
LOOKUP_GRACE = timedelta(hours=2)
MAX_LOOKUP_RESULTS = 20


class AppointmentQueryService:
    """Service layer for appointment reads."""

    @staticmethod
    def list_appointments(
            db: Session,
            tenant_id,
            range_from: Optional[datetime] = None,
            range_to: Optional[datetime] = None,
            status: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Appointments starting in [from, to), one status at a time (default confirmed)."""
        now = utcnow()
        range_from = ensure_utc(range_from) if range_from else now
        range_to = ensure_utc(range_to) if range_to else now + timedelta(days=DEFAULT_RANGE_DAYS)
        valid_statuses = {s.value for s in AppointmentStatus}
        status = status if status in valid_statuses else AppointmentStatus.CONFIRMED.value

        if range_from > range_to:
            raise ValidationFailedError("'from' must be before 'to'")

        scope = TenantScope(db, tenant_id)
        appointments = scope.query(Appointment).filter(
            Appointment.start_at >= range_from,
            Appointment.start_at < range_to,
            Appointment.status == status,
            Appointment.deleted_at.is_(None)
        ).order_by(Appointment.start_at.asc()).limit(MAX_LIST_RESULTS).all()

        service_names = AppointmentQueryService._service_names(scope, appointments)

        return {
            "filters": {
                "from": range_from.isoformat(),
                "to": range_to.isoformat(),
                "status": status,
            },
            "total_appointments": len(appointments),
            "appointments": [
                {
                    **appt.to_dict(),
                    "service_name": service_names.get(appt.service_id, "Servicio eliminado"),
                }
                for appt in appointments
            ],
        }

    @staticmethod
    def find_upcoming_by_phone(db: Session, tenant_id, phone: str) -> List[Dict[str, Any]]:
        """
        Confirmed appointments for a customer phone, digits-only match.

        Appointments that ended up to two hours ago are still returned so a
        customer can find a booking that just finished.
        """
        digits = normalize_phone(phone)
        if len(digits) < MIN_PHONE_DIGITS:
            raise ValidationFailedError("Phone is required")

        scope = TenantScope(db, tenant_id)
        candidates = scope.query(Appointment).filter(
            Appointment.status == AppointmentStatus.CONFIRMED.value,
            Appointment.deleted_at.is_(None),
            Appointment.end_at >= utcnow() - LOOKUP_GRACE
        ).order_by(Appointment.scheduled_start_at.asc()).all()

        matches = [a for a in candidates if normalize_phone(a.customer_phone) == digits][:MAX_LOOKUP_RESULTS]

        service_names = AppointmentQueryService._service_names(scope, matches)
        staff_ids = {a.staff_user_id for a in matches if a.staff_user_id}
        staff_names = {}
        if staff_ids:
            staff_names = {u.id: u.full_name for u in db.query(User).filter(User.id.in_(staff_ids)).all()}

        return [
            {
                "appointment_id": str(a.id),
                "service_id": str(a.service_id),
                "staff_user_id": str(a.staff_user_id) if a.staff_user_id else None,
                "status": a.status,
                "scheduled_start_at": ensure_utc(a.scheduled_start_at).isoformat(),
                "service_name": service_names.get(a.service_id, "Servicio"),
                "staff_name": staff_names.get(a.staff_user_id),
            }
            for a in matches
        ]

    @staticmethod
    def _service_names(scope: TenantScope, appointments: List[Appointment]) -> Dict:
        service_ids = {a.service_id for a in appointments}
        if not service_ids:
            return {}
        services = scope.query(Service).filter(Service.id.in_(service_ids)).all()
        return {s.id: s.name for s in services}
