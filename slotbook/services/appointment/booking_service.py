# slotbook/services/appointment/booking_service.py
"""
Atomic booking transaction.

The overlap check and the insert run in one transaction under storage-level
mutual exclusion:

* PostgreSQL: a transaction-scoped advisory lock per (tenant, lane, local
  date), taken in sorted key order, backed by the appointments exclusion
  constraint (SQLSTATE 23P01).
* SQLite: every transaction opens with BEGIN IMMEDIATE (see
  config/database.py), which serializes writers.
"""
import hashlib
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.core.errors import (
    ForbiddenError,
    NotFoundError,
    SlotTakenError,
    StorageError,
    ValidationFailedError,
)
from slotbook.models.appointment import Appointment, AppointmentStatus, can_transition
from slotbook.models.business import Business
from slotbook.models.service import Service
from slotbook.services.availability.slot_service import AvailabilityCalculator, SlotService
from slotbook.services.billing.subscription_service import SubscriptionService
from slotbook.services.business.business_service import BusinessService, TenantScope
from slotbook.utils.text_processing import is_valid_phone, normalize_phone
from slotbook.utils.time_utils import ensure_utc, local_date_of, utcnow

logger = logging.getLogger(__name__)

EXCLUSION_VIOLATION = "23P01"
MAX_NOTES_LENGTH = 500
MAX_IDEMPOTENCY_KEY_LENGTH = 200


@dataclass
class BookingResult:
    appointment: Appointment
    replayed: bool = False
    service: Optional[Service] = None
    business: Optional[Business] = None


def lane_lock_key(tenant_id, lane, local_day) -> int:
    """Signed 64-bit key for pg_advisory_xact_lock"""
    raw = f"{tenant_id}:{lane or 'tenant'}:{local_day.isoformat()}".encode("utf-8")
    digest = hashlib.blake2b(raw, digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


class BookingService:
    """Creates and transitions appointments"""

    # ------------------------------------------------------------- helpers

    @staticmethod
    def _lock_lanes(db: Session, calculator: AvailabilityCalculator, lanes: List, start_at: datetime) -> None:
        if db.get_bind().dialect.name != "postgresql":
            return

        fp_start, fp_end = calculator.footprint(start_at)
        days = {local_date_of(fp_start, calculator.zone), local_date_of(fp_end, calculator.zone)}
        keys = sorted({
            lane_lock_key(calculator.business.tenant_id, lane, day)
            for lane in lanes
            for day in days
        })
        for key in keys:
            db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})

    @staticmethod
    def _find_by_idempotency_key(db: Session, tenant_id, idempotency_key: str) -> Optional[Appointment]:
        return TenantScope(db, tenant_id).query(Appointment).filter(
            Appointment.idempotency_key == idempotency_key
        ).first()

    @staticmethod
    def _replay(existing: Appointment, service_id, start_at: datetime, staff_user_id,
                customer_phone: str) -> BookingResult:
        """Same key must carry the same payload"""
        if (
            str(existing.service_id) != str(service_id)
            or ensure_utc(existing.scheduled_start_at) != ensure_utc(start_at)
            or (staff_user_id and str(existing.staff_user_id) != str(staff_user_id))
            or normalize_phone(existing.customer_phone) != normalize_phone(customer_phone)
        ):
            raise ValidationFailedError("Idempotency-Key was already used with a different request")

        logger.info(f"Idempotent replay of appointment {existing.id}")
        return BookingResult(appointment=existing, replayed=True)

    @staticmethod
    def _validate_customer(customer_name: str, customer_phone: str, customer_email: Optional[str],
                           notes: Optional[str], idempotency_key: str) -> None:
        if not idempotency_key or len(idempotency_key) > MAX_IDEMPOTENCY_KEY_LENGTH:
            raise ValidationFailedError("Missing or invalid Idempotency-Key")
        if not customer_name or not 2 <= len(customer_name.strip()) <= 120:
            raise ValidationFailedError("customer_name must be 2-120 characters")
        if not is_valid_phone(customer_phone):
            raise ValidationFailedError("Invalid phone number")
        if customer_email is not None and "@" not in customer_email:
            raise ValidationFailedError("Invalid email")
        if notes is not None and len(notes) > MAX_NOTES_LENGTH:
            raise ValidationFailedError(f"notes may not exceed {MAX_NOTES_LENGTH} characters")

    @staticmethod
    def _get_appointment(db: Session, tenant_id, appointment_id) -> Appointment:
        try:
            appointment_uuid = appointment_id if isinstance(appointment_id, uuid.UUID) else uuid.UUID(str(appointment_id))
        except (TypeError, ValueError) as e:
            raise NotFoundError("Appointment not found") from e

        appointment = TenantScope(db, tenant_id).query(Appointment).filter(
            Appointment.id == appointment_uuid,
            Appointment.deleted_at.is_(None)
        ).first()
        if not appointment:
            raise NotFoundError("Appointment not found")
        return appointment

    @staticmethod
    def _find_for_customer(db: Session, tenant_id, appointment_id=None,
                           scheduled_start_at: Optional[datetime] = None,
                           customer_phone: Optional[str] = None) -> Appointment:
        """
        Resolve a customer's appointment by id or by its start instant.

        Several lanes can hold appointments at one instant, so the start-time
        form picks the row whose phone matches, preferring a confirmed one.
        """
        if appointment_id:
            appointment = BookingService._get_appointment(db, tenant_id, appointment_id)
            BookingService._check_phone(appointment, customer_phone)
            return appointment
        if scheduled_start_at is None:
            raise ValidationFailedError("appointment_id or scheduled_start_at is required")

        candidates = TenantScope(db, tenant_id).query(Appointment).filter(
            Appointment.scheduled_start_at == ensure_utc(scheduled_start_at),
            Appointment.deleted_at.is_(None)
        ).order_by(Appointment.created_at.desc()).all()
        if not candidates:
            raise NotFoundError("Appointment not found")

        requested = normalize_phone(customer_phone or "")
        owned = [a for a in candidates if requested and normalize_phone(a.customer_phone) == requested]
        if not owned:
            raise ForbiddenError("Phone does not match appointment")

        confirmed = [a for a in owned if a.status == AppointmentStatus.CONFIRMED.value]
        return (confirmed or owned)[0]

    @staticmethod
    def _check_transition(appointment: Appointment, target: str) -> None:
        if not can_transition(appointment.status, target):
            raise ValidationFailedError("Appointment is not active")

    @staticmethod
    def _check_phone(appointment: Appointment, customer_phone: Optional[str]) -> None:
        requested = normalize_phone(customer_phone or "")
        if not requested or requested != normalize_phone(appointment.customer_phone):
            raise ForbiddenError("Phone does not match appointment")

    @staticmethod
    def _commit(db: Session, action: str, appointment: Appointment) -> None:
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            if getattr(e.orig, "pgcode", None) == EXCLUSION_VIOLATION:
                raise SlotTakenError() from e
            logger.exception(f"Integrity error during {action} of appointment {appointment.id}")
            raise StorageError(f"Could not {action} appointment") from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Storage error during {action} of appointment {appointment.id}")
            raise StorageError(f"Could not {action} appointment") from e

    # --------------------------------------------------------------- create

    @staticmethod
    def create_booking(
            db: Session,
            tenant_id,
            service_id,
            start_at: datetime,
            customer_name: str,
            customer_phone: str,
            idempotency_key: str,
            staff_user_id=None,
            customer_email: Optional[str] = None,
            notes: Optional[str] = None,
            source: str = "public",
            enforce_public_gate: bool = True,
            now: Optional[datetime] = None,
    ) -> BookingResult:
        """
        Admit one confirmed appointment for a computed slot.

        Unpinned bookings take the first lane in staff order that offers the
        instant and is free. Raises NotFoundError, ValidationFailedError,
        ForbiddenError, SlotTakenError or StorageError.
        """
        if start_at.tzinfo is None:
            raise ValidationFailedError("start_at must include a timezone offset")
        start_at = ensure_utc(start_at)
        now = ensure_utc(now) if now else utcnow()

        business = BusinessService.get_business(db, tenant_id)
        BookingService._validate_customer(customer_name, customer_phone, customer_email, notes, idempotency_key)

        existing = BookingService._find_by_idempotency_key(db, business.tenant_id, idempotency_key)
        if existing:
            return BookingService._replay(existing, service_id, start_at, staff_user_id, customer_phone)

        if enforce_public_gate:
            BusinessService.ensure_public_booking_enabled(business)
            if SubscriptionService.is_public_blocked(db, business):
                raise ForbiddenError("Business is temporarily unavailable")

        service = SlotService.get_bookable_service(db, business.tenant_id, service_id)

        if start_at <= now:
            raise ValidationFailedError("Cannot book a time in the past")

        calculator = AvailabilityCalculator(db, business, service)
        lanes = calculator.resolve_lanes(staff_user_id)
        on_grid = [lane for lane in lanes if calculator.is_on_grid(start_at, lane)]
        if not on_grid:
            raise ValidationFailedError("Selected time is not an available slot")

        try:
            BookingService._lock_lanes(db, calculator, on_grid, start_at)

            # A concurrent request with the same key may have committed while we waited
            existing = BookingService._find_by_idempotency_key(db, business.tenant_id, idempotency_key)
            if existing:
                db.rollback()
                return BookingService._replay(existing, service_id, start_at, staff_user_id, customer_phone)

            chosen = next((lane for lane in on_grid if calculator.is_free(start_at, lane)), _NO_LANE)
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Storage error while locking lanes for tenant {business.tenant_id}")
            raise StorageError("Could not create appointment") from e

        if chosen is _NO_LANE:
            db.rollback()
            logger.info(f"Slot {start_at.isoformat()} taken for tenant {business.slug}")
            raise SlotTakenError()

        fp_start, fp_end = calculator.footprint(start_at)
        appointment = TenantScope(db, business.tenant_id).add(Appointment(
            staff_user_id=chosen,
            service_id=service.id,
            customer_name=customer_name.strip(),
            customer_phone=customer_phone.strip(),
            customer_email=customer_email,
            notes=notes,
            start_at=fp_start,
            end_at=fp_end,
            scheduled_start_at=start_at,
            status=AppointmentStatus.CONFIRMED.value,
            source=source,
            idempotency_key=idempotency_key,
            created_at=now,
        ))

        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            if getattr(e.orig, "pgcode", None) == EXCLUSION_VIOLATION:
                raise SlotTakenError() from e

            existing = BookingService._find_by_idempotency_key(db, business.tenant_id, idempotency_key)
            if existing:
                return BookingService._replay(existing, service_id, start_at, staff_user_id, customer_phone)

            logger.exception(f"Integrity error creating appointment for tenant {business.tenant_id}")
            raise StorageError("Could not create appointment") from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Storage error creating appointment for tenant {business.tenant_id}")
            raise StorageError("Could not create appointment") from e

        db.refresh(appointment)
        logger.info(
            f"Booked appointment {appointment.id} for {business.slug} at {start_at.isoformat()} "
            f"(staff={chosen}, service={service.id})"
        )
        return BookingResult(appointment=appointment, replayed=False, service=service, business=business)

    # --------------------------------------------------------- transitions

    @staticmethod
    def cancel_booking(
            db: Session,
            tenant_id,
            appointment_id=None,
            scheduled_start_at: Optional[datetime] = None,
            customer_phone: Optional[str] = None,
            by_customer: bool = True,
            reason: Optional[str] = None,
            now: Optional[datetime] = None,
    ) -> Appointment:
        """Customers must prove the booking phone; dashboard callers need not"""
        if by_customer:
            appointment = BookingService._find_for_customer(
                db, tenant_id, appointment_id, scheduled_start_at, customer_phone
            )
        else:
            appointment = BookingService._get_appointment(db, tenant_id, appointment_id)

        BookingService._check_transition(appointment, AppointmentStatus.CANCELED.value)

        appointment.status = AppointmentStatus.CANCELED.value
        appointment.canceled_at = ensure_utc(now) if now else utcnow()
        appointment.cancellation_reason = reason
        BookingService._commit(db, "cancel", appointment)

        db.refresh(appointment)
        logger.info(f"Canceled appointment {appointment.id} (by_customer={by_customer})")
        return appointment

    @staticmethod
    def mark_no_show(db: Session, tenant_id, appointment_id) -> Appointment:
        appointment = BookingService._get_appointment(db, tenant_id, appointment_id)
        BookingService._check_transition(appointment, AppointmentStatus.NO_SHOW.value)

        appointment.status = AppointmentStatus.NO_SHOW.value
        BookingService._commit(db, "mark no-show for", appointment)

        db.refresh(appointment)
        logger.info(f"Appointment {appointment.id} marked as no-show")
        return appointment

    @staticmethod
    def reschedule_booking(
            db: Session,
            tenant_id,
            appointment_id=None,
            new_start_at: Optional[datetime] = None,
            customer_phone: Optional[str] = None,
            by_customer: bool = True,
            scheduled_start_at: Optional[datetime] = None,
            now: Optional[datetime] = None,
    ) -> Appointment:
        """
        Move a confirmed appointment within its own lane.

        Same validation as a new booking, with the appointment excluded from
        its own overlap check. On any failure the original row is untouched.
        """
        if new_start_at is None:
            raise ValidationFailedError("new_start_at is required for reschedule")
        if new_start_at.tzinfo is None:
            raise ValidationFailedError("new_start_at must include a timezone offset")
        new_start_at = ensure_utc(new_start_at)
        now = ensure_utc(now) if now else utcnow()

        if by_customer:
            appointment = BookingService._find_for_customer(
                db, tenant_id, appointment_id, scheduled_start_at, customer_phone
            )
        else:
            appointment = BookingService._get_appointment(db, tenant_id, appointment_id)

        BookingService._check_transition(appointment, AppointmentStatus.CONFIRMED.value)

        if new_start_at <= now:
            raise ValidationFailedError("Cannot book a time in the past")

        business = BusinessService.get_business(db, tenant_id)
        service = TenantScope(db, business.tenant_id).query(Service).filter(
            Service.id == appointment.service_id
        ).first()
        if not service:
            raise NotFoundError("Service not found")

        calculator = AvailabilityCalculator(db, business, service)
        lane = appointment.staff_user_id
        if not calculator.is_on_grid(new_start_at, lane):
            raise ValidationFailedError("Selected time is not an available slot")

        try:
            BookingService._lock_lanes(db, calculator, [lane], new_start_at)
            free = calculator.is_free(new_start_at, lane, exclude_appointment_id=appointment.id)
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Storage error while locking lane for appointment {appointment.id}")
            raise StorageError("Could not reschedule appointment") from e

        if not free:
            db.rollback()
            raise SlotTakenError()

        fp_start, fp_end = calculator.footprint(new_start_at)
        appointment.start_at = fp_start
        appointment.end_at = fp_end
        appointment.scheduled_start_at = new_start_at
        BookingService._commit(db, "reschedule", appointment)

        db.refresh(appointment)
        logger.info(f"Rescheduled appointment {appointment.id} to {new_start_at.isoformat()}")
        return appointment


_NO_LANE = object()
