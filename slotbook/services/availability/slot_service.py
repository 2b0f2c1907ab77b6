# slotbook/services/availability/slot_service.py
"""
Slot computation.

Turns weekly rules, dated exceptions and confirmed appointments into the
bookable start instants for a service. The same calculator backs the
server-side re-validation done by the booking transaction.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from slotbook.config.settings import settings
from slotbook.core.errors import NotFoundError, ValidationFailedError
from slotbook.models.appointment import Appointment, AppointmentStatus
from slotbook.models.availability import AvailabilityException, AvailabilityRule, ExceptionKind
from slotbook.models.business import Business
from slotbook.models.service import Service
from slotbook.services.availability import windows as window_ops
from slotbook.services.availability.windows import OpenWindow
from slotbook.services.billing.subscription_service import SubscriptionService
from slotbook.services.business.business_service import BusinessService, TenantScope
from slotbook.utils.time_utils import (
    day_of_week_sunday_first,
    ensure_utc,
    get_zone,
    iter_dates,
    local_minutes_to_utc,
    parse_local_time,
    utcnow,
)

logger = logging.getLogger(__name__)

MIN_SLOT_LIMIT = 1
MAX_SLOT_LIMIT = 200
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class Slot:
    start_at: datetime
    end_at: datetime
    local_start: datetime
    staff_user_id: Optional[uuid.UUID]
    timezone: str

    def to_dict(self) -> dict:
        return {
            "start_at": self.start_at.isoformat(),
            "end_at": self.end_at.isoformat(),
            "local_start": self.local_start.isoformat(),
            "staff_user_id": str(self.staff_user_id) if self.staff_user_id else None,
            "timezone": self.timezone,
        }


@dataclass
class SlotResult:
    timezone: str
    slots: List[Slot] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"timezone": self.timezone, "slots": [s.to_dict() for s in self.slots]}


@dataclass(frozen=True)
class BusyInterval:
    start_at: datetime
    end_at: datetime
    appointment_id: uuid.UUID

    def overlaps(self, start_at: datetime, end_at: datetime) -> bool:
        return self.start_at < end_at and start_at < self.end_at


def _exception_order(exc: AvailabilityException):
    created = ensure_utc(exc.created_at) if exc.created_at else _EPOCH
    return exc.priority, created, str(exc.id)


class AvailabilityCalculator:
    """Open windows and footprints for one tenant and one service"""

    def __init__(self, db: Session, business: Business, service: Service):
        self.db = db
        self.scope = TenantScope(db, business.tenant_id)
        self.business = business
        self.service = service
        self.zone = get_zone(business.timezone)
        self._rules: Optional[List[AvailabilityRule]] = None
        self._exceptions: Dict[date, List[AvailabilityException]] = {}

    # ------------------------------------------------------------------ lanes

    def resolve_lanes(self, staff_user_id=None) -> List[Optional[uuid.UUID]]:
        """
        Staff lanes to consider, in staff order.

        A pinned staff member must be an active member of the tenant. A
        tenant without members books into the single tenant-wide lane (None).
        """
        if staff_user_id:
            membership = BusinessService.get_staff_member(self.db, self.business.tenant_id, staff_user_id)
            return [membership.user_id]

        staff = BusinessService.list_staff(self.db, self.business.tenant_id)
        if not staff:
            return [None]
        return [m.user_id for m in staff]

    # ------------------------------------------------------------ footprints

    def footprint(self, scheduled_start_at: datetime):
        """Calendar occupancy [start - buffer_before, start + duration + buffer_after)"""
        start = ensure_utc(scheduled_start_at) - timedelta(minutes=self.service.buffer_before_min or 0)
        end = ensure_utc(scheduled_start_at) + timedelta(
            minutes=self.service.duration_min + (self.service.buffer_after_min or 0)
        )
        return start, end

    # --------------------------------------------------------------- windows

    def load(self, from_date: date, to_date: date) -> None:
        """Preload active rules and the exceptions dated inside the range"""
        self._rules = self.scope.query(AvailabilityRule).filter(
            AvailabilityRule.is_active.is_(True)
        ).all()

        exceptions = self.scope.query(AvailabilityException).filter(
            AvailabilityException.exception_date >= from_date,
            AvailabilityException.exception_date <= to_date,
        ).all()

        self._exceptions = {}
        for exc in exceptions:
            self._exceptions.setdefault(exc.exception_date, []).append(exc)

    def _rules_for(self, day: date, lane) -> List[AvailabilityRule]:
        if self._rules is None:
            self.load(day, day)

        dow = day_of_week_sunday_first(day)
        return [
            rule for rule in self._rules
            if rule.day_of_week == dow
            and (rule.staff_user_id is None or rule.staff_user_id == lane)
            and rule.valid_from <= day
            and (rule.valid_to is None or day <= rule.valid_to)
        ]

    def _exceptions_for(self, day: date, lane) -> List[AvailabilityException]:
        if self._rules is None:
            self.load(day, day)

        applicable = [
            exc for exc in self._exceptions.get(day, [])
            if exc.staff_user_id is None or exc.staff_user_id == lane
        ]
        # Highest priority applies last
        return sorted(applicable, key=_exception_order)

    def open_windows(self, day: date, lane) -> List[OpenWindow]:
        rules = self._rules_for(day, lane)
        windows = window_ops.union(
            OpenWindow(
                start=parse_local_time(rule.start_local),
                end=parse_local_time(rule.end_local, allow_end_of_day=True),
                step=rule.slot_step_min,
            )
            for rule in rules
        )

        exceptions = self._exceptions_for(day, lane)
        if any(exc.kind == ExceptionKind.CLOSED_FULL_DAY.value for exc in exceptions):
            return []

        special_step = min((rule.slot_step_min for rule in rules), default=settings.DEFAULT_SLOT_STEP_MIN)

        for exc in exceptions:
            if not exc.start_local or not exc.end_local:
                continue
            start = parse_local_time(exc.start_local)
            end = parse_local_time(exc.end_local, allow_end_of_day=True)

            if exc.kind in (ExceptionKind.CLOSED_PARTIAL.value, ExceptionKind.MANUAL_BLOCK.value):
                windows = window_ops.subtract(windows, start, end)
            elif exc.kind == ExceptionKind.OPEN_SPECIAL.value:
                windows = window_ops.add(windows, start, end, special_step)

        return windows

    def candidate_starts(self, day: date, lane) -> List[datetime]:
        """UTC customer-visible starts on the step grid of the lane's windows"""
        minutes = window_ops.candidate_starts(self.open_windows(day, lane), self.service.duration_min)
        return [local_minutes_to_utc(day, m, self.zone) for m in minutes]

    def is_on_grid(self, scheduled_start_at: datetime, lane) -> bool:
        start = ensure_utc(scheduled_start_at)
        local_day = start.astimezone(self.zone).date()
        return start in set(self.candidate_starts(local_day, lane))

    # ------------------------------------------------------------ occupancy

    def busy_intervals(self, lane, range_start: datetime, range_end: datetime,
                       exclude_appointment_id=None) -> List[BusyInterval]:
        """Confirmed, non-deleted footprints of the lane overlapping the range"""
        query = self.scope.query(Appointment).filter(
            Appointment.status == AppointmentStatus.CONFIRMED.value,
            Appointment.deleted_at.is_(None),
            Appointment.start_at < range_end,
            Appointment.end_at > range_start,
        )
        if lane is None:
            query = query.filter(Appointment.staff_user_id.is_(None))
        else:
            query = query.filter(Appointment.staff_user_id == lane)
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)

        return [
            BusyInterval(ensure_utc(a.start_at), ensure_utc(a.end_at), a.id)
            for a in query.all()
        ]

    def is_free(self, scheduled_start_at: datetime, lane, exclude_appointment_id=None) -> bool:
        start, end = self.footprint(scheduled_start_at)
        return not self.busy_intervals(lane, start, end, exclude_appointment_id)


class SlotService:

    @staticmethod
    def validate_range(from_date: date, to_date: date) -> None:
        if from_date > to_date:
            raise ValidationFailedError("'from' must be on or before 'to'")
        if (to_date - from_date).days > settings.MAX_SLOT_RANGE_DAYS:
            raise ValidationFailedError(
                f"Date range may not exceed {settings.MAX_SLOT_RANGE_DAYS} days"
            )

    @staticmethod
    def get_bookable_service(db: Session, tenant_id, service_id) -> Service:
        try:
            service_uuid = service_id if isinstance(service_id, uuid.UUID) else uuid.UUID(str(service_id))
        except (TypeError, ValueError) as e:
            raise NotFoundError("Service not found") from e

        service = TenantScope(db, tenant_id).query(Service).filter(
            Service.id == service_uuid,
            Service.is_active.is_(True),
            Service.deleted_at.is_(None),
        ).first()
        if not service:
            raise NotFoundError("Service not found")
        return service

    @staticmethod
    def get_slots(
            db: Session,
            tenant_slug: str,
            from_date: date,
            to_date: date,
            service_id,
            staff_user_id=None,
            limit: int = settings.DEFAULT_SLOT_LIMIT,
            now: Optional[datetime] = None,
    ) -> SlotResult:
        """
        Ordered, deduplicated bookable starts for a service over [from, to].

        Each instant is assigned the first free lane in staff order.
        """
        if not MIN_SLOT_LIMIT <= limit <= MAX_SLOT_LIMIT:
            raise ValidationFailedError(f"limit must be between {MIN_SLOT_LIMIT} and {MAX_SLOT_LIMIT}")
        SlotService.validate_range(from_date, to_date)

        business = BusinessService.get_business_by_slug(db, tenant_slug)
        BusinessService.ensure_public_booking_enabled(business)
        if SubscriptionService.is_public_blocked(db, business):
            return SlotResult(timezone="UTC", slots=[])

        service = SlotService.get_bookable_service(db, business.tenant_id, service_id)
        return SlotService.compute_slots(db, business, service, from_date, to_date, staff_user_id, limit, now)

    @staticmethod
    def compute_slots(
            db: Session,
            business: Business,
            service: Service,
            from_date: date,
            to_date: date,
            staff_user_id=None,
            limit: int = settings.DEFAULT_SLOT_LIMIT,
            now: Optional[datetime] = None,
    ) -> SlotResult:
        now = ensure_utc(now) if now else utcnow()
        calculator = AvailabilityCalculator(db, business, service)
        lanes = calculator.resolve_lanes(staff_user_id)
        calculator.load(from_date, to_date)

        # Footprints may spill over the local day on either side
        range_start = local_minutes_to_utc(from_date, 0, calculator.zone) - timedelta(days=1)
        range_end = local_minutes_to_utc(to_date + timedelta(days=1), 0, calculator.zone) + timedelta(days=1)
        busy = {lane: calculator.busy_intervals(lane, range_start, range_end) for lane in lanes}

        duration = timedelta(minutes=service.duration_min)
        result = SlotResult(timezone=business.timezone)

        for day in iter_dates(from_date, to_date):
            assigned: Dict[datetime, Optional[uuid.UUID]] = {}

            for lane in lanes:
                for start_at in calculator.candidate_starts(day, lane):
                    if start_at <= now or start_at in assigned:
                        continue
                    fp_start, fp_end = calculator.footprint(start_at)
                    if any(interval.overlaps(fp_start, fp_end) for interval in busy[lane]):
                        continue
                    assigned[start_at] = lane

            for start_at in sorted(assigned):
                result.slots.append(Slot(
                    start_at=start_at,
                    end_at=start_at + duration,
                    local_start=start_at.astimezone(calculator.zone),
                    staff_user_id=assigned[start_at],
                    timezone=business.timezone,
                ))
                if len(result.slots) >= limit:
                    logger.debug(f"Slot limit {limit} reached for {business.slug} on {day}")
                    return result

        logger.debug(f"Computed {len(result.slots)} slots for {business.slug} service {service.id}")
        return result
