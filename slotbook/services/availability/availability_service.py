# ===== slotbook/services/availability/availability_service.py =====
from typing import List, Optional
from datetime import date, timedelta
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging
import uuid

from slotbook.core.errors import NotFoundError, StorageError, ValidationFailedError
from slotbook.models.availability import AvailabilityRule, AvailabilityException, ExceptionKind
from slotbook.models.business import Business
from slotbook.services.business.business_service import BusinessService, TenantScope
from slotbook.utils.time_utils import get_zone, parse_local_time, utcnow

logger = logging.getLogger(__name__)

DEFAULT_EXCEPTION_WINDOW_DAYS = 90


class AvailabilityService:
    """Writes and reads for weekly rules and dated exceptions"""

    @staticmethod
    def _bump_schedule_version(db: Session, tenant_id) -> None:
        # SQL-side increment so concurrent writers never lose a bump
        db.query(Business).filter(Business.tenant_id == tenant_id).update(
            {Business.schedule_version: Business.schedule_version + 1},
            synchronize_session=False
        )

    @staticmethod
    def _validate_interval(start_local: str, end_local: str) -> None:
        try:
            start = parse_local_time(start_local)
            end = parse_local_time(end_local, allow_end_of_day=True)
        except ValueError as e:
            raise ValidationFailedError(str(e)) from e
        if start >= end:
            raise ValidationFailedError("start_local must be before end_local")

    @staticmethod
    def _validate_staff(db: Session, tenant_id, staff_user_id) -> Optional[uuid.UUID]:
        if not staff_user_id:
            return None
        try:
            membership = BusinessService.get_staff_member(db, tenant_id, staff_user_id)
        except NotFoundError as e:
            raise ValidationFailedError("staff_user_id is not a member of this business") from e
        return membership.user_id

    @staticmethod
    def _write(db: Session, tenant_id, instance, action: str):
        try:
            AvailabilityService._bump_schedule_version(db, tenant_id)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to {action} for tenant {tenant_id}")
            raise StorageError(f"Could not {action}") from e

        db.refresh(instance)
        return instance

    @staticmethod
    def create_rule(
            db: Session,
            tenant_id,
            day_of_week: int,
            start_local: str,
            end_local: str,
            slot_step_min: int = 15,
            staff_user_id=None,
            valid_from: Optional[date] = None,
            valid_to: Optional[date] = None,
    ) -> AvailabilityRule:
        """Create a weekly rule; valid_from defaults to today in the tenant's timezone"""
        business = BusinessService.get_business(db, tenant_id)

        if not 0 <= day_of_week <= 6:
            raise ValidationFailedError("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
        if not 5 <= slot_step_min <= 60:
            raise ValidationFailedError("slot_step_min must be between 5 and 60")
        AvailabilityService._validate_interval(start_local, end_local)

        valid_from = valid_from or utcnow().astimezone(get_zone(business.timezone)).date()
        if valid_to is not None and valid_to < valid_from:
            raise ValidationFailedError("valid_to must be on or after valid_from")

        staff_uuid = AvailabilityService._validate_staff(db, business.tenant_id, staff_user_id)

        rule = TenantScope(db, business.tenant_id).add(AvailabilityRule(
            staff_user_id=staff_uuid,
            day_of_week=day_of_week,
            start_local=start_local,
            end_local=end_local,
            slot_step_min=slot_step_min,
            valid_from=valid_from,
            valid_to=valid_to,
            is_active=True,
        ))
        AvailabilityService._write(db, business.tenant_id, rule, "create availability rule")

        logger.info(f"Created rule {rule.id} for {business.slug}: dow={day_of_week} {start_local}-{end_local}")
        return rule

    @staticmethod
    def list_rules(db: Session, tenant_id) -> List[AvailabilityRule]:
        return TenantScope(db, tenant_id).query(AvailabilityRule).filter(
            AvailabilityRule.is_active.is_(True)
        ).order_by(AvailabilityRule.day_of_week, AvailabilityRule.start_local).all()

    @staticmethod
    def deactivate_rule(db: Session, tenant_id, rule_id) -> AvailabilityRule:
        try:
            rule_uuid = rule_id if isinstance(rule_id, uuid.UUID) else uuid.UUID(str(rule_id))
        except ValueError as e:
            raise NotFoundError("Availability rule not found") from e

        scope = TenantScope(db, tenant_id)
        rule = scope.query(AvailabilityRule).filter(AvailabilityRule.id == rule_uuid).first()
        if not rule:
            raise NotFoundError("Availability rule not found")

        rule.is_active = False
        AvailabilityService._write(db, scope.tenant_id, rule, "deactivate availability rule")

        logger.info(f"Deactivated rule {rule.id} for tenant {scope.tenant_id}")
        return rule

    @staticmethod
    def create_exception(
            db: Session,
            tenant_id,
            exception_date: date,
            kind: str,
            start_local: Optional[str] = None,
            end_local: Optional[str] = None,
            reason: Optional[str] = None,
            priority: int = 100,
            staff_user_id=None,
    ) -> AvailabilityException:
        business = BusinessService.get_business(db, tenant_id)

        kinds = {k.value for k in ExceptionKind}
        if kind not in kinds:
            raise ValidationFailedError(f"kind must be one of {sorted(kinds)}")
        if not 1 <= priority <= 1000:
            raise ValidationFailedError("priority must be between 1 and 1000")
        if reason is not None and len(reason) > 200:
            raise ValidationFailedError("reason may not exceed 200 characters")

        if kind == ExceptionKind.CLOSED_FULL_DAY.value:
            start_local, end_local = None, None
        else:
            if not start_local or not end_local:
                raise ValidationFailedError(f"start_local and end_local are required for {kind}")
            AvailabilityService._validate_interval(start_local, end_local)

        staff_uuid = AvailabilityService._validate_staff(db, business.tenant_id, staff_user_id)

        exception = TenantScope(db, business.tenant_id).add(AvailabilityException(
            staff_user_id=staff_uuid,
            exception_date=exception_date,
            kind=kind,
            start_local=start_local,
            end_local=end_local,
            reason=reason,
            priority=priority,
            created_at=utcnow(),
        ))
        AvailabilityService._write(db, business.tenant_id, exception, "create availability exception")

        logger.info(f"Created {kind} exception {exception.id} for {business.slug} on {exception_date}")
        return exception

    @staticmethod
    def list_exceptions(
            db: Session,
            tenant_id,
            date_from: Optional[date] = None,
            date_to: Optional[date] = None,
    ) -> List[AvailabilityException]:
        """Exceptions in [from, to], default today (tenant time) ... +90 days"""
        if date_from is None:
            business = BusinessService.get_business(db, tenant_id)
            date_from = utcnow().astimezone(get_zone(business.timezone)).date()
        date_to = date_to or date_from + timedelta(days=DEFAULT_EXCEPTION_WINDOW_DAYS)
        if date_from > date_to:
            raise ValidationFailedError("'from' must be on or before 'to'")

        return TenantScope(db, tenant_id).query(AvailabilityException).filter(
            AvailabilityException.exception_date >= date_from,
            AvailabilityException.exception_date <= date_to
        ).order_by(
            AvailabilityException.exception_date.asc(),
            AvailabilityException.priority.desc()
        ).all()
