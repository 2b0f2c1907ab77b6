# slotbook/services/business/business_service.py
"""Service for managing business operations"""
import logging
import uuid
from datetime import timedelta
from typing import Optional, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.config.settings import settings
from slotbook.core.errors import ForbiddenError, NotFoundError, StorageError, ValidationFailedError
from slotbook.models.business import Business
from slotbook.models.subscription import Subscription, SubscriptionStatus
from slotbook.models.user import Membership, MembershipRole, User
from slotbook.utils.text_processing import SLUG_PATTERN, slugify
from slotbook.utils.time_utils import is_valid_timezone, timezone_for_country, utcnow

logger = logging.getLogger(__name__)


class TenantScope:
    """
    Tenant-bound query helper.

    Every query built through a scope is filtered on tenant_id, and rows
    added through it are stamped with the scope's tenant.
    """

    def __init__(self, db: Session, tenant_id):
        if not tenant_id:
            raise ValueError("TenantScope requires a tenant_id")
        self.db = db
        self.tenant_id = tenant_id if isinstance(tenant_id, uuid.UUID) else uuid.UUID(str(tenant_id))

    def query(self, model):
        return self.db.query(model).filter(model.tenant_id == self.tenant_id)

    def add(self, instance):
        instance.tenant_id = self.tenant_id
        self.db.add(instance)
        return instance


class BusinessService:
    """Handles business-related operations"""

    UPDATABLE_FIELDS = ("name", "timezone", "public_booking_enabled", "block_public_on_billing_issue")

    @staticmethod
    def get_business_by_slug(db: Session, slug: str) -> Business:
        business = db.query(Business).filter(
            Business.slug == slug,
            Business.deleted_at.is_(None)
        ).first()
        if not business:
            raise NotFoundError("Business not found")
        return business

    @staticmethod
    def get_business(db: Session, tenant_id) -> Business:
        business = db.query(Business).filter(
            Business.tenant_id == _as_uuid(tenant_id),
            Business.deleted_at.is_(None)
        ).first()
        if not business:
            raise NotFoundError("Business not found")
        return business

    @staticmethod
    def ensure_public_booking_enabled(business: Business) -> None:
        if not business.public_booking_enabled:
            raise ForbiddenError("Public booking is disabled for this business")

    @staticmethod
    def update_business(db: Session, tenant_id, changes: dict) -> Business:
        business = BusinessService.get_business(db, tenant_id)
        fields = {k: v for k, v in changes.items() if k in BusinessService.UPDATABLE_FIELDS and v is not None}
        if not fields:
            raise ValidationFailedError("No fields to update")

        if "timezone" in fields and not is_valid_timezone(fields["timezone"]):
            raise ValidationFailedError(f"Unknown timezone '{fields['timezone']}'")

        for key, value in fields.items():
            setattr(business, key, value)

        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to update business {tenant_id}")
            raise StorageError("Could not update business") from e

        db.refresh(business)
        logger.info(f"Business {business.slug} updated: {sorted(fields)}")
        return business

    @staticmethod
    def create_business(
            db: Session,
            business_name: str,
            owner_name: str,
            owner_email: str,
            slug: Optional[str] = None,
            timezone_name: Optional[str] = None,
            country_code: str = "AR",
    ) -> Business:
        """
        Sign up a tenant: business row, owner user + membership and a
        trialing subscription, in one transaction.
        """
        slug = slug or slugify(business_name) or f"negocio-{uuid.uuid4().hex[:6]}"
        if not SLUG_PATTERN.match(slug):
            raise ValidationFailedError(f"Invalid slug '{slug}'")

        timezone_name = timezone_name or timezone_for_country(country_code, settings.DEFAULT_TIMEZONE)
        if not is_valid_timezone(timezone_name):
            raise ValidationFailedError(f"Unknown timezone '{timezone_name}'")

        owner_email = owner_email.strip().lower()
        if db.query(User).filter(User.email == owner_email).first():
            raise ValidationFailedError("A user with that email already exists")
        if db.query(Business).filter(Business.slug == slug).first():
            raise ValidationFailedError("Slug is already in use")

        now = utcnow()
        business = Business(
            name=business_name,
            slug=slug,
            timezone=timezone_name,
            country_code=country_code.upper(),
            trial_starts_at=now,
            trial_ends_at=now + timedelta(days=settings.TRIAL_DAYS),
        )
        owner = User(email=owner_email, full_name=owner_name)

        try:
            db.add(business)
            db.add(owner)
            db.flush()

            db.add(Membership(tenant_id=business.tenant_id, user_id=owner.id, role=MembershipRole.OWNER.value))
            db.add(Subscription(
                tenant_id=business.tenant_id,
                status=SubscriptionStatus.TRIALING.value,
                current_period_start=now,
                current_period_end=now + timedelta(days=settings.TRIAL_DAYS),
            ))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to create business {slug}")
            raise StorageError("Could not create business") from e

        db.refresh(business)
        logger.info(f"Created business {business.slug} ({business.tenant_id}) owned by {owner_email}")
        return business

    @staticmethod
    def list_staff(db: Session, tenant_id) -> List[Membership]:
        """Active members in staff order: role rank, then full name, then user id"""
        scope = TenantScope(db, tenant_id)
        memberships = scope.query(Membership).join(User, Membership.user_id == User.id).filter(
            User.is_active.is_(True),
            User.deleted_at.is_(None)
        ).all()

        return sorted(memberships, key=lambda m: (m.role_rank, m.user.full_name, str(m.user_id)))

    @staticmethod
    def get_staff_member(db: Session, tenant_id, user_id) -> Membership:
        scope = TenantScope(db, tenant_id)
        membership = scope.query(Membership).join(User, Membership.user_id == User.id).filter(
            Membership.user_id == _as_uuid(user_id),
            User.is_active.is_(True),
            User.deleted_at.is_(None)
        ).first()
        if not membership:
            raise NotFoundError("Staff member not found")
        return membership

    @staticmethod
    def create_staff(db: Session, tenant_id, full_name: str, email: Optional[str] = None) -> Membership:
        """Staff members get a generated placeholder email unless one is given"""
        if not email:
            local_part = slugify(full_name, max_length=30) or "staff"
            email = f"{local_part}.{uuid.uuid4().hex[:8]}@staff.local"
        email = email.strip().lower()

        if db.query(User).filter(User.email == email).first():
            raise ValidationFailedError("A user with that email already exists")

        scope = TenantScope(db, tenant_id)
        user = User(email=email, full_name=full_name)
        try:
            db.add(user)
            db.flush()
            membership = scope.add(Membership(user_id=user.id, role=MembershipRole.STAFF.value))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to create staff member for tenant {tenant_id}")
            raise StorageError("Could not create staff member") from e

        db.refresh(membership)
        logger.info(f"Added staff member {user.id} to tenant {tenant_id}")
        return membership

    @staticmethod
    def staff_to_dict(membership: Membership) -> dict:
        return {
            **membership.user.to_dict(),
            "role": membership.role,
        }


def _as_uuid(value) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError) as e:
        raise NotFoundError("Not found") from e
