# slotbook/services/billing/subscription_service.py
"""Access decisions derived from the tenant's subscription state"""
import enum
import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from slotbook.models.business import Business
from slotbook.models.subscription import Subscription, SubscriptionStatus
from slotbook.utils.time_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


class EffectiveAccess(str, enum.Enum):
    ALLOW = "allow"
    ALLOW_WITH_WARNING = "allow_with_warning"
    BLOCK = "block"


class BillingEventClass(str, enum.Enum):
    CHECKOUT_COMPLETED = "checkout_completed"
    SUBSCRIPTION_RENEWED = "subscription_renewed"
    PAYMENT_FAILED = "payment_failed"
    SUBSCRIPTION_CANCELED = "subscription_canceled"
    UNKNOWN = "unknown"


@dataclass
class AccessDecision:
    status: str
    effective_access: EffectiveAccess

    @property
    def blocked(self) -> bool:
        return self.effective_access == EffectiveAccess.BLOCK


_ALLOWED_STATUSES = {
    SubscriptionStatus.ACTIVE.value,
    SubscriptionStatus.TRIALING.value,
    SubscriptionStatus.GRACE.value,
}


class SubscriptionService:

    @staticmethod
    def get_access_decision(db: Session, tenant_id) -> AccessDecision:
        latest = db.query(Subscription).filter(
            Subscription.tenant_id == tenant_id
        ).order_by(Subscription.created_at.desc(), Subscription.id.desc()).first()

        if latest is None:
            business = db.query(Business).filter(Business.tenant_id == tenant_id).first()
            if business is None:
                return AccessDecision(SubscriptionStatus.BLOCKED.value, EffectiveAccess.BLOCK)

            if business.trial_ends_at and utcnow() <= ensure_utc(business.trial_ends_at):
                return AccessDecision(SubscriptionStatus.TRIALING.value, EffectiveAccess.ALLOW)
            return AccessDecision(SubscriptionStatus.BLOCKED.value, EffectiveAccess.BLOCK)

        if latest.status in _ALLOWED_STATUSES:
            access = EffectiveAccess.ALLOW
        elif latest.status == SubscriptionStatus.PAST_DUE.value:
            access = EffectiveAccess.ALLOW_WITH_WARNING
        else:
            access = EffectiveAccess.BLOCK

        return AccessDecision(latest.status, access)

    @staticmethod
    def get_effective_access(db: Session, tenant_id) -> EffectiveAccess:
        return SubscriptionService.get_access_decision(db, tenant_id).effective_access

    @staticmethod
    def is_public_blocked(db: Session, business: Business) -> bool:
        """True when the business opted into blocking and billing says block"""
        if not business.block_public_on_billing_issue:
            return False
        blocked = SubscriptionService.get_effective_access(db, business.tenant_id) == EffectiveAccess.BLOCK
        if blocked:
            logger.info(f"Public access blocked by billing for tenant {business.tenant_id}")
        return blocked


def next_subscription_status(current: str, event_class: str) -> str:
    """Billing state machine driven by normalized provider events"""
    if event_class in (
            BillingEventClass.CHECKOUT_COMPLETED.value,
            BillingEventClass.SUBSCRIPTION_RENEWED.value,
    ):
        return SubscriptionStatus.ACTIVE.value
    if event_class == BillingEventClass.PAYMENT_FAILED.value:
        if current == SubscriptionStatus.ACTIVE.value:
            return SubscriptionStatus.PAST_DUE.value
        return SubscriptionStatus.GRACE.value
    if event_class == BillingEventClass.SUBSCRIPTION_CANCELED.value:
        return SubscriptionStatus.CANCELED.value
    return current
