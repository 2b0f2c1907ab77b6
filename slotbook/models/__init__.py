# slotbook/models/__init__.py
from .base import Base
from .business import Business
from .user import User, Membership, MembershipRole
from .service import Service
from .availability import AvailabilityRule, AvailabilityException, ExceptionKind
from .appointment import Appointment, AppointmentStatus
from .subscription import Subscription, SubscriptionStatus
from .whatsapp_settings import BusinessWhatsAppSettings

__all__ = [
    "Base",
    "Business",
    "User",
    "Membership",
    "MembershipRole",
    "Service",
    "AvailabilityRule",
    "AvailabilityException",
    "ExceptionKind",
    "Appointment",
    "AppointmentStatus",
    "Subscription",
    "SubscriptionStatus",
    "BusinessWhatsAppSettings",
]
