# ===== slotbook/tasks/notification_tasks.py =====
import logging
import uuid

from slotbook.config.celery_config import celery_app
from slotbook.config.database import SessionLocal
from slotbook.models.appointment import Appointment
from slotbook.models.business import Business
from slotbook.models.service import Service
from slotbook.services.notification.whatsapp_service import (
    NotificationService,
    REASON_INVALID_PHONE,
    REASON_NOT_CONFIGURED,
)

logger = logging.getLogger(__name__)

# Retrying these cannot change the outcome
NON_RETRYABLE_REASONS = {REASON_NOT_CONFIGURED, REASON_INVALID_PHONE}


class NotificationDeliveryError(Exception):
    pass


@celery_app.task(bind=True, max_retries=3)
def send_booking_confirmation(self, tenant_id: str, appointment_id: str):
    """
    Send the WhatsApp confirmation for a booked appointment

    Args:
        tenant_id: Owning tenant
        appointment_id: Appointment to confirm
    """
    db = SessionLocal()
    try:
        logger.info(f"Sending booking confirmation for appointment {appointment_id}")

        tenant_uuid = uuid.UUID(tenant_id)
        appointment = db.query(Appointment).filter(
            Appointment.id == uuid.UUID(appointment_id),
            Appointment.tenant_id == tenant_uuid,
            Appointment.deleted_at.is_(None)
        ).first()
        if not appointment:
            logger.warning(f"Appointment {appointment_id} not found, skipping confirmation")
            return {"status": "skipped", "reason": "appointment_not_found"}

        business = db.query(Business).filter(Business.tenant_id == tenant_uuid).first()
        service = db.query(Service).filter(Service.id == appointment.service_id).first()

        notifier = NotificationService()
        result = notifier.notify_booking_confirmed(
            phone=appointment.customer_phone,
            customer_name=appointment.customer_name,
            business_name=business.name,
            service_name=service.name if service else "Servicio",
            start_at=appointment.scheduled_start_at,
            timezone_name=business.timezone,
            config=notifier.resolve_config(db, tenant_uuid),
        )

        if result.sent:
            logger.info(f"Booking confirmation sent for appointment {appointment_id}")
            return {"status": "success", "appointment_id": appointment_id}
        if result.reason in NON_RETRYABLE_REASONS:
            logger.info(f"Booking confirmation not sent for {appointment_id}: {result.reason}")
            return {"status": "skipped", "reason": result.reason}

        raise NotificationDeliveryError(result.reason)

    except NotificationDeliveryError as exc:
        logger.error(f"Failed to send booking confirmation for {appointment_id}: {exc}")

        # Retry with exponential backoff: 1min, 2min, 4min
        raise self.retry(
            exc=exc,
            countdown=60 * (2 ** self.request.retries)
        )
    finally:
        db.close()
