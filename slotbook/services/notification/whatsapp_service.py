# slotbook/services/notification/whatsapp_service.py
"""Best-effort WhatsApp booking confirmations (Meta Cloud API or Twilio)"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import httpx
import requests
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from slotbook.config.settings import Settings, get_settings
from slotbook.models.whatsapp_settings import BusinessWhatsAppSettings
from slotbook.utils.text_processing import normalize_phone
from slotbook.utils.time_utils import ensure_utc, get_zone

logger = logging.getLogger(__name__)

REASON_NOT_CONFIGURED = "whatsapp_not_configured"
REASON_INVALID_PHONE = "invalid_phone"
REASON_SEND_FAILED = "whatsapp_send_failed"
REASON_QUEUED = "queued"


@dataclass
class NotificationResult:
    sent: bool
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {"sent": self.sent, "reason": self.reason}


@dataclass
class WhatsAppConfig:
    enabled: bool
    provider: str
    api_token: Optional[str] = None
    phone_number_id: Optional[str] = None

    def is_usable(self, settings: Settings) -> bool:
        if not self.enabled:
            return False
        if self.provider == "twilio":
            return bool(settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN and settings.TWILIO_WHATSAPP_FROM)
        return bool(self.api_token and self.phone_number_id)


def build_confirmation_text(customer_name: str, business_name: str, service_name: str,
                            start_at: datetime, timezone_name: str) -> str:
    local = ensure_utc(start_at).astimezone(get_zone(timezone_name))
    when = local.strftime("%d/%m/%y %H:%M")
    return (
        f"Hola {customer_name}, tu turno esta confirmado.\n"
        f"Negocio: {business_name}\n"
        f"Servicio: {service_name}\n"
        f"Fecha y hora: {when} ({timezone_name})\n"
        f"Gracias por reservar."
    )


class NotificationService:
    """Sends booking confirmations; never raises on delivery problems"""

    def __init__(self, http_client: Optional[httpx.Client] = None, settings: Optional[Settings] = None,
                 twilio_client: Optional[Client] = None):
        self.settings = settings or get_settings()
        self.http_client = http_client
        self.twilio_client = twilio_client

    def resolve_config(self, db: Optional[Session] = None, tenant_id=None) -> WhatsAppConfig:
        """Tenant settings win field by field; environment fills the gaps"""
        config = WhatsAppConfig(
            enabled=self.settings.WHATSAPP_ENABLED,
            provider=self.settings.WHATSAPP_PROVIDER,
            api_token=self.settings.WHATSAPP_API_TOKEN,
            phone_number_id=self.settings.WHATSAPP_PHONE_NUMBER_ID,
        )
        if db is None or tenant_id is None:
            return config

        try:
            row = db.query(BusinessWhatsAppSettings).filter(
                BusinessWhatsAppSettings.tenant_id == tenant_id
            ).first()
        except SQLAlchemyError as e:
            # Tenant overrides are optional; a failed read falls back to the environment
            db.rollback()
            logger.error(f"Could not load WhatsApp settings for tenant {tenant_id}: {e}")
            return config
        if row:
            config.enabled = bool(row.enabled)
            config.api_token = row.api_token or config.api_token
            config.phone_number_id = row.phone_number_id or config.phone_number_id
        return config

    def notify_booking_confirmed(
            self,
            phone: str,
            customer_name: str,
            business_name: str,
            service_name: str,
            start_at: datetime,
            timezone_name: str,
            config: Optional[WhatsAppConfig] = None,
    ) -> NotificationResult:
        config = config or self.resolve_config()
        if not config.is_usable(self.settings):
            return NotificationResult(sent=False, reason=REASON_NOT_CONFIGURED)

        to = normalize_phone(phone)
        if not to:
            return NotificationResult(sent=False, reason=REASON_INVALID_PHONE)

        body = build_confirmation_text(customer_name, business_name, service_name, start_at, timezone_name)

        if config.provider == "twilio":
            return self._send_via_twilio(to, body)
        return self._send_via_meta(config, to, body)

    def _send_via_meta(self, config: WhatsAppConfig, to: str, body: str) -> NotificationResult:
        url = f"{self.settings.WHATSAPP_API_BASE_URL.rstrip('/')}/{config.phone_number_id}/messages"
        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": body},
        }
        headers = {"Authorization": f"Bearer {config.api_token}"}

        try:
            if self.http_client is not None:
                response = self.http_client.post(url, json=payload, headers=headers)
            else:
                with httpx.Client(timeout=self.settings.NOTIFICATION_TIMEOUT_SECONDS) as client:
                    response = client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"WhatsApp send to {to} failed: {e}")
            return NotificationResult(sent=False, reason=REASON_SEND_FAILED)

        if response.is_error:
            logger.warning(f"WhatsApp provider rejected message to {to}: {response.status_code}")
            return NotificationResult(sent=False, reason=f"provider_error:{response.status_code}:{response.text}")

        logger.info(f"WhatsApp confirmation sent to {to}")
        return NotificationResult(sent=True)

    def _send_via_twilio(self, to: str, body: str) -> NotificationResult:
        try:
            client = self.twilio_client or Client(self.settings.TWILIO_ACCOUNT_SID, self.settings.TWILIO_AUTH_TOKEN)
            message = client.messages.create(
                body=body,
                from_=f"whatsapp:{self.settings.TWILIO_WHATSAPP_FROM}",
                to=f"whatsapp:+{to}",
            )
        except (TwilioException, requests.exceptions.RequestException) as e:
            logger.error(f"Twilio WhatsApp send to {to} failed: {e}")
            return NotificationResult(sent=False, reason=REASON_SEND_FAILED)

        logger.info(f"WhatsApp confirmation sent via Twilio to {to}: {message.sid}")
        return NotificationResult(sent=True)

    def dispatch_booking_confirmation(self, db: Session, booking) -> NotificationResult:
        """
        Fire the confirmation for a fresh booking.

        With NOTIFICATIONS_VIA_WORKER the send is handed to Celery and the
        result only says it was queued.
        """
        appointment, business, service = booking.appointment, booking.business, booking.service

        if self.settings.NOTIFICATIONS_VIA_WORKER:
            from slotbook.tasks.notification_tasks import send_booking_confirmation

            try:
                send_booking_confirmation.delay(str(business.tenant_id), str(appointment.id))
            except Exception as e:
                # Broker outages must not fail a committed booking
                logger.error(f"Could not queue confirmation for appointment {appointment.id}: {e}")
                return NotificationResult(sent=False, reason=REASON_SEND_FAILED)
            return NotificationResult(sent=False, reason=REASON_QUEUED)

        config = self.resolve_config(db, business.tenant_id)
        return self.notify_booking_confirmed(
            phone=appointment.customer_phone,
            customer_name=appointment.customer_name,
            business_name=business.name,
            service_name=service.name if service else "Servicio",
            start_at=appointment.scheduled_start_at,
            timezone_name=business.timezone,
            config=config,
        )
