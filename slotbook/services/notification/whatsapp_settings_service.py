# slotbook/services/notification/whatsapp_settings_service.py
"""Per-tenant WhatsApp credentials"""
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.core.errors import StorageError
from slotbook.models.whatsapp_settings import BusinessWhatsAppSettings
from slotbook.services.business.business_service import TenantScope

logger = logging.getLogger(__name__)

EMPTY_SETTINGS = {"enabled": False, "phone_number_id": "", "has_api_token": False}


class WhatsAppSettingsService:

    @staticmethod
    def get_settings(db: Session, tenant_id) -> dict:
        row = TenantScope(db, tenant_id).query(BusinessWhatsAppSettings).first()
        return row.to_dict() if row else dict(EMPTY_SETTINGS)

    @staticmethod
    def update_settings(
            db: Session,
            tenant_id,
            enabled: bool,
            phone_number_id: Optional[str] = None,
            api_token: Optional[str] = None,
            clear_api_token: bool = False,
    ) -> dict:
        """Upsert; the stored token is kept unless a new one is given or it is cleared"""
        scope = TenantScope(db, tenant_id)
        row = scope.query(BusinessWhatsAppSettings).first()
        if row is None:
            row = scope.add(BusinessWhatsAppSettings())

        row.enabled = enabled
        row.phone_number_id = phone_number_id or ""
        if clear_api_token:
            row.api_token = None
        elif api_token:
            row.api_token = api_token

        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to save WhatsApp settings for tenant {scope.tenant_id}")
            raise StorageError("Could not save WhatsApp settings") from e

        db.refresh(row)
        logger.info(f"WhatsApp settings updated for tenant {scope.tenant_id} (enabled={enabled})")
        return row.to_dict()
