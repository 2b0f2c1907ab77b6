"""
Notification Settings Dashboard Routes
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from slotbook.api.dependencies import AuthContext, get_auth_context, require_manager
from slotbook.config.database import get_db
from slotbook.schemas.business import WhatsAppSettingsUpdateRequest
from slotbook.services.notification.whatsapp_settings_service import WhatsAppSettingsService

router = APIRouter(tags=["dashboard-notifications"])


@router.get("/notifications/whatsapp")
def get_whatsapp_settings(
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db)
):
    return WhatsAppSettingsService.get_settings(db, auth.tenant_id)


@router.patch("/notifications/whatsapp")
def update_whatsapp_settings(
    request: WhatsAppSettingsUpdateRequest,
    auth: AuthContext = Depends(require_manager),
    db: Session = Depends(get_db)
):
    return WhatsAppSettingsService.update_settings(
        db,
        tenant_id=auth.tenant_id,
        enabled=request.enabled,
        phone_number_id=request.phone_number_id,
        api_token=request.api_token,
        clear_api_token=request.clear_api_token,
    )
