# slotbook/models/whatsapp_settings.py
"""Per-tenant WhatsApp credentials overriding the environment defaults"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from slotbook.models.base import Base


class BusinessWhatsAppSettings(Base):
    __tablename__ = "business_whatsapp_settings"

    tenant_id = Column(UUID(as_uuid=True), ForeignKey("businesses.tenant_id"), primary_key=True)
    enabled = Column(Boolean, nullable=False, default=False)
    phone_number_id = Column(String(120), nullable=True)
    api_token = Column(String(500), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        # The token itself is never echoed back
        return {
            "enabled": bool(self.enabled),
            "phone_number_id": self.phone_number_id or "",
            "has_api_token": bool(self.api_token),
        }
