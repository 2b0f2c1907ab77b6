# slotbook/services/business/catalog_service.py
"""Service catalog (bookable services) with soft delete"""
import logging
import uuid
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.core.errors import NotFoundError, StorageError, ValidationFailedError
from slotbook.models.service import Service
from slotbook.services.business.business_service import TenantScope
from slotbook.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "name",
    "duration_min",
    "buffer_before_min",
    "buffer_after_min",
    "price_amount_cents",
    "price_currency",
    "is_active",
)


class CatalogService:

    @staticmethod
    def list_services(db: Session, tenant_id, active_only: bool = False) -> List[Service]:
        query = TenantScope(db, tenant_id).query(Service).filter(Service.deleted_at.is_(None))
        if active_only:
            return query.filter(Service.is_active.is_(True)).order_by(Service.name.asc()).all()
        return query.order_by(Service.is_active.desc(), Service.name.asc()).all()

    @staticmethod
    def get_service(db: Session, tenant_id, service_id) -> Service:
        try:
            service_uuid = service_id if isinstance(service_id, uuid.UUID) else uuid.UUID(str(service_id))
        except ValueError as e:
            raise NotFoundError("Service not found") from e

        service = TenantScope(db, tenant_id).query(Service).filter(
            Service.id == service_uuid,
            Service.deleted_at.is_(None)
        ).first()
        if not service:
            raise NotFoundError("Service not found")
        return service

    @staticmethod
    def create_service(db: Session, tenant_id, data: dict) -> Service:
        scope = TenantScope(db, tenant_id)
        service = scope.add(Service(
            name=data["name"],
            duration_min=data["duration_min"],
            buffer_before_min=data.get("buffer_before_min", 0),
            buffer_after_min=data.get("buffer_after_min", 0),
            price_amount_cents=data.get("price_amount_cents", 0),
            price_currency=data.get("price_currency", "ARS").upper(),
            is_active=data.get("is_active", True),
        ))
        CatalogService._commit(db, service, "create service")
        logger.info(f"Created service {service.id}: {service.name}")
        return service

    @staticmethod
    def update_service(db: Session, tenant_id, service_id, changes: dict) -> Service:
        fields = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS and v is not None}
        if not fields:
            raise ValidationFailedError("No fields to update")

        service = CatalogService.get_service(db, tenant_id, service_id)
        if "price_currency" in fields:
            fields["price_currency"] = fields["price_currency"].upper()
        for key, value in fields.items():
            setattr(service, key, value)

        CatalogService._commit(db, service, "update service")
        logger.info(f"Updated service {service.id}: {sorted(fields)}")
        return service

    @staticmethod
    def delete_service(db: Session, tenant_id, service_id) -> None:
        """Soft delete; existing appointments keep their service reference"""
        service = CatalogService.get_service(db, tenant_id, service_id)
        service.deleted_at = utcnow()
        service.is_active = False
        CatalogService._commit(db, service, "delete service")
        logger.info(f"Soft-deleted service {service.id}")

    @staticmethod
    def _commit(db: Session, service: Service, action: str) -> None:
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to {action}: {e}", exc_info=True)
            raise StorageError(f"Could not {action}") from e
        db.refresh(service)
