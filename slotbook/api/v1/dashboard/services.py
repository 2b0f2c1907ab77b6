# slotbook/api/v1/dashboard/services.py
"""
Service Management API Endpoints
Handles CRUD operations for the bookable service catalog
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from uuid import UUID
import logging

from slotbook.api.dependencies import AuthContext, get_auth_context, require_manager
from slotbook.config.database import get_db
from slotbook.schemas.business import ServiceCreateRequest, ServiceUpdateRequest
from slotbook.services.business.catalog_service import CatalogService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["dashboard-services"])


@router.get("/services")
def list_services(
        auth: AuthContext = Depends(get_auth_context),
        db: Session = Depends(get_db)
):
    services = CatalogService.list_services(db, auth.tenant_id)
    return {"services": [s.to_dict() for s in services]}


@router.post("/services", status_code=201)
def create_service(
        request: ServiceCreateRequest,
        auth: AuthContext = Depends(require_manager),
        db: Session = Depends(get_db)
):
    service = CatalogService.create_service(db, auth.tenant_id, request.model_dump())
    return service.to_dict()


@router.patch("/services/{service_id}")
def update_service(
        service_id: UUID,
        request: ServiceUpdateRequest,
        auth: AuthContext = Depends(require_manager),
        db: Session = Depends(get_db)
):
    service = CatalogService.update_service(db, auth.tenant_id, service_id, request.model_dump(exclude_none=True))
    return service.to_dict()


@router.delete("/services/{service_id}")
def delete_service(
        service_id: UUID,
        auth: AuthContext = Depends(require_manager),
        db: Session = Depends(get_db)
):
    """Soft delete: the service disappears from listings and slots"""
    CatalogService.delete_service(db, auth.tenant_id, service_id)
    return {"ok": True}
