"""
Business Management Dashboard Routes
Bearer-authenticated endpoints for the tenant profile and its staff
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from slotbook.api.dependencies import AuthContext, get_auth_context, require_manager
from slotbook.config.database import get_db
from slotbook.schemas.business import BusinessUpdateRequest, StaffCreateRequest
from slotbook.services.billing.subscription_service import SubscriptionService
from slotbook.services.business.business_service import BusinessService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["dashboard-business"])


# ============================================================================
# Business profile
# ============================================================================

@router.get("")
def get_business(
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db)
):
    business = BusinessService.get_business(db, auth.tenant_id)
    decision = SubscriptionService.get_access_decision(db, auth.tenant_id)
    return {
        **business.to_dict(),
        "subscription_status": decision.status,
        "effective_access": decision.effective_access.value,
    }


@router.patch("")
def update_business(
    request: BusinessUpdateRequest,
    auth: AuthContext = Depends(require_manager),
    db: Session = Depends(get_db)
):
    business = BusinessService.update_business(db, auth.tenant_id, request.model_dump(exclude_none=True))
    return business.to_dict()


# ============================================================================
# Staff
# ============================================================================

@router.get("/staff")
def list_staff(
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db)
):
    staff = BusinessService.list_staff(db, auth.tenant_id)
    return {"staff": [BusinessService.staff_to_dict(m) for m in staff]}


@router.post("/staff", status_code=201)
def create_staff(
    request: StaffCreateRequest,
    auth: AuthContext = Depends(require_manager),
    db: Session = Depends(get_db)
):
    membership = BusinessService.create_staff(db, auth.tenant_id, request.full_name)
    return BusinessService.staff_to_dict(membership)
