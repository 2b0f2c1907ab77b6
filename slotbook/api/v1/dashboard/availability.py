"""
Availability Dashboard Routes
Weekly rules and dated exceptions
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date
from typing import Optional
from uuid import UUID
import logging

from slotbook.api.dependencies import AuthContext, get_auth_context, require_manager
from slotbook.config.database import get_db
from slotbook.schemas.business import ExceptionCreateRequest, RuleCreateRequest
from slotbook.services.availability.availability_service import AvailabilityService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["dashboard-availability"])


@router.get("/availability-rules")
def list_rules(
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db)
):
    rules = AvailabilityService.list_rules(db, auth.tenant_id)
    return {"rules": [r.to_dict() for r in rules]}


@router.post("/availability-rules", status_code=201)
def create_rule(
    request: RuleCreateRequest,
    auth: AuthContext = Depends(require_manager),
    db: Session = Depends(get_db)
):
    rule = AvailabilityService.create_rule(
        db,
        tenant_id=auth.tenant_id,
        day_of_week=request.day_of_week,
        start_local=request.start_local,
        end_local=request.end_local,
        slot_step_min=request.slot_step_min,
        staff_user_id=request.staff_user_id,
        valid_from=request.valid_from,
        valid_to=request.valid_to,
    )
    return rule.to_dict()


@router.post("/availability-rules/{rule_id}/deactivate")
def deactivate_rule(
    rule_id: UUID,
    auth: AuthContext = Depends(require_manager),
    db: Session = Depends(get_db)
):
    rule = AvailabilityService.deactivate_rule(db, auth.tenant_id, rule_id)
    return rule.to_dict()


@router.get("/availability-exceptions")
def list_exceptions(
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db)
):
    exceptions = AvailabilityService.list_exceptions(db, auth.tenant_id, date_from, date_to)
    return {"exceptions": [e.to_dict() for e in exceptions]}


@router.post("/availability-exceptions", status_code=201)
def create_exception(
    request: ExceptionCreateRequest,
    auth: AuthContext = Depends(require_manager),
    db: Session = Depends(get_db)
):
    exception = AvailabilityService.create_exception(
        db,
        tenant_id=auth.tenant_id,
        exception_date=request.exception_date,
        kind=request.kind,
        start_local=request.start_local,
        end_local=request.end_local,
        reason=request.reason,
        priority=request.priority,
        staff_user_id=request.staff_user_id,
    )
    return exception.to_dict()
