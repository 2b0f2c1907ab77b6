"""Factories and time helpers shared by the test modules"""
from datetime import date, datetime, time, timedelta, timezone

from slotbook.api.dependencies import create_access_token
from slotbook.services.availability.availability_service import AvailabilityService
from slotbook.services.business.business_service import BusinessService
from slotbook.services.business.catalog_service import CatalogService

MONDAY = 1  # day_of_week is Sunday-first


def next_monday(weeks_ahead: int = 1) -> date:
    today = datetime.now(timezone.utc).date()
    days = (7 - today.weekday()) % 7 or 7
    return today + timedelta(days=days + 7 * (weeks_ahead - 1))


def at(day: date, hour: int, minute: int = 0, tz=timezone.utc) -> datetime:
    return datetime.combine(day, time(hour, minute), tzinfo=tz)


def auth_headers(tenant_id, user_id, role: str = "owner") -> dict:
    token = create_access_token({
        "sub": str(user_id),
        "tenant_id": str(tenant_id),
        "role": role,
    })
    return {"Authorization": f"Bearer {token}"}


def make_business(db, slug: str = "barberia-test", timezone_name: str = "UTC"):
    return BusinessService.create_business(
        db,
        business_name="Barberia Test",
        owner_name="Ana Duena",
        owner_email=f"owner@{slug}.test",
        slug=slug,
        timezone_name=timezone_name,
    )


def owner_id(db, tenant_id):
    return BusinessService.list_staff(db, tenant_id)[0].user_id


def make_service(db, tenant_id, duration_min: int = 30, name: str = "Corte", **extra):
    return CatalogService.create_service(db, tenant_id, {"name": name, "duration_min": duration_min, **extra})


def open_mondays(db, tenant_id, start: str = "09:00", end: str = "18:00", step: int = 15, staff_user_id=None):
    return AvailabilityService.create_rule(
        db,
        tenant_id,
        day_of_week=MONDAY,
        start_local=start,
        end_local=end,
        slot_step_min=step,
        staff_user_id=staff_user_id,
    )
