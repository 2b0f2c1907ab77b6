from datetime import date, datetime, timedelta, timezone

import pytest

from helpers import make_business, next_monday, open_mondays
from slotbook.core.errors import NotFoundError, ValidationFailedError
from slotbook.services.availability import availability_service
from slotbook.services.availability.availability_service import AvailabilityService
from slotbook.services.business.business_service import BusinessService


def _version(db, tenant_id):
    db.expire_all()
    return BusinessService.get_business(db, tenant_id).schedule_version


def test_schedule_writes_bump_version(db):
    business = make_business(db)
    assert _version(db, business.tenant_id) == 0

    rule = open_mondays(db, business.tenant_id)
    assert _version(db, business.tenant_id) == 1

    AvailabilityService.create_exception(db, business.tenant_id, next_monday(), "closed_full_day")
    assert _version(db, business.tenant_id) == 2

    AvailabilityService.deactivate_rule(db, business.tenant_id, rule.id)
    assert _version(db, business.tenant_id) == 3
    assert AvailabilityService.list_rules(db, business.tenant_id) == []


@pytest.mark.parametrize("kwargs", [
    {"day_of_week": 7},
    {"slot_step_min": 4},
    {"slot_step_min": 61},
    {"start_local": "18:00", "end_local": "09:00"},
    {"start_local": "9:00"},
    {"end_local": "24:30"},
])
def test_invalid_rules_are_rejected(db, kwargs):
    business = make_business(db)
    params = {"day_of_week": 1, "start_local": "09:00", "end_local": "18:00", "slot_step_min": 15, **kwargs}

    with pytest.raises(ValidationFailedError):
        AvailabilityService.create_rule(db, business.tenant_id, **params)


def test_rule_may_end_at_midnight(db):
    business = make_business(db)

    rule = AvailabilityService.create_rule(db, business.tenant_id, 5, "20:00", "24:00")

    assert rule.end_local == "24:00"
    assert rule.valid_from is not None


def test_rule_staff_must_belong_to_tenant(db):
    business = make_business(db)
    other = make_business(db, slug="otro-negocio")
    stranger = BusinessService.list_staff(db, other.tenant_id)[0].user_id

    with pytest.raises(ValidationFailedError):
        open_mondays(db, business.tenant_id, staff_user_id=stranger)


def test_full_day_exception_drops_times(db):
    business = make_business(db)

    exception = AvailabilityService.create_exception(
        db, business.tenant_id, next_monday(), "closed_full_day", "10:00", "12:00", reason="Feriado"
    )

    assert exception.start_local is None
    assert exception.end_local is None


def test_partial_exceptions_need_times(db):
    business = make_business(db)

    with pytest.raises(ValidationFailedError):
        AvailabilityService.create_exception(db, business.tenant_id, next_monday(), "manual_block")
    with pytest.raises(ValidationFailedError):
        AvailabilityService.create_exception(db, business.tenant_id, next_monday(), "vacation", "10:00", "11:00")
    with pytest.raises(ValidationFailedError):
        AvailabilityService.create_exception(
            db, business.tenant_id, next_monday(), "manual_block", "10:00", "11:00", priority=0
        )


def test_exceptions_list_in_date_then_priority_order(db):
    business = make_business(db)
    monday = next_monday()
    AvailabilityService.create_exception(db, business.tenant_id, monday + timedelta(days=1), "closed_full_day")
    AvailabilityService.create_exception(db, business.tenant_id, monday, "manual_block", "10:00", "11:00", priority=50)
    AvailabilityService.create_exception(db, business.tenant_id, monday, "open_special", "19:00", "20:00", priority=300)

    listed = AvailabilityService.list_exceptions(db, business.tenant_id, monday, monday + timedelta(days=7))

    assert [(e.exception_date, e.priority) for e in listed] == [
        (monday, 300),
        (monday, 50),
        (monday + timedelta(days=1), 100),
    ]


def test_deactivating_unknown_rule_is_not_found(db):
    business = make_business(db)

    with pytest.raises(NotFoundError):
        AvailabilityService.deactivate_rule(db, business.tenant_id, "not-a-uuid")


def test_exception_listing_defaults_to_tenant_today(db, monkeypatch):
    # 12:00 UTC on Jan 1 is already Jan 2 on Kiritimati (UTC+14)
    monkeypatch.setattr(availability_service, "utcnow", lambda: datetime(2030, 1, 1, 12, tzinfo=timezone.utc))
    business = make_business(db, timezone_name="Pacific/Kiritimati")
    AvailabilityService.create_exception(db, business.tenant_id, date(2030, 1, 1), "closed_full_day", reason="Ayer")
    AvailabilityService.create_exception(db, business.tenant_id, date(2030, 1, 2), "closed_full_day", reason="Hoy")

    listed = AvailabilityService.list_exceptions(db, business.tenant_id)

    assert [e.reason for e in listed] == ["Hoy"]
