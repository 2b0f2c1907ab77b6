from datetime import timedelta

import pytest

from helpers import at, make_business, make_service, next_monday, open_mondays, owner_id
from slotbook.core.errors import ForbiddenError, NotFoundError, ValidationFailedError
from slotbook.models.subscription import Subscription
from slotbook.services.appointment.booking_service import BookingService
from slotbook.services.availability.availability_service import AvailabilityService
from slotbook.services.availability.slot_service import SlotService
from slotbook.services.business.business_service import BusinessService
from slotbook.services.business.catalog_service import CatalogService
from slotbook.utils.time_utils import utcnow


def _slots(db, service, day, **kwargs):
    kwargs.setdefault("now", at(day - timedelta(days=1), 12))
    return SlotService.get_slots(db, "barberia-test", day, day, service.id, **kwargs)


def _starts(result):
    return [slot.start_at.strftime("%H:%M") for slot in result.slots]


def _book(db, business, service, start_at, key, **kwargs):
    return BookingService.create_booking(
        db,
        tenant_id=business.tenant_id,
        service_id=service.id,
        start_at=start_at,
        customer_name="Juan Perez",
        customer_phone="+54 9 11 5555-1234",
        idempotency_key=key,
        now=start_at - timedelta(days=1),
        **kwargs,
    )


def test_weekly_rule_round_trip(db):
    business = make_business(db)
    service = make_service(db, business.tenant_id, duration_min=30)
    open_mondays(db, business.tenant_id, "09:00", "18:00", step=15)
    monday = next_monday()

    result = _slots(db, service, monday)

    starts = _starts(result)
    assert starts[0] == "09:00"
    assert starts[1] == "09:15"
    assert starts[-1] == "17:30"
    assert len(starts) == 35
    assert result.timezone == "UTC"
    assert all(s.end_at - s.start_at == timedelta(minutes=30) for s in result.slots)
    assert {s.staff_user_id for s in result.slots} == {owner_id(db, business.tenant_id)}


def test_no_slots_on_days_without_rules(db):
    business = make_business(db)
    service = make_service(db, business.tenant_id)
    open_mondays(db, business.tenant_id)
    tuesday = next_monday() + timedelta(days=1)

    assert _slots(db, service, tuesday).slots == []


def test_slots_are_converted_from_local_time(db):
    business = make_business(db, timezone_name="America/Argentina/Buenos_Aires")
    service = make_service(db, business.tenant_id)
    open_mondays(db, business.tenant_id, "09:00", "12:00")
    monday = next_monday()

    result = _slots(db, service, monday)

    first = result.slots[0]
    assert first.start_at == at(monday, 12)
    assert first.local_start.strftime("%H:%M") == "09:00"
    assert first.local_start.utcoffset() == timedelta(hours=-3)
    assert result.timezone == "America/Argentina/Buenos_Aires"


def test_higher_priority_block_beats_special_opening(db):
    business = make_business(db)
    service = make_service(db, business.tenant_id)
    open_mondays(db, business.tenant_id)
    monday = next_monday()

    AvailabilityService.create_exception(db, business.tenant_id, monday, "open_special", "12:00", "15:00", priority=100)
    AvailabilityService.create_exception(db, business.tenant_id, monday, "manual_block", "13:00", "14:00", priority=200)

    starts = _starts(_slots(db, service, monday))
    assert "12:30" in starts
    assert "13:00" not in starts
    assert "13:30" not in starts
    assert "14:00" in starts


def test_higher_priority_special_opening_beats_block(db):
    business = make_business(db)
    service = make_service(db, business.tenant_id)
    open_mondays(db, business.tenant_id)
    monday = next_monday()

    AvailabilityService.create_exception(db, business.tenant_id, monday, "open_special", "12:00", "15:00", priority=200)
    AvailabilityService.create_exception(db, business.tenant_id, monday, "manual_block", "13:00", "14:00", priority=100)

    starts = _starts(_slots(db, service, monday))
    assert "13:00" in starts
    assert "13:30" in starts


def test_full_day_closure_wins_over_everything(db):
    business = make_business(db)
    service = make_service(db, business.tenant_id)
    open_mondays(db, business.tenant_id)
    monday = next_monday()

    AvailabilityService.create_exception(db, business.tenant_id, monday, "closed_full_day", priority=1)
    AvailabilityService.create_exception(db, business.tenant_id, monday, "open_special", "08:00", "20:00", priority=1000)

    assert _slots(db, service, monday).slots == []


def test_special_opening_on_closed_day_uses_default_step(db):
    business = make_business(db)
    service = make_service(db, business.tenant_id)
    sunday = next_monday() - timedelta(days=1)

    AvailabilityService.create_exception(db, business.tenant_id, sunday, "open_special", "10:00", "11:00")

    assert _starts(_slots(db, service, sunday)) == ["10:00", "10:15", "10:30"]


def test_confirmed_appointment_blocks_buffered_footprint_until_canceled(db):
    business = make_business(db)
    service = make_service(db, business.tenant_id, duration_min=30, buffer_before_min=10, buffer_after_min=5)
    open_mondays(db, business.tenant_id, step=5)
    monday = next_monday()

    booking = _book(db, business, service, at(monday, 10), "key-block")

    starts = _starts(_slots(db, service, monday))
    # Footprint [09:50, 10:35); a candidate's own footprint starts 10 minutes early
    assert "09:15" in starts
    assert "09:20" not in starts
    assert "10:40" not in starts
    assert "10:45" in starts

    BookingService.cancel_booking(
        db, business.tenant_id, appointment_id=booking.appointment.id, by_customer=False
    )

    assert "10:00" in _starts(_slots(db, service, monday))


def test_unassigned_instants_take_first_free_staff(db):
    business = make_business(db)
    owner = owner_id(db, business.tenant_id)
    barber = BusinessService.create_staff(db, business.tenant_id, "Zoe Barbera")
    service = make_service(db, business.tenant_id)
    open_mondays(db, business.tenant_id)
    monday = next_monday()

    booked = _book(db, business, service, at(monday, 10), "key-owner")
    assert booked.appointment.staff_user_id == owner

    by_start = {s.start_at: s.staff_user_id for s in _slots(db, service, monday).slots}
    assert by_start[at(monday, 9, 30)] == owner
    assert by_start[at(monday, 9, 45)] == barber.user_id
    assert by_start[at(monday, 10)] == barber.user_id
    assert by_start[at(monday, 10, 30)] == owner
    assert len(by_start) == 35


def test_staff_specific_rules_apply_only_to_that_lane(db):
    business = make_business(db)
    barber = BusinessService.create_staff(db, business.tenant_id, "Zoe Barbera")
    service = make_service(db, business.tenant_id)
    open_mondays(db, business.tenant_id, "14:00", "16:00", staff_user_id=barber.user_id)
    monday = next_monday()

    pinned = _slots(db, service, monday, staff_user_id=barber.user_id)
    assert _starts(pinned)[0] == "14:00"
    assert {s.staff_user_id for s in pinned.slots} == {barber.user_id}

    owner_only = _slots(db, service, monday, staff_user_id=owner_id(db, business.tenant_id))
    assert owner_only.slots == []


def test_pinned_staff_must_belong_to_business(db):
    business = make_business(db)
    service = make_service(db, business.tenant_id)
    other = make_business(db, slug="otro-negocio")
    monday = next_monday()

    with pytest.raises(NotFoundError):
        _slots(db, service, monday, staff_user_id=owner_id(db, other.tenant_id))


def test_past_instants_are_not_offered(db):
    business = make_business(db)
    service = make_service(db, business.tenant_id)
    open_mondays(db, business.tenant_id)
    monday = next_monday()

    result = _slots(db, service, monday, now=at(monday, 12))

    assert _starts(result)[0] == "12:15"


def test_limit_truncates_in_order(db):
    business = make_business(db)
    service = make_service(db, business.tenant_id)
    open_mondays(db, business.tenant_id)
    monday = next_monday()

    result = SlotService.get_slots(
        db, "barberia-test", monday, monday + timedelta(days=7), service.id,
        limit=5, now=at(monday - timedelta(days=1), 12),
    )

    assert _starts(result) == ["09:00", "09:15", "09:30", "09:45", "10:00"]


def test_rule_validity_window_is_respected(db):
    business = make_business(db)
    service = make_service(db, business.tenant_id)
    monday = next_monday()
    AvailabilityService.create_rule(
        db, business.tenant_id, day_of_week=1, start_local="09:00", end_local="12:00",
        valid_from=monday + timedelta(days=7),
    )

    assert _slots(db, service, monday).slots == []
    assert _slots(db, service, monday + timedelta(days=7)).slots


def test_invalid_ranges_are_rejected(db):
    business = make_business(db)
    service = make_service(db, business.tenant_id)
    monday = next_monday()

    with pytest.raises(ValidationFailedError):
        SlotService.get_slots(db, "barberia-test", monday, monday - timedelta(days=1), service.id)
    with pytest.raises(ValidationFailedError):
        SlotService.get_slots(db, "barberia-test", monday, monday + timedelta(days=63), service.id)
    with pytest.raises(ValidationFailedError):
        SlotService.get_slots(db, "barberia-test", monday, monday, service.id, limit=0)


def test_unknown_slug_and_inactive_service_are_not_found(db):
    business = make_business(db)
    service = make_service(db, business.tenant_id)
    monday = next_monday()

    with pytest.raises(NotFoundError):
        SlotService.get_slots(db, "no-existe", monday, monday, service.id)

    CatalogService.update_service(db, business.tenant_id, service.id, {"is_active": False})
    with pytest.raises(NotFoundError):
        _slots(db, service, monday)


def test_public_booking_disabled_is_forbidden(db):
    business = make_business(db)
    service = make_service(db, business.tenant_id)
    BusinessService.update_business(db, business.tenant_id, {"public_booking_enabled": False})

    with pytest.raises(ForbiddenError):
        _slots(db, service, next_monday())


def test_billing_block_returns_empty_slots(db):
    business = make_business(db, timezone_name="America/Argentina/Buenos_Aires")
    service = make_service(db, business.tenant_id)
    open_mondays(db, business.tenant_id)
    db.add(Subscription(
        tenant_id=business.tenant_id,
        status="blocked",
        created_at=utcnow() + timedelta(hours=1),
    ))
    db.commit()

    result = _slots(db, service, next_monday())

    assert result.slots == []
    assert result.timezone == "UTC"
