import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta

import pytest

from helpers import at, make_business, make_service, next_monday, open_mondays, owner_id
from slotbook.config.database import SessionLocal
from slotbook.core.errors import (
    ForbiddenError,
    NotFoundError,
    SlotTakenError,
    ValidationFailedError,
)
from slotbook.models.appointment import Appointment
from slotbook.models.subscription import Subscription
from slotbook.services.appointment.booking_service import BookingService, lane_lock_key
from slotbook.services.business.business_service import BusinessService
from slotbook.utils.time_utils import ensure_utc, utcnow

PHONE = "+54 9 11 5555-1234"


@pytest.fixture
def setup(db):
    business = make_business(db)
    service = make_service(db, business.tenant_id, duration_min=30)
    open_mondays(db, business.tenant_id)
    return business, service, next_monday()


def _book(db, business, service, start_at, key="key-1", **kwargs):
    kwargs.setdefault("now", start_at - timedelta(days=1))
    kwargs.setdefault("customer_phone", PHONE)
    return BookingService.create_booking(
        db,
        tenant_id=business.tenant_id,
        service_id=service.id,
        start_at=start_at,
        customer_name="Juan Perez",
        idempotency_key=key,
        **kwargs,
    )


def test_booking_stores_buffered_footprint(db):
    business = make_business(db)
    service = make_service(db, business.tenant_id, duration_min=30, buffer_before_min=10, buffer_after_min=5)
    open_mondays(db, business.tenant_id, step=5)
    monday = next_monday()

    booking = _book(db, business, service, at(monday, 10))

    appointment = booking.appointment
    assert booking.replayed is False
    assert appointment.status == "confirmed"
    assert ensure_utc(appointment.start_at) == at(monday, 9, 50)
    assert ensure_utc(appointment.end_at) == at(monday, 10, 35)
    assert ensure_utc(appointment.scheduled_start_at) == at(monday, 10)
    assert appointment.staff_user_id == owner_id(db, business.tenant_id)


def test_overlapping_footprint_is_rejected_and_adjacent_is_accepted(db):
    business = make_business(db)
    long_service = make_service(db, business.tenant_id, duration_min=30, buffer_before_min=10, buffer_after_min=5)
    short_service = make_service(db, business.tenant_id, duration_min=10, name="Perfilado")
    open_mondays(db, business.tenant_id, step=5)
    monday = next_monday()

    _book(db, business, long_service, at(monday, 10), key="key-long")

    with pytest.raises(SlotTakenError):
        _book(db, business, short_service, at(monday, 10, 20), key="key-short-1")

    accepted = _book(db, business, short_service, at(monday, 10, 35), key="key-short-2")
    assert ensure_utc(accepted.appointment.start_at) == at(monday, 10, 35)


def test_same_idempotency_key_replays_original(db, setup):
    business, service, monday = setup

    first = _book(db, business, service, at(monday, 11), key="same-key")
    second = _book(db, business, service, at(monday, 11), key="same-key")

    assert second.replayed is True
    assert second.appointment.id == first.appointment.id
    assert db.query(Appointment).count() == 1


def test_reused_key_with_different_payload_is_rejected(db, setup):
    business, service, monday = setup
    _book(db, business, service, at(monday, 11), key="same-key")

    with pytest.raises(ValidationFailedError):
        _book(db, business, service, at(monday, 12), key="same-key")


def test_reused_key_with_different_phone_is_rejected(db, setup):
    business, service, monday = setup
    _book(db, business, service, at(monday, 11), key="same-key")

    with pytest.raises(ValidationFailedError):
        _book(db, business, service, at(monday, 11), key="same-key", customer_phone="+54 9 11 4444-0000")
    assert db.query(Appointment).count() == 1


def test_start_must_be_on_the_slot_grid(db, setup):
    business, service, monday = setup

    with pytest.raises(ValidationFailedError):
        _book(db, business, service, at(monday, 10, 7))
    with pytest.raises(ValidationFailedError):
        _book(db, business, service, at(monday, 20))


def test_past_and_naive_starts_are_rejected(db, setup):
    business, service, monday = setup

    with pytest.raises(ValidationFailedError):
        _book(db, business, service, at(monday, 10), now=at(monday, 10, 30))
    with pytest.raises(ValidationFailedError):
        _book(db, business, service, datetime(monday.year, monday.month, monday.day, 10), now=utcnow())


def test_invalid_customer_data_is_rejected(db, setup):
    business, service, monday = setup

    with pytest.raises(ValidationFailedError):
        _book(db, business, service, at(monday, 10), customer_phone="12ab")
    with pytest.raises(ValidationFailedError):
        _book(db, business, service, at(monday, 10), key="")


def test_unknown_service_is_not_found(db, setup):
    business, _service, monday = setup
    other = make_business(db, slug="otro-negocio")
    foreign_service = make_service(db, other.tenant_id)

    with pytest.raises(NotFoundError):
        _book(db, business, foreign_service, at(monday, 10))


def test_billing_block_applies_to_public_bookings_only(db, setup):
    business, service, monday = setup
    db.add(Subscription(tenant_id=business.tenant_id, status="canceled", created_at=utcnow() + timedelta(hours=1)))
    db.commit()

    with pytest.raises(ForbiddenError):
        _book(db, business, service, at(monday, 10), key="public")

    booking = _book(db, business, service, at(monday, 10), key="dashboard", source="dashboard",
                    enforce_public_gate=False)
    assert booking.appointment.source == "dashboard"


def test_pinned_staff_gets_the_booking(db, setup):
    business, service, monday = setup
    barber = BusinessService.create_staff(db, business.tenant_id, "Zoe Barbera")

    booking = _book(db, business, service, at(monday, 10), staff_user_id=barber.user_id)

    assert booking.appointment.staff_user_id == barber.user_id


def test_unassigned_booking_falls_through_to_next_free_staff(db, setup):
    business, service, monday = setup
    barber = BusinessService.create_staff(db, business.tenant_id, "Zoe Barbera")

    first = _book(db, business, service, at(monday, 10), key="a")
    second = _book(db, business, service, at(monday, 10), key="b")

    assert first.appointment.staff_user_id == owner_id(db, business.tenant_id)
    assert second.appointment.staff_user_id == barber.user_id
    with pytest.raises(SlotTakenError):
        _book(db, business, service, at(monday, 10), key="c")


def test_concurrent_requests_for_one_slot_admit_exactly_one(db, setup):
    business, service, monday = setup
    tenant_id, service_id = business.tenant_id, service.id
    start_at = at(monday, 15)
    db.close()

    attempts = 5
    barrier = threading.Barrier(attempts)

    def attempt(i):
        session = SessionLocal()
        try:
            barrier.wait()
            BookingService.create_booking(
                session,
                tenant_id=tenant_id,
                service_id=service_id,
                start_at=start_at,
                customer_name=f"Cliente {i}",
                customer_phone=f"+54 9 11 5555-000{i}",
                idempotency_key=f"race-{i}",
                now=start_at - timedelta(days=1),
            )
            return "booked"
        except SlotTakenError:
            return "taken"
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=attempts) as pool:
        outcomes = list(pool.map(attempt, range(attempts)))

    assert outcomes.count("booked") == 1
    assert outcomes.count("taken") == attempts - 1
    assert db.query(Appointment).filter(Appointment.status == "confirmed").count() == 1


def test_customer_cancel_requires_matching_phone(db, setup):
    business, service, monday = setup
    booking = _book(db, business, service, at(monday, 10))

    with pytest.raises(ForbiddenError):
        BookingService.cancel_booking(
            db, business.tenant_id, appointment_id=booking.appointment.id, customer_phone="+54 9 11 4444-0000"
        )

    canceled = BookingService.cancel_booking(
        db, business.tenant_id, appointment_id=booking.appointment.id, customer_phone="5491155551234",
        reason="No puedo ir",
    )
    assert canceled.status == "canceled"
    assert canceled.canceled_at is not None
    assert canceled.cancellation_reason == "No puedo ir"


def test_customer_can_find_booking_by_scheduled_start(db, setup):
    business, service, monday = setup
    _book(db, business, service, at(monday, 10))

    canceled = BookingService.cancel_booking(
        db, business.tenant_id, scheduled_start_at=at(monday, 10), customer_phone=PHONE
    )

    assert canceled.status == "canceled"


def test_customers_sharing_an_instant_each_find_their_own_booking(db, setup):
    business, service, monday = setup
    BusinessService.create_staff(db, business.tenant_id, "Zoe Barbera")
    other_phone = "+54 9 11 4444-0000"
    first = _book(db, business, service, at(monday, 10), key="a").appointment
    second = _book(db, business, service, at(monday, 10), key="b", customer_phone=other_phone).appointment
    first_id, second_id = first.id, second.id

    canceled = BookingService.cancel_booking(
        db, business.tenant_id, scheduled_start_at=at(monday, 10), customer_phone="5491144440000"
    )
    assert canceled.id == second_id

    moved = BookingService.reschedule_booking(
        db, business.tenant_id, scheduled_start_at=at(monday, 10), new_start_at=at(monday, 12),
        customer_phone=PHONE, now=at(monday - timedelta(days=1), 12),
    )
    assert moved.id == first_id
    assert ensure_utc(moved.scheduled_start_at) == at(monday, 12)

    with pytest.raises(ForbiddenError):
        BookingService.cancel_booking(
            db, business.tenant_id, scheduled_start_at=at(monday, 12), customer_phone=other_phone
        )


def test_canceled_row_does_not_shadow_a_new_booking_at_the_same_start(db, setup):
    business, service, monday = setup
    old = _book(db, business, service, at(monday, 10), key="a").appointment
    BookingService.cancel_booking(db, business.tenant_id, appointment_id=old.id, customer_phone=PHONE)
    rebooked = _book(db, business, service, at(monday, 10), key="b").appointment
    rebooked_id = rebooked.id

    canceled = BookingService.cancel_booking(
        db, business.tenant_id, scheduled_start_at=at(monday, 10), customer_phone=PHONE
    )

    assert canceled.id == rebooked_id
    assert canceled.status == "canceled"


def test_terminal_states_cannot_transition(db, setup):
    business, service, monday = setup
    canceled = _book(db, business, service, at(monday, 10), key="a").appointment
    no_show = _book(db, business, service, at(monday, 11), key="b").appointment

    BookingService.cancel_booking(db, business.tenant_id, appointment_id=canceled.id, by_customer=False)
    BookingService.mark_no_show(db, business.tenant_id, no_show.id)

    with pytest.raises(ValidationFailedError):
        BookingService.cancel_booking(db, business.tenant_id, appointment_id=canceled.id, by_customer=False)
    with pytest.raises(ValidationFailedError):
        BookingService.mark_no_show(db, business.tenant_id, canceled.id)
    with pytest.raises(ValidationFailedError):
        BookingService.reschedule_booking(
            db, business.tenant_id, appointment_id=no_show.id, new_start_at=at(monday, 12),
            by_customer=False, now=at(monday - timedelta(days=1), 12),
        )


def test_reschedule_moves_footprint_and_frees_old_slot(db, setup):
    business, service, monday = setup
    booking = _book(db, business, service, at(monday, 10))

    moved = BookingService.reschedule_booking(
        db, business.tenant_id, appointment_id=booking.appointment.id, new_start_at=at(monday, 10, 15),
        customer_phone=PHONE, now=at(monday - timedelta(days=1), 12),
    )

    assert ensure_utc(moved.scheduled_start_at) == at(monday, 10, 15)
    assert ensure_utc(moved.end_at) == at(monday, 10, 45)

    other = _book(db, business, service, at(monday, 9, 45), key="b")
    assert other.appointment.staff_user_id == moved.staff_user_id


def test_reschedule_collision_leaves_original_untouched(db, setup):
    business, service, monday = setup
    _book(db, business, service, at(monday, 10), key="a")
    second = _book(db, business, service, at(monday, 11), key="b").appointment
    second_id = second.id

    with pytest.raises(SlotTakenError):
        BookingService.reschedule_booking(
            db, business.tenant_id, appointment_id=second_id, new_start_at=at(monday, 10, 15),
            by_customer=False, now=at(monday - timedelta(days=1), 12),
        )

    reloaded = db.query(Appointment).filter(Appointment.id == second_id).one()
    assert reloaded.status == "confirmed"
    assert ensure_utc(reloaded.scheduled_start_at) == at(monday, 11)


def test_other_tenants_cannot_touch_appointment(db, setup):
    business, service, monday = setup
    booking = _book(db, business, service, at(monday, 10))
    other = make_business(db, slug="otro-negocio")

    with pytest.raises(NotFoundError):
        BookingService.cancel_booking(db, other.tenant_id, appointment_id=booking.appointment.id, by_customer=False)


def test_lane_lock_keys_are_stable_signed_64_bit():
    day = next_monday()
    key = lane_lock_key("tenant-a", "staff-1", day)

    assert key == lane_lock_key("tenant-a", "staff-1", day)
    assert key != lane_lock_key("tenant-a", "staff-2", day)
    assert key != lane_lock_key("tenant-a", None, day)
    assert key != lane_lock_key("tenant-a", "staff-1", day + timedelta(days=1))
    assert -(2 ** 63) <= key < 2 ** 63
