import threading
from datetime import date, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from garden_booking.models.generated import AuditLog, Bookings, TimeSlots
from garden_booking.services import booking_ledger
from garden_booking.services.booking_ledger import (
    CustomerInfo,
    cancel_booking,
    create_booking,
    reschedule_booking,
    run_with_busy_retry,
)
from garden_booking.services.booking_reference import validate_booking_reference
from garden_booking.services.errors import (
    BookingCancelled,
    BookingNotFound,
    BookingServiceError,
    CapacityExceeded,
    InvalidBookingRequest,
    PastDate,
    SlotBusy,
    SlotNotFound,
    TargetCapacityExceeded,
)
from garden_booking.services.schedule import build_rules, materialize_range
from garden_booking.services.schedule.usage import get_slot_usage

from conftest import TODAY

WED = date(2025, 7, 2)
FRI = date(2025, 7, 4)


def book(db, customer, config, units=1, day=WED, label="10:00 AM"):
    return create_booking(db, day, label, units, customer, TODAY, config=config)


# ── create ───────────────────────────────────────────────────────────────


def test_create_booking(db, schedule, customer, config):
    booking = book(db, customer, config, units=3)

    assert booking.status == "confirmed"
    assert booking.unit_count == 3
    assert validate_booking_reference(booking.booking_reference)
    assert booking.booking_reference.startswith("BG-20250701-")
    assert booking.cancellation_token

    audit = db.query(AuditLog).filter(AuditLog.booking_id == booking.id).all()
    assert [a.event_type for a in audit] == ["booking_created"]
    assert audit[0].after["unit_count"] == 3
    assert audit[0].actor == "customer"


def test_unit_ceiling(db, schedule, customer, config):
    for _ in range(3):
        book(db, customer, config, units=2)

    with pytest.raises(CapacityExceeded) as exc_info:
        book(db, customer, config, units=1)

    assert exc_info.value.ceiling == "units"
    assert get_slot_usage(db, WED, "10:00 AM").unit_count == 6


def test_booking_ceiling(db, schedule, customer, config):
    for _ in range(4):
        book(db, customer, config, units=1)

    with pytest.raises(CapacityExceeded) as exc_info:
        book(db, customer, config, units=1)

    assert exc_info.value.ceiling == "bookings"
    assert exc_info.value.to_dict()["error"] == "capacity_exceeded"


def test_booking_ceiling_is_checked_first(db, schedule, customer, config):
    for _ in range(3):
        book(db, customer, config, units=1)
    book(db, customer, config, units=3)

    # both ceilings are now full
    with pytest.raises(CapacityExceeded) as exc_info:
        book(db, customer, config, units=1)
    assert exc_info.value.ceiling == "bookings"


def test_past_date_is_rejected(db, schedule, customer, config):
    with pytest.raises(PastDate):
        create_booking(db, WED, "10:00 AM", 1, customer, WED + timedelta(days=1), config=config)


def test_unknown_slot(db, schedule, customer, config):
    with pytest.raises(SlotNotFound):
        book(db, customer, config, label="4:00 PM")
    with pytest.raises(SlotNotFound):
        book(db, customer, config, day=date(2025, 7, 1))


def test_legacy_slot_does_not_accept_bookings(db, schedule, customer, config):
    slot = db.query(TimeSlots).filter_by(date=WED, time_label="10:00 AM").one()
    slot.is_legacy = True
    db.commit()

    with pytest.raises(SlotNotFound):
        book(db, customer, config)


def test_unit_count_bounds(db, schedule, customer, config):
    with pytest.raises(InvalidBookingRequest):
        book(db, customer, config, units=0)
    with pytest.raises(InvalidBookingRequest):
        book(db, customer, config, units=config.max_units_per_booking + 1)


def test_rejected_booking_leaves_no_trace(db, schedule, customer, config):
    book(db, customer, config, units=6)
    with pytest.raises(CapacityExceeded):
        book(db, customer, config, units=1)

    assert db.query(Bookings).count() == 1
    assert db.query(AuditLog).count() == 1


def test_reference_collision_is_regenerated(db, schedule, customer, config, monkeypatch):
    first = book(db, customer, config)
    references = iter([first.booking_reference, "BG-20250701-9999"])
    monkeypatch.setattr(
        booking_ledger,
        "generate_unique_booking_reference",
        lambda session, created_on: next(references),
    )

    second = book(db, customer, config)

    assert second.booking_reference == "BG-20250701-9999"
    assert get_slot_usage(db, WED, "10:00 AM").booking_count == 2
    assert db.query(AuditLog).filter(AuditLog.event_type == "booking_created").count() == 2


def test_reference_collision_twice_propagates(db, schedule, customer, config, monkeypatch):
    taken = book(db, customer, config).booking_reference
    monkeypatch.setattr(
        booking_ledger,
        "generate_unique_booking_reference",
        lambda session, created_on: taken,
    )

    with pytest.raises(IntegrityError):
        book(db, customer, config)
    assert db.query(Bookings).count() == 1


# ── concurrency ──────────────────────────────────────────────────────────


def run_concurrently(session_factory, jobs):
    """
    Run each job(session) in its own thread and session, released together.
    Returns one (kind, value) outcome per job, in job order.
    """
    outcomes = [None] * len(jobs)
    start = threading.Barrier(len(jobs))

    def worker(index, job):
        session = session_factory()
        try:
            start.wait()
            outcomes[index] = ("ok", job(session))
        except BookingServiceError as e:
            outcomes[index] = (e.kind, None)
        finally:
            session.close()

    threads = [threading.Thread(target=worker, args=(i, job)) for i, job in enumerate(jobs)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return outcomes


def test_concurrent_bookings_never_overshoot(session_factory, schedule, customer, config):
    def create(session):
        return create_booking(session, FRI, "2:00 PM", 1, customer, TODAY, config=config).id

    outcomes = run_concurrently(session_factory, [create] * 9)
    kinds = [kind for kind, _ in outcomes]

    assert kinds.count("ok") == 4
    assert kinds.count("capacity_exceeded") == 5

    session = session_factory()
    try:
        usage = get_slot_usage(session, FRI, "2:00 PM")
    finally:
        session.close()
    assert usage.booking_count == 4
    assert usage.unit_count == 4


def test_materialize_dropping_a_label_races_bookings_safely(
    session_factory, schedule, customer, config
):
    morning_only = build_rules(
        operating_weekdays=["wednesday", "friday"],
        season_start=(5, 1),
        season_end=(9, 30),
        slot_labels=["10:00 AM"],
        max_bookings_per_slot=4,
        max_units_per_slot=6,
    )

    for day in (WED, FRI, date(2025, 7, 9), date(2025, 7, 11)):
        def rematerialize(session, day=day):
            materialize_range(session, day, day, morning_only, frozenset(), TODAY)
            session.commit()

        def create(session, day=day):
            return create_booking(session, day, "2:00 PM", 2, customer, TODAY, config=config).id

        rematerialized, (kind, _) = run_concurrently(session_factory, [rematerialize, create])
        assert rematerialized == ("ok", None)

        session = session_factory()
        try:
            slot = session.query(TimeSlots).filter_by(date=day, time_label="2:00 PM").first()
            usage = get_slot_usage(session, day, "2:00 PM")
        finally:
            session.close()

        if kind == "ok":
            # booking won: the slot survives as legacy and keeps the booking
            assert slot is not None and slot.is_legacy
            assert usage.booking_count == 1
        else:
            assert kind == "slot_not_found"
            assert slot is None
            assert usage.booking_count == 0


def test_concurrent_reschedules_never_overshoot_target(session_factory, schedule, customer, config):
    session = session_factory()
    try:
        sources = [(WED, "10:00 AM")] * 4 + [(WED, "2:00 PM")] * 4 + [(FRI, "10:00 AM")]
        booking_ids = [
            book(session, customer, config, day=day, label=label).id for day, label in sources
        ]
    finally:
        session.close()

    jobs = [
        lambda s, booking_id=booking_id: reschedule_booking(
            s, booking_id, FRI, "2:00 PM", TODAY, config=config
        ).id
        for booking_id in booking_ids
    ]
    kinds = [kind for kind, _ in run_concurrently(session_factory, jobs)]

    assert kinds.count("ok") == 4
    assert kinds.count("target_capacity_exceeded") == 5

    session = session_factory()
    try:
        assert get_slot_usage(session, FRI, "2:00 PM").booking_count == 4
        assert session.query(Bookings).filter_by(status="confirmed").count() == 9
    finally:
        session.close()


# ── cancel ───────────────────────────────────────────────────────────────


def test_cancel_frees_capacity(db, schedule, customer, config):
    booking = book(db, customer, config, units=6)

    outcome = cancel_booking(db, booking.id, reason="rain", actor="admin", config=config)

    assert not outcome.already_cancelled
    assert outcome.booking.status == "cancelled"
    assert outcome.booking.cancellation_reason == "rain"
    assert get_slot_usage(db, WED, "10:00 AM").unit_count == 0
    book(db, customer, config, units=6)


def test_cancel_is_idempotent(db, schedule, customer, config):
    booking = book(db, customer, config)
    cancel_booking(db, booking.id, config=config)

    outcome = cancel_booking(db, booking.id, config=config)

    assert outcome.already_cancelled
    events = [a.event_type for a in booking_ledger.booking_history(db, booking.id)]
    assert events == ["booking_created", "booking_cancelled"]


def test_customer_cannot_cancel_past_booking(db, schedule, customer, config):
    booking = book(db, customer, config)

    with pytest.raises(PastDate):
        cancel_booking(db, booking.id, actor="customer", today=WED + timedelta(days=1), config=config)

    # admins can
    outcome = cancel_booking(db, booking.id, actor="admin", config=config)
    assert outcome.booking.status == "cancelled"


def test_cancel_unknown_booking(db, schedule, config):
    with pytest.raises(BookingNotFound):
        cancel_booking(db, 999, config=config)


# ── reschedule ───────────────────────────────────────────────────────────


def test_reschedule_moves_usage(db, schedule, customer, config):
    booking = book(db, customer, config, units=2)
    reference = booking.booking_reference

    moved = reschedule_booking(db, booking.id, FRI, "2:00 PM", TODAY, actor="admin", config=config)

    assert (moved.date, moved.time_label) == (FRI, "2:00 PM")
    assert moved.reschedule_count == 1
    assert moved.booking_reference == reference
    assert get_slot_usage(db, WED, "10:00 AM").booking_count == 0
    assert get_slot_usage(db, FRI, "2:00 PM").unit_count == 2

    audit = booking_ledger.booking_history(db, booking.id)[-1]
    assert audit.event_type == "booking_rescheduled"
    assert audit.before["date"] == WED.isoformat()
    assert audit.after["date"] == FRI.isoformat()


def test_reschedule_to_full_target_keeps_old_slot(db, schedule, customer, config):
    booking = book(db, customer, config, units=2)
    book(db, customer, config, units=5, day=FRI)

    with pytest.raises(TargetCapacityExceeded) as exc_info:
        reschedule_booking(db, booking.id, FRI, "10:00 AM", TODAY, config=config)

    assert exc_info.value.ceiling == "units"
    db.expire_all()
    unchanged = db.get(Bookings, booking.id)
    assert (unchanged.date, unchanged.time_label) == (WED, "10:00 AM")
    assert unchanged.reschedule_count == 0


def test_reschedule_to_same_slot_is_a_noop(db, schedule, customer, config):
    booking = book(db, customer, config)

    same = reschedule_booking(db, booking.id, WED, "10:00 AM", TODAY, config=config)

    assert same.reschedule_count == 0
    assert len(booking_ledger.booking_history(db, booking.id)) == 1


def test_reschedule_cancelled_booking(db, schedule, customer, config):
    booking = book(db, customer, config)
    cancel_booking(db, booking.id, config=config)

    with pytest.raises(BookingCancelled):
        reschedule_booking(db, booking.id, FRI, "10:00 AM", TODAY, config=config)


def test_reschedule_into_the_past(db, schedule, customer, config):
    booking = book(db, customer, config)
    with pytest.raises(PastDate):
        reschedule_booking(db, booking.id, date(2025, 6, 27), "10:00 AM", TODAY, config=config)


def test_customer_cannot_reschedule_past_booking(db, schedule, customer, config):
    booking = book(db, customer, config)
    thursday = WED + timedelta(days=1)

    with pytest.raises(PastDate):
        reschedule_booking(
            db, booking.id, date(2025, 7, 9), "10:00 AM", thursday,
            actor="customer", config=config, enforce_current_date=True,
        )
    db.expire_all()
    assert db.get(Bookings, booking.id).date == WED

    # admins can
    moved = reschedule_booking(
        db, booking.id, date(2025, 7, 9), "10:00 AM", thursday, actor="admin", config=config
    )
    assert moved.date == date(2025, 7, 9)


# ── admin bookkeeping ────────────────────────────────────────────────────


def test_mark_paid_leaves_capacity_alone(db, schedule, customer, config):
    booking = book(db, customer, config, units=3)
    before = get_slot_usage(db, WED, "10:00 AM")

    updated = booking_ledger.set_payment_status(db, booking.id, "paid", actor="staff", config=config)

    assert updated.payment_status == "paid"
    assert get_slot_usage(db, WED, "10:00 AM") == before
    audit = booking_ledger.booking_history(db, booking.id)[-1]
    assert audit.event_type == "payment_status_changed"
    assert audit.actor == "staff"
    assert audit.before["payment_status"] == "pending"
    assert audit.after["payment_status"] == "paid"


def test_payment_status_unchanged_writes_no_audit(db, schedule, customer, config):
    booking = book(db, customer, config)

    booking_ledger.set_payment_status(db, booking.id, "pending", config=config)

    assert len(booking_ledger.booking_history(db, booking.id)) == 1


def test_payment_status_rejects_unknown_values_and_prepaid_bookings(db, schedule, customer, config):
    booking = book(db, customer, config)
    with pytest.raises(InvalidBookingRequest):
        booking_ledger.set_payment_status(db, booking.id, "refunded", config=config)

    card = CustomerInfo(full_name="Bo", email="bo@example.com", payment_method="card")
    prepaid = create_booking(db, WED, "10:00 AM", 1, card, TODAY, config=config)
    with pytest.raises(InvalidBookingRequest):
        booking_ledger.set_payment_status(db, prepaid.id, "paid", config=config)

    with pytest.raises(BookingNotFound):
        booking_ledger.set_payment_status(db, 999, "paid", config=config)


def test_admin_notes_are_trimmed_and_cleared(db, schedule, customer, config):
    booking = book(db, customer, config, units=2)
    before = get_slot_usage(db, WED, "10:00 AM")

    updated = booking_ledger.set_admin_notes(db, booking.id, "  bring wagon  ", config=config)
    assert updated.admin_notes == "bring wagon"
    assert updated.admin_notes_updated_at is not None
    assert updated.notes is None

    cleared = booking_ledger.set_admin_notes(db, booking.id, "   ", config=config)
    assert cleared.admin_notes is None

    assert get_slot_usage(db, WED, "10:00 AM") == before
    events = [a.event_type for a in booking_ledger.booking_history(db, booking.id)]
    assert events == ["booking_created", "admin_notes_updated", "admin_notes_updated"]


def test_admin_notes_length_limit(db, schedule, customer, config):
    booking = book(db, customer, config)

    with pytest.raises(InvalidBookingRequest) as exc_info:
        booking_ledger.set_admin_notes(db, booking.id, "x" * 2001, config=config)

    assert exc_info.value.to_dict()["max_length"] == 2000
    booking_ledger.set_admin_notes(db, booking.id, "x" * 2000, config=config)


# ── retries / lookups ────────────────────────────────────────────────────


def test_busy_retry_gives_up_after_one_retry():
    calls = []

    def always_busy():
        calls.append(1)
        raise SlotBusy("busy")

    with pytest.raises(SlotBusy):
        run_with_busy_retry(always_busy)
    assert len(calls) == 2


def test_busy_retry_returns_second_attempt():
    attempts = iter([SlotBusy("busy"), None])

    def flaky():
        error = next(attempts)
        if error:
            raise error
        return "booked"

    assert run_with_busy_retry(flaky) == "booked"


def test_lookups(db, schedule, customer, config):
    booking = book(db, customer, config)

    assert booking_ledger.get_booking_by_token(db, booking.cancellation_token).id == booking.id
    assert booking_ledger.get_booking_by_reference(db, booking.booking_reference).id == booking.id
    assert [b.id for b in booking_ledger.list_bookings(db, day=WED)] == [booking.id]
    assert booking_ledger.list_bookings(db, status="cancelled") == []

    with pytest.raises(BookingNotFound):
        booking_ledger.get_booking_by_token(db, "nope")


def test_customer_info_defaults():
    info = CustomerInfo(full_name="A", email="a@example.com")
    assert info.payment_method == "pay_on_arrival"
