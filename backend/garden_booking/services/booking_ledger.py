# backend/garden_booking/services/booking_ledger.py
"""
Booking ledger: create / cancel / reschedule, plus admin bookkeeping
(payment status, staff notes) that never touches capacity.

State machine:
  confirmed → cancelled   (terminal)
  confirmed → confirmed   (reschedule, old date/time kept in the audit log)

Capacity check + write run as one transaction holding the target slot's
row lock (SELECT ... FOR UPDATE on PostgreSQL, BEGIN IMMEDIATE on SQLite),
so concurrent requests for one slot are serialized and can never jointly
overshoot max_bookings or max_units. Different slots book in parallel.

Usage is always re-read under the lock; nothing is cached across the check.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ..models.generated import AuditLog, Bookings, TimeSlots
from .audit import record_audit
from .booking_reference import generate_unique_booking_reference
from .errors import (
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
from .schedule.config import BookingConfig, get_booking_config
from .schedule.usage import CANCELLED, CONFIRMED, get_slot_usage

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE for lock_timeout expiry
_PG_LOCK_NOT_AVAILABLE = "55P03"


@dataclass
class CustomerInfo:
    full_name: str
    email: str
    phone: str | None = None
    notes: str | None = None
    total_amount: Decimal | None = None
    payment_method: str = "pay_on_arrival"


@dataclass
class CancelOutcome:
    booking: Bookings
    already_cancelled: bool


def booking_snapshot(booking: Bookings) -> dict:
    return {
        "id": booking.id,
        "booking_reference": booking.booking_reference,
        "date": booking.date,
        "time_label": booking.time_label,
        "unit_count": booking.unit_count,
        "status": booking.status,
        "payment_status": booking.payment_status,
        "cancellation_reason": booking.cancellation_reason,
    }


# ── Transitions ──────────────────────────────────────────────────────────


def create_booking(
    db: Session,
    day: date,
    time_label: str,
    unit_count: int,
    customer: CustomerInfo,
    today: date,
    actor: str = "customer",
    now: datetime | None = None,
    config: BookingConfig | None = None,
) -> Bookings:
    """
    Book `unit_count` units on slot (day, time_label).

    Raises:
        PastDate, InvalidBookingRequest, SlotNotFound (missing or legacy slot),
        CapacityExceeded (ceiling="bookings" | "units"), SlotBusy
    """
    config = config or get_booking_config()
    now = now or datetime.now(timezone.utc)

    if day < today:
        raise PastDate("Cannot book for past dates.", date=day.isoformat())
    if unit_count < 1 or unit_count > config.max_units_per_booking:
        raise InvalidBookingRequest(
            f"Number of units must be between 1 and {config.max_units_per_booking}."
        )

    try:
        slot = _lock_slot(db, day, time_label, config)
        _check_capacity(db, slot, unit_count, CapacityExceeded)

        booking = Bookings(
            date=day,
            time_label=time_label,
            unit_count=unit_count,
            status=CONFIRMED,
            full_name=customer.full_name,
            email=customer.email,
            phone=customer.phone,
            notes=customer.notes,
            total_amount=customer.total_amount,
            payment_method=customer.payment_method,
            payment_status="pending",
            reschedule_count=0,
            created_at=now,
            updated_at=now,
        )
        _insert_booking(db, booking, today)

        record_audit(
            db,
            "booking_created",
            booking_id=booking.id,
            actor=actor,
            after=booking_snapshot(booking),
        )
        booking_id, reference = booking.id, booking.booking_reference
        db.commit()
    except OperationalError as e:
        db.rollback()
        if _is_lock_timeout(e):
            raise SlotBusy(
                "This time slot is busy, please try again.",
                date=day.isoformat(),
                time_label=time_label,
            ) from e
        raise
    except BookingServiceError as e:
        db.rollback()
        if isinstance(e, CapacityExceeded):
            logger.info(f"Booking rejected for {day} {time_label}: {e.ceiling} ceiling reached")
        raise
    except Exception:
        db.rollback()
        raise

    logger.info(
        f"Booking created: id={booking_id} ref={reference} "
        f"slot={day} {time_label} units={unit_count} by={actor}"
    )
    return booking


def cancel_booking(
    db: Session,
    booking_id: int,
    reason: str | None = None,
    actor: str = "admin",
    today: date | None = None,
    now: datetime | None = None,
    config: BookingConfig | None = None,
) -> CancelOutcome:
    """
    Cancel a confirmed booking. Cancelling twice is not an error:
    the second call returns already_cancelled=True and changes nothing.

    `today` is given on the customer path only: customers cannot cancel
    visits that already took place; admins can.
    """
    config = config or get_booking_config()
    now = now or datetime.now(timezone.utc)

    try:
        booking = _lock_booking(db, booking_id, config)

        if booking.status == CANCELLED:
            db.rollback()
            return CancelOutcome(booking=booking, already_cancelled=True)

        if today is not None and booking.date < today:
            raise PastDate("Cannot cancel bookings for past dates.", date=booking.date.isoformat())

        before = booking_snapshot(booking)
        booking.status = CANCELLED
        booking.cancellation_reason = reason
        booking.cancelled_at = now
        booking.updated_at = now

        record_audit(
            db,
            "booking_cancelled",
            booking_id=booking.id,
            actor=actor,
            before=before,
            after=booking_snapshot(booking),
            reason=reason,
        )
        db.commit()
    except OperationalError as e:
        db.rollback()
        if _is_lock_timeout(e):
            raise SlotBusy("This booking is being updated, please try again.") from e
        raise
    except Exception:
        db.rollback()
        raise

    logger.info(f"Booking cancelled: id={booking_id} by={actor}")
    return CancelOutcome(booking=booking, already_cancelled=False)


def reschedule_booking(
    db: Session,
    booking_id: int,
    new_day: date,
    new_label: str,
    today: date,
    actor: str = "admin",
    reason: str | None = None,
    now: datetime | None = None,
    config: BookingConfig | None = None,
    enforce_current_date: bool = False,
) -> Bookings:
    """
    Move a confirmed booking to another slot, atomically.

    The old slot is released and the new one checked under its row lock in
    the same transaction; on any failure the booking keeps its old slot.

    `enforce_current_date` is set on the customer path: a visit dated before
    `today` can no longer be moved by the customer; admins can move it.

    Raises:
        PastDate, BookingNotFound, BookingCancelled, SlotNotFound,
        TargetCapacityExceeded (ceiling="bookings" | "units"), SlotBusy
    """
    config = config or get_booking_config()
    now = now or datetime.now(timezone.utc)

    if new_day < today:
        raise PastDate("Cannot reschedule to past dates.", date=new_day.isoformat())

    try:
        booking = _lock_booking(db, booking_id, config)
        if booking.status == CANCELLED:
            raise BookingCancelled("Cannot reschedule cancelled booking.")

        if enforce_current_date and booking.date < today:
            raise PastDate(
                "Cannot reschedule bookings for past dates.",
                date=booking.date.isoformat(),
            )

        if booking.date == new_day and booking.time_label == new_label:
            db.rollback()
            return booking

        slot = _lock_slot(db, new_day, new_label, config, timeout_set=True)
        _check_capacity(db, slot, booking.unit_count, TargetCapacityExceeded)

        before = booking_snapshot(booking)
        booking.date = new_day
        booking.time_label = new_label
        booking.reschedule_count = (booking.reschedule_count or 0) + 1
        booking.updated_at = now

        record_audit(
            db,
            "booking_rescheduled",
            booking_id=booking.id,
            actor=actor,
            before=before,
            after=booking_snapshot(booking),
            reason=reason,
        )
        old_slot = (before["date"], before["time_label"])
        db.commit()
    except OperationalError as e:
        db.rollback()
        if _is_lock_timeout(e):
            raise SlotBusy(
                "This time slot is busy, please try again.",
                date=new_day.isoformat(),
                time_label=new_label,
            ) from e
        raise
    except Exception:
        db.rollback()
        raise

    logger.info(
        f"Booking rescheduled: id={booking_id} "
        f"{old_slot[0]} {old_slot[1]} → {new_day} {new_label} by={actor}"
    )
    return booking


# ── Admin bookkeeping (no capacity effect) ───────────────────────────────

PAYMENT_STATUSES = ("pending", "paid")
PAY_ON_ARRIVAL = "pay_on_arrival"
ADMIN_NOTES_MAX_LENGTH = 2000


def set_payment_status(
    db: Session,
    booking_id: int,
    payment_status: str,
    actor: str = "admin",
    now: datetime | None = None,
    config: BookingConfig | None = None,
) -> Bookings:
    """
    Mark a pay-on-arrival booking as paid / pending.

    Setting the current status again changes nothing and writes no audit row.
    """
    if payment_status not in PAYMENT_STATUSES:
        raise InvalidBookingRequest(
            f"Invalid payment status {payment_status!r}.",
            allowed=list(PAYMENT_STATUSES),
        )
    config = config or get_booking_config()
    now = now or datetime.now(timezone.utc)

    try:
        booking = _lock_booking(db, booking_id, config)

        if booking.payment_method != PAY_ON_ARRIVAL:
            raise InvalidBookingRequest(
                'Payment status can only be modified for "pay on arrival" bookings.'
            )
        if booking.payment_status == payment_status:
            db.rollback()
            return booking

        before = booking_snapshot(booking)
        booking.payment_status = payment_status
        booking.updated_at = now

        record_audit(
            db,
            "payment_status_changed",
            booking_id=booking.id,
            actor=actor,
            before=before,
            after=booking_snapshot(booking),
        )
        db.commit()
    except OperationalError as e:
        db.rollback()
        if _is_lock_timeout(e):
            raise SlotBusy("This booking is being updated, please try again.") from e
        raise
    except Exception:
        db.rollback()
        raise

    logger.info(f"Payment status of booking {booking_id} set to {payment_status} by={actor}")
    return booking


def set_admin_notes(
    db: Session,
    booking_id: int,
    notes: str | None,
    actor: str = "admin",
    now: datetime | None = None,
    config: BookingConfig | None = None,
) -> Bookings:
    """Replace the staff notes on a booking; empty text clears them."""
    cleaned = notes.strip() if notes else ""
    if len(cleaned) > ADMIN_NOTES_MAX_LENGTH:
        raise InvalidBookingRequest(
            f"Notes cannot exceed {ADMIN_NOTES_MAX_LENGTH} characters.",
            current_length=len(cleaned),
            max_length=ADMIN_NOTES_MAX_LENGTH,
        )
    config = config or get_booking_config()
    now = now or datetime.now(timezone.utc)

    try:
        booking = _lock_booking(db, booking_id, config)

        previous = booking.admin_notes
        booking.admin_notes = cleaned or None
        booking.admin_notes_updated_at = now
        booking.updated_at = now

        record_audit(
            db,
            "admin_notes_updated",
            booking_id=booking.id,
            actor=actor,
            before={"admin_notes": previous},
            after={"admin_notes": booking.admin_notes},
        )
        db.commit()
    except OperationalError as e:
        db.rollback()
        if _is_lock_timeout(e):
            raise SlotBusy("This booking is being updated, please try again.") from e
        raise
    except Exception:
        db.rollback()
        raise

    logger.info(f"Notes of booking {booking_id} updated by={actor}")
    return booking


def run_with_busy_retry(operation, *args, retries: int = 1, **kwargs):
    """Call a ledger operation, retrying up to `retries` times on SlotBusy."""
    attempt = 0
    while True:
        try:
            return operation(*args, **kwargs)
        except SlotBusy:
            if attempt >= retries:
                raise
            attempt += 1
            logger.info(f"{operation.__name__}: slot busy, retry {attempt}/{retries}")


# ── Lookups ──────────────────────────────────────────────────────────────


def get_booking(db: Session, booking_id: int) -> Bookings:
    booking = db.get(Bookings, booking_id)
    if booking is None:
        raise BookingNotFound("Booking not found.", booking_id=booking_id)
    return booking


def get_booking_by_token(db: Session, token: str) -> Bookings:
    booking = db.query(Bookings).filter(Bookings.cancellation_token == token).first()
    if booking is None:
        raise BookingNotFound("Booking not found.")
    return booking


def get_booking_by_reference(db: Session, reference: str) -> Bookings:
    booking = db.query(Bookings).filter(Bookings.booking_reference == reference).first()
    if booking is None:
        raise BookingNotFound("Booking not found.", booking_reference=reference)
    return booking


def list_bookings(
    db: Session,
    day: date | None = None,
    status: str | None = None,
    date_from: date | None = None,
    limit: int = 200,
) -> list[Bookings]:
    q = db.query(Bookings)
    if day is not None:
        q = q.filter(Bookings.date == day)
    if date_from is not None:
        q = q.filter(Bookings.date >= date_from)
    if status:
        q = q.filter(Bookings.status == status)
    return (
        q.order_by(Bookings.date, Bookings.time_label, Bookings.id)
        .limit(min(limit, 1000))
        .all()
    )


def booking_history(db: Session, booking_id: int) -> list[AuditLog]:
    get_booking(db, booking_id)
    return (
        db.query(AuditLog)
        .filter(AuditLog.booking_id == booking_id)
        .order_by(AuditLog.id)
        .all()
    )


# ── Helpers ──────────────────────────────────────────────────────────────


def _insert_booking(db: Session, booking: Bookings, created_on: date, attempts: int = 2) -> None:
    """
    Insert with a fresh reference and token. Bookings on other slots are not
    serialized with this one, so a reference picked concurrently can still
    collide on the unique index; the insert then runs once more in a savepoint.
    """
    for attempt in range(1, attempts + 1):
        booking.booking_reference = generate_unique_booking_reference(db, created_on)
        booking.cancellation_token = str(uuid.uuid4())
        try:
            with db.begin_nested():
                db.add(booking)
                db.flush()
            return
        except IntegrityError:
            if attempt == attempts:
                raise
            logger.warning(
                f"Booking reference {booking.booking_reference} taken, regenerating"
            )


def _set_lock_timeout(db: Session, config: BookingConfig) -> None:
    """Bound row-lock waits on PostgreSQL (SQLite uses the connect timeout)."""
    if db.get_bind().dialect.name == "postgresql":
        db.execute(text(f"SET LOCAL lock_timeout = '{config.lock_timeout_ms}ms'"))


def _lock_slot(
    db: Session,
    day: date,
    time_label: str,
    config: BookingConfig,
    timeout_set: bool = False,
) -> TimeSlots:
    if not timeout_set:
        _set_lock_timeout(db, config)

    slot = (
        db.query(TimeSlots)
        .filter(TimeSlots.date == day, TimeSlots.time_label == time_label)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if slot is None:
        raise SlotNotFound(
            "Selected time slot is not available.",
            date=day.isoformat(),
            time_label=time_label,
        )
    if slot.is_legacy:
        raise SlotNotFound(
            "Selected time slot is no longer offered.",
            date=day.isoformat(),
            time_label=time_label,
        )
    return slot


def _lock_booking(db: Session, booking_id: int, config: BookingConfig) -> Bookings:
    _set_lock_timeout(db, config)
    booking = (
        db.query(Bookings)
        .filter(Bookings.id == booking_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if booking is None:
        raise BookingNotFound("Booking not found.", booking_id=booking_id)
    return booking


def _check_capacity(
    db: Session,
    slot: TimeSlots,
    unit_count: int,
    error_cls: type[CapacityExceeded],
) -> None:
    """Both ceilings, against usage read under the slot lock. Bookings first."""
    usage = get_slot_usage(db, slot.date, slot.time_label)

    if usage.booking_count + 1 > slot.max_bookings:
        raise error_cls(
            "bookings",
            f"Maximum bookings reached for this time slot. "
            f"Only {slot.max_bookings} bookings allowed per slot.",
            max_bookings=slot.max_bookings,
            booking_count=usage.booking_count,
        )

    if usage.unit_count + unit_count > slot.max_units:
        remaining = max(slot.max_units - usage.unit_count, 0)
        raise error_cls(
            "units",
            f"Not enough capacity remaining. Only {remaining} available, "
            f"but {unit_count} requested.",
            max_units=slot.max_units,
            remaining_units=remaining,
        )


def _is_lock_timeout(exc: OperationalError) -> bool:
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == _PG_LOCK_NOT_AVAILABLE:
        return True
    return "database is locked" in str(orig or exc).lower()
