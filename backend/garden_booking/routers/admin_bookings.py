# backend/garden_booking/routers/admin_bookings.py
# Admin booking management: bookings identified by id, past bookings allowed.

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..redis_client import redis_client
from ..schemas.audit_log import AuditLogRead
from ..schemas.bookings import (
    AdminBookingCancel,
    AdminBookingReschedule,
    AdminCancelResponse,
    AdminNotesUpdate,
    BookingRead,
    PaymentStatusUpdate,
)
from ..services import booking_ledger
from ..services.booking_ledger import run_with_busy_retry
from ..services.events import emit_event
from ..services.schedule import business_today, invalidate_availability_cache

router = APIRouter(prefix="/admin/bookings", tags=["admin"])


@router.get("/", response_model=list[BookingRead])
def list_bookings(
    target_date: Optional[date] = None,
    status: Optional[str] = None,
    date_from: Optional[date] = None,
    limit: int = 200,
    db: Session = Depends(get_db),
):
    """
    Filters:
    - target_date (exact day)
    - status (confirmed / cancelled)
    - date_from (inclusive)
    """
    return booking_ledger.list_bookings(
        db, day=target_date, status=status, date_from=date_from, limit=limit
    )


@router.get("/{id}", response_model=BookingRead)
def get_booking(id: int, db: Session = Depends(get_db)):
    return booking_ledger.get_booking(db, id)


@router.get("/{id}/history", response_model=list[AuditLogRead])
def get_booking_history(id: int, db: Session = Depends(get_db)):
    return booking_ledger.booking_history(db, id)


@router.post("/{id}/cancel", response_model=AdminCancelResponse)
def cancel_booking(
    id: int,
    data: AdminBookingCancel | None = None,
    db: Session = Depends(get_db),
):
    data = data or AdminBookingCancel()
    outcome = run_with_busy_retry(
        booking_ledger.cancel_booking,
        db,
        id,
        reason=data.reason,
        actor=data.actor,
    )

    if not outcome.already_cancelled:
        invalidate_availability_cache(redis_client)
        emit_event("booking_cancelled", {"booking_id": id, "by": data.actor})

    return AdminCancelResponse(
        booking=BookingRead.model_validate(outcome.booking),
        already_cancelled=outcome.already_cancelled,
    )


@router.post("/{id}/reschedule", response_model=BookingRead)
def reschedule_booking(
    id: int,
    data: AdminBookingReschedule,
    db: Session = Depends(get_db),
):
    booking = booking_ledger.get_booking(db, id)
    old_slot = (booking.date, booking.time_label)

    booking = run_with_busy_retry(
        booking_ledger.reschedule_booking,
        db,
        id,
        data.new_date,
        data.new_time_label,
        business_today(),
        actor=data.actor,
        reason=data.reason,
    )

    if (booking.date, booking.time_label) != old_slot:
        invalidate_availability_cache(redis_client)
        emit_event("booking_rescheduled", {
            "booking_id": id,
            "old_date": old_slot[0].isoformat(),
            "old_time_label": old_slot[1],
            "by": data.actor,
        })

    return booking


@router.post("/{id}/payment-status", response_model=BookingRead)
def set_payment_status(
    id: int,
    data: PaymentStatusUpdate,
    db: Session = Depends(get_db),
):
    """Bookkeeping only: slot usage and availability are unaffected."""
    booking = run_with_busy_retry(
        booking_ledger.set_payment_status,
        db,
        id,
        data.status,
        actor=data.actor,
    )
    emit_event("booking_payment_status_changed", {
        "booking_id": id,
        "payment_status": booking.payment_status,
        "by": data.actor,
    })
    return booking


@router.post("/{id}/notes", response_model=BookingRead)
def set_admin_notes(
    id: int,
    data: AdminNotesUpdate,
    db: Session = Depends(get_db),
):
    return run_with_busy_retry(
        booking_ledger.set_admin_notes,
        db,
        id,
        data.notes,
        actor=data.actor,
    )
