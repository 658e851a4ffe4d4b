# backend/garden_booking/routers/bookings.py
"""
Customer booking endpoints.

Bookings are created with POST /bookings and afterwards identified by the
cancellation token (emailed to the customer) or by the booking reference.
Every committed transition emits an event and drops the availability cache.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..redis_client import redis_client
from ..schemas.bookings import (
    BookingCancel,
    BookingConfirmation,
    BookingCreate,
    BookingPublic,
    BookingReschedule,
    CancelResponse,
)
from ..services import booking_ledger
from ..services.booking_ledger import CustomerInfo, run_with_busy_retry
from ..services.events import emit_event
from ..services.schedule import business_today, invalidate_availability_cache

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("/", response_model=BookingConfirmation, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: BookingCreate,
    db: Session = Depends(get_db),
):
    customer = CustomerInfo(
        full_name=data.full_name,
        email=data.email,
        phone=data.phone,
        notes=data.notes,
        total_amount=data.total_amount,
        payment_method=data.payment_method,
    )
    booking = run_with_busy_retry(
        booking_ledger.create_booking,
        db,
        data.date,
        data.time_label,
        data.unit_count,
        customer,
        business_today(),
        actor="customer",
    )

    invalidate_availability_cache(redis_client)
    emit_event("booking_created", {"booking_id": booking.id})
    return booking


@router.get("/by-token/{token}", response_model=BookingPublic)
def get_booking_by_token(token: str, db: Session = Depends(get_db)):
    return booking_ledger.get_booking_by_token(db, token)


@router.get("/by-reference/{reference}", response_model=BookingPublic)
def get_booking_by_reference(reference: str, db: Session = Depends(get_db)):
    return booking_ledger.get_booking_by_reference(db, reference)


@router.post("/cancel", response_model=CancelResponse)
def cancel_booking(
    data: BookingCancel,
    db: Session = Depends(get_db),
):
    booking = booking_ledger.get_booking_by_token(db, data.cancellation_token)
    outcome = run_with_busy_retry(
        booking_ledger.cancel_booking,
        db,
        booking.id,
        reason=data.reason,
        actor="customer",
        today=business_today(),
    )

    if not outcome.already_cancelled:
        invalidate_availability_cache(redis_client)
        emit_event("booking_cancelled", {"booking_id": outcome.booking.id})

    return CancelResponse(
        booking=BookingPublic.model_validate(outcome.booking),
        already_cancelled=outcome.already_cancelled,
    )


@router.post("/reschedule", response_model=BookingPublic)
def reschedule_booking(
    data: BookingReschedule,
    db: Session = Depends(get_db),
):
    booking = booking_ledger.get_booking_by_token(db, data.cancellation_token)
    old_slot = (booking.date, booking.time_label)

    booking = run_with_busy_retry(
        booking_ledger.reschedule_booking,
        db,
        booking.id,
        data.new_date,
        data.new_time_label,
        business_today(),
        actor="customer",
        reason=data.reason,
        enforce_current_date=True,
    )

    if (booking.date, booking.time_label) != old_slot:
        invalidate_availability_cache(redis_client)
        emit_event("booking_rescheduled", {
            "booking_id": booking.id,
            "old_date": old_slot[0].isoformat(),
            "old_time_label": old_slot[1],
        })

    return booking
