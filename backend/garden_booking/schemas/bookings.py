# backend/garden_booking/schemas/bookings.py

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class BookingCreate(BaseModel):
    date: date
    time_label: str
    unit_count: int = Field(ge=1)

    full_name: str = Field(min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    notes: Optional[str] = None

    total_amount: Optional[Decimal] = None
    payment_method: str = "pay_on_arrival"


class BookingCancel(BaseModel):
    """Customer cancellation, identified by the token from the confirmation."""
    cancellation_token: str
    reason: Optional[str] = None


class BookingReschedule(BaseModel):
    cancellation_token: str
    new_date: date
    new_time_label: str
    reason: Optional[str] = None


class AdminBookingCancel(BaseModel):
    reason: Optional[str] = None
    actor: str = "admin"


class AdminBookingReschedule(BaseModel):
    new_date: date
    new_time_label: str
    reason: Optional[str] = None
    actor: str = "admin"


class PaymentStatusUpdate(BaseModel):
    """Only "pay_on_arrival" bookings can be marked paid / pending."""
    status: str
    actor: str = "admin"


class AdminNotesUpdate(BaseModel):
    notes: Optional[str] = None
    actor: str = "admin"


class BookingPublic(BaseModel):
    """Customer-facing view: no cancellation token."""
    id: int
    booking_reference: str

    date: date
    time_label: str
    unit_count: int
    status: str

    full_name: str
    total_amount: Optional[Decimal] = None
    payment_method: str
    payment_status: str

    reschedule_count: int = 0
    created_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BookingConfirmation(BookingPublic):
    """Returned once, right after booking: carries the token for the email link."""
    cancellation_token: str


class BookingRead(BookingPublic):
    """Admin view."""
    email: str
    phone: Optional[str] = None
    notes: Optional[str] = None
    admin_notes: Optional[str] = None
    admin_notes_updated_at: Optional[datetime] = None

    cancellation_reason: Optional[str] = None
    updated_at: Optional[datetime] = None


class CancelResponse(BaseModel):
    booking: BookingPublic
    already_cancelled: bool


class AdminCancelResponse(BaseModel):
    booking: BookingRead
    already_cancelled: bool
