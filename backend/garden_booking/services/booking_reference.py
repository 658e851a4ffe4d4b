# backend/garden_booking/services/booking_reference.py
"""
Booking reference codes: BG-YYYYMMDD-XXXX

- date part is the booking *creation* date, so a reference never changes
  when the visit is rescheduled
- 4-digit random suffix, uniqueness checked against the bookings table
"""

import re
import secrets
from datetime import date

from sqlalchemy.orm import Session

from ..models.generated import Bookings

REFERENCE_PREFIX = "BG"
_REFERENCE_RE = re.compile(r"^BG-(\d{4})(\d{2})(\d{2})-\d{4}$")


def generate_booking_reference(created_on: date) -> str:
    suffix = secrets.randbelow(10000)
    return f"{REFERENCE_PREFIX}-{created_on.strftime('%Y%m%d')}-{suffix:04d}"


def generate_unique_booking_reference(
    db: Session,
    created_on: date,
    max_attempts: int = 10,
) -> str:
    """Raises RuntimeError if no free reference was found in `max_attempts`."""
    for _ in range(max_attempts):
        reference = generate_booking_reference(created_on)
        exists = (
            db.query(Bookings.id)
            .filter(Bookings.booking_reference == reference)
            .first()
        )
        if exists is None:
            return reference

    raise RuntimeError(
        f"Failed to generate unique booking reference after {max_attempts} "
        f"attempts for {created_on.isoformat()}"
    )


def validate_booking_reference(reference: str) -> bool:
    return bool(_REFERENCE_RE.match(reference or ""))


def extract_date_from_reference(reference: str) -> date | None:
    match = _REFERENCE_RE.match(reference or "")
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None
