from datetime import date

from garden_booking.services.booking_reference import (
    extract_date_from_reference,
    generate_booking_reference,
    validate_booking_reference,
)


def test_reference_format():
    reference = generate_booking_reference(date(2025, 7, 1))
    assert reference.startswith("BG-20250701-")
    assert len(reference) == len("BG-20250701-0000")
    assert validate_booking_reference(reference)


def test_validate_rejects_malformed():
    assert not validate_booking_reference("BG-2025071-1234")
    assert not validate_booking_reference("XX-20250701-1234")
    assert not validate_booking_reference("")
    assert not validate_booking_reference(None)


def test_extract_date():
    assert extract_date_from_reference("BG-20250701-0042") == date(2025, 7, 1)
    assert extract_date_from_reference("BG-20251340-0042") is None
    assert extract_date_from_reference("garbage") is None
