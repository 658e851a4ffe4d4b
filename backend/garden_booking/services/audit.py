"""
Append-only audit trail.

Rows are added inside the caller's transaction and never updated, so an
audit entry exists iff the transition it describes was committed.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from ..models.generated import AuditLog


def record_audit(
    db: Session,
    event_type: str,
    booking_id: int | None = None,
    actor: str | None = None,
    before: dict | None = None,
    after: dict | None = None,
    reason: str | None = None,
) -> AuditLog:
    entry = AuditLog(
        event_type=event_type,
        booking_id=booking_id,
        actor=actor,
        before=_jsonable(before),
        after=_jsonable(after),
        reason=reason,
    )
    db.add(entry)
    return entry


def _jsonable(value):
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value
