# backend/garden_booking/schemas/audit_log.py

from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel


class AuditLogRead(BaseModel):
    id: int
    event_type: str

    booking_id: Optional[int] = None
    actor: Optional[str] = None

    before: Optional[dict[str, Any]] = None
    after: Optional[dict[str, Any]] = None
    reason: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
