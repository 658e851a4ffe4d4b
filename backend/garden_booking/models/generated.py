from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


class ScheduleRules(Base):
    """Singleton recurrence rule set (id = 1), edited by the admin surface."""

    __tablename__ = 'schedule_rules'

    id = Column(Integer, primary_key=True)
    operating_weekdays = Column(JSON, nullable=False, default=list)
    season_start_month = Column(Integer, nullable=False)
    season_start_day = Column(Integer, nullable=False)
    season_end_month = Column(Integer, nullable=False)
    season_end_day = Column(Integer, nullable=False)
    slot_labels = Column(JSON, nullable=False, default=list)
    max_bookings_per_slot = Column(Integer, nullable=False)
    max_units_per_slot = Column(Integer, nullable=False)
    updated_by = Column(Text)
    updated_at = Column(DateTime(timezone=True), server_default=func.now())
    applied_at = Column(DateTime(timezone=True))


class Holidays(Base):
    __tablename__ = 'holidays'

    id = Column(Integer, primary_key=True)
    date = Column(Date, nullable=False, unique=True)
    name = Column(Text, nullable=False)
    reason = Column(Text)
    is_enabled = Column(Boolean, nullable=False, server_default=text('true'), default=True)
    is_auto_generated = Column(Boolean, nullable=False, server_default=text('false'), default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class OpenDays(Base):
    __tablename__ = 'open_days'

    date = Column(Date, primary_key=True)
    is_open = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now())


class TimeSlots(Base):
    __tablename__ = 'time_slots'
    __table_args__ = (
        UniqueConstraint('date', 'time_label', name='uq_time_slots_date_label'),
    )

    id = Column(Integer, primary_key=True)
    date = Column(Date, nullable=False, index=True)
    time_label = Column(Text, nullable=False)
    max_bookings = Column(Integer, nullable=False)
    max_units = Column(Integer, nullable=False)
    is_legacy = Column(Boolean, nullable=False, server_default=text('false'), default=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now())


class Bookings(Base):
    __tablename__ = 'bookings'
    __table_args__ = (
        Index('ix_bookings_slot_status', 'date', 'time_label', 'status'),
    )

    id = Column(Integer, primary_key=True)
    booking_reference = Column(Text, nullable=False, unique=True)
    date = Column(Date, nullable=False)
    time_label = Column(Text, nullable=False)
    unit_count = Column(Integer, nullable=False)
    status = Column(Text, nullable=False, server_default=text("'confirmed'"), default='confirmed')

    full_name = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    phone = Column(Text)
    notes = Column(Text)

    total_amount = Column(Numeric(10, 2))
    payment_method = Column(Text, nullable=False, server_default=text("'pay_on_arrival'"), default='pay_on_arrival')
    payment_status = Column(Text, nullable=False, server_default=text("'pending'"), default='pending')

    admin_notes = Column(Text)
    admin_notes_updated_at = Column(DateTime(timezone=True))

    cancellation_token = Column(Text, nullable=False, unique=True)
    cancellation_reason = Column(Text)
    cancelled_at = Column(DateTime(timezone=True))
    reschedule_count = Column(Integer, nullable=False, server_default=text('0'), default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    audit_entries = relationship('AuditLog', back_populates='booking', order_by='AuditLog.id')


class AuditLog(Base):
    """Append-only trail of booking transitions and schedule changes."""

    __tablename__ = 'audit_log'

    id = Column(Integer, primary_key=True)
    event_type = Column(Text, nullable=False)
    booking_id = Column(ForeignKey('bookings.id'), index=True)
    actor = Column(Text)
    before = Column(JSON)
    after = Column(JSON)
    reason = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    booking = relationship('Bookings', back_populates='audit_entries')
