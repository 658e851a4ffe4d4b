"""initial schema

Revision ID: 0001
Revises:
Create Date: 2025-06-01 00:00:00
"""
from alembic import op
import sqlalchemy as sa


revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'schedule_rules',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('operating_weekdays', sa.JSON(), nullable=False),
        sa.Column('season_start_month', sa.Integer(), nullable=False),
        sa.Column('season_start_day', sa.Integer(), nullable=False),
        sa.Column('season_end_month', sa.Integer(), nullable=False),
        sa.Column('season_end_day', sa.Integer(), nullable=False),
        sa.Column('slot_labels', sa.JSON(), nullable=False),
        sa.Column('max_bookings_per_slot', sa.Integer(), nullable=False),
        sa.Column('max_units_per_slot', sa.Integer(), nullable=False),
        sa.Column('updated_by', sa.Text()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('applied_at', sa.DateTime(timezone=True)),
    )

    op.create_table(
        'holidays',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('date', sa.Date(), nullable=False, unique=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('reason', sa.Text()),
        sa.Column('is_enabled', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('is_auto_generated', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'open_days',
        sa.Column('date', sa.Date(), primary_key=True),
        sa.Column('is_open', sa.Boolean(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'time_slots',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('time_label', sa.Text(), nullable=False),
        sa.Column('max_bookings', sa.Integer(), nullable=False),
        sa.Column('max_units', sa.Integer(), nullable=False),
        sa.Column('is_legacy', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('date', 'time_label', name='uq_time_slots_date_label'),
    )
    op.create_index('ix_time_slots_date', 'time_slots', ['date'])

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_reference', sa.Text(), nullable=False, unique=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('time_label', sa.Text(), nullable=False),
        sa.Column('unit_count', sa.Integer(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False, server_default=sa.text("'confirmed'")),
        sa.Column('full_name', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('phone', sa.Text()),
        sa.Column('notes', sa.Text()),
        sa.Column('total_amount', sa.Numeric(10, 2)),
        sa.Column('payment_method', sa.Text(), nullable=False, server_default=sa.text("'pay_on_arrival'")),
        sa.Column('payment_status', sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column('cancellation_token', sa.Text(), nullable=False, unique=True),
        sa.Column('cancellation_reason', sa.Text()),
        sa.Column('cancelled_at', sa.DateTime(timezone=True)),
        sa.Column('reschedule_count', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_bookings_slot_status', 'bookings', ['date', 'time_label', 'status'])

    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('event_type', sa.Text(), nullable=False),
        sa.Column('booking_id', sa.Integer(), sa.ForeignKey('bookings.id')),
        sa.Column('actor', sa.Text()),
        sa.Column('before', sa.JSON()),
        sa.Column('after', sa.JSON()),
        sa.Column('reason', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_audit_log_booking_id', 'audit_log', ['booking_id'])


def downgrade() -> None:
    op.drop_index('ix_audit_log_booking_id', table_name='audit_log')
    op.drop_table('audit_log')
    op.drop_index('ix_bookings_slot_status', table_name='bookings')
    op.drop_table('bookings')
    op.drop_index('ix_time_slots_date', table_name='time_slots')
    op.drop_table('time_slots')
    op.drop_table('open_days')
    op.drop_table('holidays')
    op.drop_table('schedule_rules')
