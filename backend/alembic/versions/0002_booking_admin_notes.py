"""booking admin notes

Revision ID: 0002
Revises: 0001
Create Date: 2025-07-15 00:00:00
"""
from alembic import op
import sqlalchemy as sa


revision = '0002'
down_revision = '0001'
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table('bookings') as batch_op:
        batch_op.add_column(sa.Column('admin_notes', sa.Text()))
        batch_op.add_column(sa.Column('admin_notes_updated_at', sa.DateTime(timezone=True)))


def downgrade() -> None:
    with op.batch_alter_table('bookings') as batch_op:
        batch_op.drop_column('admin_notes_updated_at')
        batch_op.drop_column('admin_notes')
