"""add status version and retry lease to orders

Revision ID: 002
Revises: 001
Create Date: 2026-02-20 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None


def upgrade():
    # Compare-and-set target for sync results
    op.add_column('orders', sa.Column('status_version', sa.Integer(), nullable=False, server_default='0'))
    # Claim lease taken by a retry sweep
    op.add_column('orders', sa.Column('sync_lease_until', sa.DateTime(timezone=True), nullable=True))

    op.create_index('ix_orders_sync_retry', 'orders', ['sync_state', 'retry_count', 'updated_at'])


def downgrade():
    op.drop_index('ix_orders_sync_retry', table_name='orders')
    op.drop_column('orders', 'sync_lease_until')
    op.drop_column('orders', 'status_version')
