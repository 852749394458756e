"""Create subscriptions table

Revision ID: 001_create_subscriptions
Revises:
Create Date: 2025-10-04

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_create_subscriptions'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('session_token_hash', sa.String(255), nullable=False),
        sa.Column('latitude', sa.Float, nullable=False),
        sa.Column('longitude', sa.Float, nullable=False),
        sa.Column('notifications_enabled', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('push_subscription', postgresql.JSONB(none_as_null=True), nullable=True),
        sa.Column('last_notification_sent', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False),
        sa.CheckConstraint('latitude BETWEEN -90 AND 90', name='ck_subscriptions_latitude'),
        sa.CheckConstraint('longitude BETWEEN -180 AND 180', name='ck_subscriptions_longitude'),
    )
    op.create_index('ix_subscriptions_notifications_enabled', 'subscriptions', ['notifications_enabled'])


def downgrade() -> None:
    op.drop_index('ix_subscriptions_notifications_enabled', table_name='subscriptions')
    op.drop_table('subscriptions')
