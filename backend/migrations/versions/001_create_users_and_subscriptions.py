"""Create users, subscriptions and subscription_tokens

Revision ID: 001
Revises: 
Create Date: 2026-09-28 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Tables may already exist if Base.metadata.create_all ran first
    conn = op.get_bind()
    inspector = inspect(conn)
    existing_tables = inspector.get_table_names()

    if 'users' not in existing_tables:
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('username', sa.String(length=255), nullable=False),
            sa.Column('password_hash', sa.String(length=255), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_users_id', 'users', ['id'])
        op.create_index('ix_users_username', 'users', ['username'], unique=True)

    if 'subscriptions' not in existing_tables:
        op.create_table(
            'subscriptions',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('name', sa.String(length=256), nullable=False),
            sa.Column('status', sa.String(length=50), nullable=False),
            sa.Column('subscribed_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_subscriptions_email', 'subscriptions', ['email'], unique=True)
        op.create_index('ix_subscriptions_status', 'subscriptions', ['status'])

    if 'subscription_tokens' not in existing_tables:
        op.create_table(
            'subscription_tokens',
            sa.Column('subscription_token', sa.String(length=25), nullable=False),
            sa.Column('subscriber_id', sa.String(length=36), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['subscriber_id'], ['subscriptions.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('subscription_token')
        )
        op.create_index('ix_subscription_tokens_subscriber_id', 'subscription_tokens', ['subscriber_id'])


def downgrade() -> None:
    op.drop_index('ix_subscription_tokens_subscriber_id', table_name='subscription_tokens')
    op.drop_table('subscription_tokens')
    op.drop_index('ix_subscriptions_status', table_name='subscriptions')
    op.drop_index('ix_subscriptions_email', table_name='subscriptions')
    op.drop_table('subscriptions')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_index('ix_users_id', table_name='users')
    op.drop_table('users')
