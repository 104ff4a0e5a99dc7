"""Create newsletter_issues, issue_delivery_queue and idempotency

Revision ID: 002
Revises: 001
Create Date: 2026-10-05 09:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    inspector = inspect(conn)
    existing_tables = inspector.get_table_names()

    if 'newsletter_issues' not in existing_tables:
        op.create_table(
            'newsletter_issues',
            sa.Column('newsletter_issue_id', sa.String(length=36), nullable=False),
            sa.Column('title', sa.Text(), nullable=False),
            sa.Column('text_content', sa.Text(), nullable=False),
            sa.Column('html_content', sa.Text(), nullable=False),
            sa.Column('published_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('newsletter_issue_id')
        )

    if 'issue_delivery_queue' not in existing_tables:
        op.create_table(
            'issue_delivery_queue',
            sa.Column('newsletter_issue_id', sa.String(length=36), nullable=False),
            sa.Column('subscriber_email', sa.String(length=255), nullable=False),
            sa.ForeignKeyConstraint(['newsletter_issue_id'], ['newsletter_issues.newsletter_issue_id']),
            sa.PrimaryKeyConstraint('newsletter_issue_id', 'subscriber_email')
        )

    if 'idempotency' not in existing_tables:
        op.create_table(
            'idempotency',
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('idempotency_key', sa.String(length=50), nullable=False),
            # NULL until the claiming request has saved its response
            sa.Column('response_status_code', sa.SmallInteger(), nullable=True),
            sa.Column('response_headers', sa.JSON(), nullable=True),
            sa.Column('response_body', sa.LargeBinary(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('user_id', 'idempotency_key')
        )


def downgrade() -> None:
    op.drop_table('idempotency')
    op.drop_table('issue_delivery_queue')
    op.drop_table('newsletter_issues')
