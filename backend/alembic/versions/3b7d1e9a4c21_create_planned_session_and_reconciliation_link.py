"""create planned_session and reconciliation_link tables

Revision ID: 3b7d1e9a4c21
Revises:
Create Date: 2026-09-14 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b7d1e9a4c21'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('planned_session',
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('week', sa.Integer(), nullable=False),
        sa.Column('day', sa.String(), nullable=False),
        sa.Column('session_type', sa.String(), nullable=False),
        sa.Column('description', sa.String(), nullable=False, server_default=''),
        sa.Column('minutes', sa.Integer(), nullable=False),
        sa.Column('scheduled_date', sa.Date(), nullable=True),
        sa.Column('completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('completion_source', sa.String(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_activity_id', sa.String(length=64), nullable=True),
        sa.Column('completion_match_score', sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint('user_id', 'id'),
        sa.CheckConstraint(
            "completion_source IS NULL OR completion_source IN ('manual', 'external-sync')",
            name='ck_planned_session_completion_source',
        ),
    )
    op.create_index('ix_planned_session_user_id', 'planned_session', ['user_id'])
    op.create_index('ix_planned_session_completed_activity_id', 'planned_session', ['completed_activity_id'])

    op.create_table('reconciliation_link',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('session_id', sa.String(length=64), nullable=False),
        sa.Column('activity_id', sa.String(length=64), nullable=False),
        sa.Column('day_delta', sa.Integer(), nullable=False),
        sa.Column('duration_delta_pct', sa.Float(), nullable=False),
        sa.Column('confidence', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'session_id', name='uq_reconciliation_link_user_session'),
        sa.UniqueConstraint('user_id', 'activity_id', name='uq_reconciliation_link_user_activity'),
        sa.CheckConstraint("confidence IN ('high', 'medium')", name='ck_reconciliation_link_confidence'),
    )
    op.create_index('ix_reconciliation_link_user_id', 'reconciliation_link', ['user_id'])
    op.create_index('ix_reconciliation_link_user_created', 'reconciliation_link', ['user_id', 'created_at'])


def downgrade() -> None:
    op.drop_index('ix_reconciliation_link_user_created', table_name='reconciliation_link')
    op.drop_index('ix_reconciliation_link_user_id', table_name='reconciliation_link')
    op.drop_table('reconciliation_link')
    op.drop_index('ix_planned_session_completed_activity_id', table_name='planned_session')
    op.drop_index('ix_planned_session_user_id', table_name='planned_session')
    op.drop_table('planned_session')
