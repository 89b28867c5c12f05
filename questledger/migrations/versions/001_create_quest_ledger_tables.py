"""Create quest, goal, player stat and profile tables

Revision ID: 001_quest_ledger
Revises:
Create Date: 2026-09-28 09:00:00.000000

"""
from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

from questledger.migrations.util import get_timestamp_default

# revision identifiers, used by Alembic.
revision = '001_quest_ledger'
down_revision = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    now = get_timestamp_default()

    op.create_table(
        'goals',
        sa.Column('goal_id', sa.String(length=36), nullable=False),
        sa.Column('player_id', sa.String(length=36), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('category', sa.String(length=20), nullable=True),
        sa.PrimaryKeyConstraint('goal_id'),
    )
    op.create_index('ix_goals_player_id', 'goals', ['player_id'])

    op.create_table(
        'user_quests',
        sa.Column('quest_id', sa.String(length=36), nullable=False),
        sa.Column('player_id', sa.String(length=36), nullable=False),
        sa.Column('goal_id', sa.String(length=36), nullable=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.String(length=1000), nullable=False, server_default=''),
        sa.Column('stat_tags', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('progress_current', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('progress_total', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('stat_increments', sa.JSON(), nullable=False),
        sa.Column('discipline_increment_amount', sa.Integer(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('generated_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.PrimaryKeyConstraint('quest_id'),
    )
    op.create_index('ix_user_quests_player_id', 'user_quests', ['player_id'])
    op.create_index('ix_user_quests_status', 'user_quests', ['status'])
    op.create_index('ix_user_quests_player_generated', 'user_quests', ['player_id', 'generated_at'])

    op.create_table(
        'player_stats',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('player_id', sa.String(length=36), nullable=False),
        sa.Column('stat_label', sa.String(length=10), nullable=False),
        sa.Column('base_value', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('bonus_value', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('player_id', 'stat_label', name='uq_player_stats_player_label'),
    )
    op.create_index('ix_player_stats_player_id', 'player_stats', ['player_id'])

    op.create_table(
        'player_profiles',
        sa.Column('player_id', sa.String(length=36), nullable=False),
        sa.Column('completed_quests_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.PrimaryKeyConstraint('player_id'),
    )


def downgrade() -> None:
    op.drop_table('player_profiles')

    op.drop_index('ix_player_stats_player_id', table_name='player_stats')
    op.drop_table('player_stats')

    op.drop_index('ix_user_quests_player_generated', table_name='user_quests')
    op.drop_index('ix_user_quests_status', table_name='user_quests')
    op.drop_index('ix_user_quests_player_id', table_name='user_quests')
    op.drop_table('user_quests')

    op.drop_index('ix_goals_player_id', table_name='goals')
    op.drop_table('goals')
