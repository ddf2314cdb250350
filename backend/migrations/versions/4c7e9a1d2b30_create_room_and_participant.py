"""create room and participant tables

Revision ID: 4c7e9a1d2b30
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c7e9a1d2b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'room',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=4), nullable=False),
        sa.Column('phase', sa.String(length=16), nullable=False, server_default='SETUP'),
        sa.Column('ante', sa.Integer(), nullable=False, server_default='2'),
        sa.Column('pot', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('draft_phase', sa.String(length=8), nullable=False, server_default='HOME'),
        sa.Column('current_turn_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('draft_order', sa.JSON(), nullable=True),
        sa.Column('teams', sa.JSON(), nullable=True),
        sa.Column('available_players', sa.JSON(), nullable=True),
        sa.Column('original_roster', sa.JSON(), nullable=True),
        sa.Column('pending_catch_up', sa.JSON(), nullable=True),
        sa.Column('last_winner', sa.JSON(), nullable=True),
        sa.Column('draft_round_kind', sa.String(length=16), nullable=True),
        sa.Column('draft_exit_phase', sa.String(length=16), nullable=True),
        sa.Column('revision', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_room_code', 'room', ['code'], unique=True)

    op.create_table(
        'participant',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('room_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('balance', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('winnings', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('roster_home', sa.JSON(), nullable=True),
        sa.Column('roster_away', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['room_id'], ['room.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_participant_room_id', 'participant', ['room_id'], unique=False)


def downgrade():
    op.drop_index('ix_participant_room_id', table_name='participant')
    op.drop_table('participant')
    op.drop_index('ix_room_code', table_name='room')
    op.drop_table('room')
