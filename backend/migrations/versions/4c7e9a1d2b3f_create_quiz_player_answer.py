"""create quiz, player and answer tables

Revision ID: 4c7e9a1d2b3f
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c7e9a1d2b3f'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'quiz',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('max_players', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('time_type', sa.String(length=16), nullable=False, server_default='per_question'),
        sa.Column('time_per_question', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('total_time', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('lives', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('shuffle_answers', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('questions', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='waiting'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'player',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('quiz_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('avatar', sa.JSON(), nullable=True),
        sa.Column('lives', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('joined_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('lives >= 0', name='ck_player_lives_non_negative'),
        sa.CheckConstraint('score >= 0', name='ck_player_score_non_negative'),
        sa.ForeignKeyConstraint(['quiz_id'], ['quiz.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_player_quiz_id', 'player', ['quiz_id'])
    op.create_index('ix_player_score', 'player', ['score'])

    op.create_table(
        'answer',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('player_id', sa.String(length=36), nullable=False),
        sa.Column('quiz_id', sa.String(length=36), nullable=False),
        sa.Column('question_index', sa.Integer(), nullable=False),
        sa.Column('answer_index', sa.Integer(), nullable=True),
        sa.Column('is_correct', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('time_spent', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('answered_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['player_id'], ['player.id']),
        sa.ForeignKeyConstraint(['quiz_id'], ['quiz.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_answer_player_id', 'answer', ['player_id'])
    op.create_index('ix_answer_quiz_id', 'answer', ['quiz_id'])


def downgrade():
    op.drop_index('ix_answer_quiz_id', table_name='answer')
    op.drop_index('ix_answer_player_id', table_name='answer')
    op.drop_table('answer')
    op.drop_index('ix_player_score', table_name='player')
    op.drop_index('ix_player_quiz_id', table_name='player')
    op.drop_table('player')
    op.drop_table('quiz')
