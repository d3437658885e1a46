"""initial schema: users, quizzes, theory questions and attempts, performances

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a1b2c3d4e5f6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(255), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'quizzes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('creator_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('timer_mode', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('time_limit_minutes', sa.Integer(), nullable=True),
        sa.Column('questions_json', sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_quizzes_id', 'quizzes', ['id'])
    op.create_index('ix_quizzes_creator_id', 'quizzes', ['creator_id'])

    op.create_table(
        'theory_questions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('creator_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('question', sa.Text(), nullable=False),
        sa.Column('sample_answer', sa.Text(), nullable=False),
        sa.Column('mark', sa.Integer(), server_default='1', nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_theory_questions_id', 'theory_questions', ['id'])
    op.create_index('ix_theory_questions_creator_id', 'theory_questions', ['creator_id'])

    op.create_table(
        'theory_attempts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('theory_questions.id'), nullable=False),
        sa.Column('user_answer', sa.Text(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('feedback', sa.String(500), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_theory_attempts_id', 'theory_attempts', ['id'])
    op.create_index('ix_theory_attempts_user_id', 'theory_attempts', ['user_id'])
    op.create_index('ix_theory_attempts_question_id', 'theory_attempts', ['question_id'])

    op.create_table(
        'performances',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('quiz_id', sa.Integer(), nullable=False),
        sa.Column('quiz_title', sa.String(255), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_performances_id', 'performances', ['id'])
    op.create_index('ix_performances_user_id', 'performances', ['user_id'])
    op.create_index('idx_performance_user_timestamp', 'performances', ['user_id', 'timestamp'])


def downgrade() -> None:
    op.drop_table('performances')
    op.drop_table('theory_attempts')
    op.drop_table('theory_questions')
    op.drop_table('quizzes')
    op.drop_table('users')
