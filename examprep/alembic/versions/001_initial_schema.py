"""Initial database schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Question bank
    op.create_table(
        'providers',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.UniqueConstraint('code', name='uq_providers_code'),
    )

    op.create_table(
        'certifications',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('provider_id', sa.Integer(), sa.ForeignKey('providers.id'), nullable=False),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('question_count', sa.Integer(), nullable=True),
        sa.Column('time_limit_minutes', sa.Integer(), nullable=True),
        sa.Column('passing_score', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.UniqueConstraint('provider_id', 'code', name='uq_certifications_provider_code'),
    )
    op.create_index('ix_certifications_provider_id', 'certifications', ['provider_id'])

    op.create_table(
        'topics',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('certification_id', sa.Integer(), sa.ForeignKey('certifications.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
    )
    op.create_index('ix_topics_certification_id', 'topics', ['certification_id'])

    op.create_table(
        'questions',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('certification_id', sa.Integer(), sa.ForeignKey('certifications.id'), nullable=False),
        sa.Column('topic_id', sa.Integer(), sa.ForeignKey('topics.id'), nullable=True),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('question_type', sa.String(20), nullable=False, server_default='single_choice'),
        sa.Column('difficulty', sa.String(20), nullable=False, server_default='medium'),
        sa.Column('expected_answers', sa.Integer(), nullable=True),
        sa.Column('points', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('explanation', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_questions_certification_id', 'questions', ['certification_id'])
    op.create_index('ix_questions_topic_id', 'questions', ['topic_id'])
    op.create_index('ix_questions_difficulty', 'questions', ['difficulty'])

    op.create_table(
        'question_options',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('question_id', sa.String(64), sa.ForeignKey('questions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('label', sa.String(10), nullable=True),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint('question_id', 'position', name='uq_question_options_position'),
    )
    op.create_index('ix_question_options_question_id', 'question_options', ['question_id'])

    # Anonymous session tokens
    op.create_table(
        'anonymous_sessions',
        sa.Column('session_id', sa.String(128), primary_key=True),
        sa.Column('first_seen_at', sa.DateTime(), nullable=False),
        sa.Column('last_seen_at', sa.DateTime(), nullable=False),
    )

    # Exams
    op.create_table(
        'exams',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=True),
        sa.Column('session_id', sa.String(128), sa.ForeignKey('anonymous_sessions.session_id'), nullable=True),
        sa.Column('provider', sa.String(50), nullable=False),
        sa.Column('certification', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('mode', sa.String(20), nullable=False, server_default='practice'),
        sa.Column('settings', sa.JSON(), nullable=False),
        sa.Column('time_limit_minutes', sa.Integer(), nullable=False),
        sa.Column('passing_score', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='not_started'),
        sa.Column('time_spent_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('score', sa.Integer(), nullable=True),
        sa.Column('passed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('correct_answers', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('incorrect_answers', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('(user_id IS NULL) <> (session_id IS NULL)', name='ck_exams_single_owner'),
        sa.CheckConstraint(
            "status IN ('not_started', 'in_progress', 'paused', 'completed', 'cancelled')",
            name='ck_exams_valid_status',
        ),
    )
    op.create_index('ix_exams_user_id', 'exams', ['user_id'])
    op.create_index('ix_exams_session_id', 'exams', ['session_id'])
    op.create_index('ix_exams_status', 'exams', ['status'])
    op.create_index('ix_exams_user_created', 'exams', ['user_id', 'created_at'])
    op.create_index('ix_exams_session_created', 'exams', ['session_id', 'created_at'])

    op.create_table(
        'exam_questions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('exam_id', sa.String(36), sa.ForeignKey('exams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('question_id', sa.String(64), nullable=False),
        sa.Column('snapshot', sa.JSON(), nullable=False),
        sa.UniqueConstraint('exam_id', 'position', name='uq_exam_questions_exam_position'),
        sa.UniqueConstraint('exam_id', 'question_id', name='uq_exam_questions_exam_question'),
    )
    op.create_index('ix_exam_questions_exam_id', 'exam_questions', ['exam_id'])

    op.create_table(
        'exam_answers',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('exam_id', sa.String(36), sa.ForeignKey('exams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('question_id', sa.String(64), nullable=False),
        sa.Column('answer_kind', sa.String(10), nullable=False),
        sa.Column('selected_options', sa.JSON(), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('partial_score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('answered_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('exam_id', 'question_id', name='uq_exam_answers_exam_question'),
    )
    op.create_index('ix_exam_answers_exam_id', 'exam_answers', ['exam_id'])
    op.create_index('ix_exam_answers_question_id', 'exam_answers', ['question_id'])


def downgrade():
    op.drop_table('exam_answers')
    op.drop_table('exam_questions')
    op.drop_table('exams')
    op.drop_table('anonymous_sessions')
    op.drop_table('question_options')
    op.drop_table('questions')
    op.drop_table('topics')
    op.drop_table('certifications')
    op.drop_table('providers')
