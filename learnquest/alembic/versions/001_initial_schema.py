"""Initial assessment schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'quizzes',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.String(1000), nullable=True),
        sa.Column('quiz_type', sa.String(32), nullable=False),
        sa.Column('course_id', sa.Integer(), nullable=False),
        sa.Column('content_id', sa.Integer(), nullable=True),
        sa.Column('section_id', sa.Integer(), nullable=True),
        sa.Column('level_id', sa.Integer(), nullable=True),
        sa.Column('instructor_id', sa.Integer(), nullable=False),
        sa.Column('max_attempts', sa.Integer(), nullable=False),
        sa.Column('passing_score', sa.Integer(), nullable=False),
        sa.Column('is_required', sa.Boolean(), nullable=False),
        sa.Column('time_limit_minutes', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    for column in ('quiz_type', 'course_id', 'content_id', 'section_id', 'level_id', 'instructor_id'):
        op.create_index(f'ix_quizzes_{column}', 'quizzes', [column])

    op.create_table(
        'questions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('question_type', sa.String(32), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('instructor_id', sa.Integer(), nullable=False),
        sa.Column('course_id', sa.Integer(), nullable=False),
        sa.Column('explanation', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_questions_instructor_id', 'questions', ['instructor_id'])
    op.create_index('ix_questions_course_id', 'questions', ['course_id'])

    op.create_table(
        'question_options',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('question_id', sa.Integer(),
                  sa.ForeignKey('questions.id', ondelete='CASCADE',
                                name='fk_question_options_question_id_questions'),
                  nullable=False),
        sa.Column('text', sa.String(500), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.Column('order_index', sa.Integer(), nullable=False),
    )
    op.create_index('ix_question_options_question_id', 'question_options', ['question_id'])

    op.create_table(
        'quiz_questions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('quiz_id', sa.Integer(),
                  sa.ForeignKey('quizzes.id', name='fk_quiz_questions_quiz_id_quizzes'), nullable=False),
        sa.Column('question_id', sa.Integer(),
                  sa.ForeignKey('questions.id', name='fk_quiz_questions_question_id_questions'), nullable=False),
        sa.Column('order_index', sa.Integer(), nullable=False),
        sa.Column('custom_points', sa.Integer(), nullable=True),
        sa.UniqueConstraint('quiz_id', 'question_id', name='uq_quiz_questions_quiz_id_question_id'),
    )
    op.create_index('ix_quiz_questions_quiz_id', 'quiz_questions', ['quiz_id'])
    op.create_index('ix_quiz_questions_question_id', 'quiz_questions', ['question_id'])

    op.create_table(
        'quiz_attempts',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('quiz_id', sa.Integer(),
                  sa.ForeignKey('quizzes.id', name='fk_quiz_attempts_quiz_id_quizzes'), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('attempt_number', sa.Integer(), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('total_points', sa.Integer(), nullable=False),
        sa.Column('passed', sa.Boolean(), nullable=False),
        sa.Column('time_taken_minutes', sa.Integer(), nullable=True),
        sa.UniqueConstraint('quiz_id', 'user_id', 'attempt_number',
                            name='uq_quiz_attempts_quiz_id_user_id_attempt_number'),
    )
    op.create_index('ix_quiz_attempts_user_id', 'quiz_attempts', ['user_id'])
    op.create_index('ix_quiz_attempts_quiz_id_user_id', 'quiz_attempts', ['quiz_id', 'user_id'])
    # At most one open attempt per (quiz, user)
    op.create_index(
        'ix_quiz_attempts_one_active', 'quiz_attempts', ['quiz_id', 'user_id'],
        unique=True,
        sqlite_where=sa.text('completed_at IS NULL'),
        postgresql_where=sa.text('completed_at IS NULL'),
    )

    op.create_table(
        'user_answers',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('attempt_id', sa.Integer(),
                  sa.ForeignKey('quiz_attempts.id', name='fk_user_answers_attempt_id_quiz_attempts'),
                  nullable=False),
        sa.Column('question_id', sa.Integer(),
                  sa.ForeignKey('questions.id', name='fk_user_answers_question_id_questions'), nullable=False),
        sa.Column('selected_option_id', sa.Integer(), nullable=True),
        sa.Column('boolean_answer', sa.Boolean(), nullable=True),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.Column('points_earned', sa.Integer(), nullable=False),
        sa.Column('answered_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_user_answers_attempt_id', 'user_answers', ['attempt_id'])
    op.create_index('ix_user_answers_question_id', 'user_answers', ['question_id'])


def downgrade():
    op.drop_table('user_answers')
    op.drop_table('quiz_attempts')
    op.drop_table('quiz_questions')
    op.drop_table('question_options')
    op.drop_table('questions')
    op.drop_table('quizzes')
