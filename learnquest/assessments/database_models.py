"""
SQLAlchemy ORM models for quizzes and exams.

Tables:
- quizzes: quiz definitions, soft-deleted through ``is_deleted``
- questions / question_options: reusable questions and their choices
- quiz_questions: ordered quiz-to-question links with an optional point override
- quiz_attempts: one row per attempt; at most one open row per (quiz, user)
- user_answers: graded answers written when an attempt is submitted

No relationships are declared; rows reference each other by id and the
repositories issue explicit queries.
"""

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Index, UniqueConstraint
)

from learnquest.common.utils import utc_now
from learnquest.database.base import ModelBase


class QuizRecord(ModelBase):
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    description = Column(String(1000), nullable=True)
    quiz_type = Column(String(32), nullable=False, index=True)
    course_id = Column(Integer, nullable=False, index=True)
    content_id = Column(Integer, nullable=True, index=True)
    section_id = Column(Integer, nullable=True, index=True)
    level_id = Column(Integer, nullable=True, index=True)
    instructor_id = Column(Integer, nullable=False, index=True)
    max_attempts = Column(Integer, nullable=False, default=3)
    passing_score = Column(Integer, nullable=False, default=70)
    is_required = Column(Boolean, nullable=False, default=True)
    time_limit_minutes = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=True)


class QuestionRecord(ModelBase):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    text = Column(Text, nullable=False)
    question_type = Column(String(32), nullable=False)
    points = Column(Integer, nullable=False, default=1)
    instructor_id = Column(Integer, nullable=False, index=True)
    course_id = Column(Integer, nullable=False, index=True)
    explanation = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=True)


class QuestionOptionRecord(ModelBase):
    __tablename__ = "question_options"

    id = Column(Integer, primary_key=True, autoincrement=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(String(500), nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    order_index = Column(Integer, nullable=False, default=0)


class QuizQuestionRecord(ModelBase):
    __tablename__ = "quiz_questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False, index=True)
    order_index = Column(Integer, nullable=False, default=0)
    custom_points = Column(Integer, nullable=True)

    __table_args__ = (
        UniqueConstraint("quiz_id", "question_id", name="uq_quiz_questions_quiz_id_question_id"),
    )


class QuizAttemptRecord(ModelBase):
    __tablename__ = "quiz_attempts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id"), nullable=False)
    user_id = Column(Integer, nullable=False, index=True)
    attempt_number = Column(Integer, nullable=False)
    started_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    score = Column(Integer, nullable=False, default=0)
    total_points = Column(Integer, nullable=False, default=0)
    passed = Column(Boolean, nullable=False, default=False)
    time_taken_minutes = Column(Integer, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "quiz_id", "user_id", "attempt_number",
            name="uq_quiz_attempts_quiz_id_user_id_attempt_number"
        ),
        Index("ix_quiz_attempts_quiz_id_user_id", "quiz_id", "user_id"),
        # One open attempt per (quiz, user), enforced by the database
        Index(
            "ix_quiz_attempts_one_active",
            "quiz_id", "user_id",
            unique=True,
            sqlite_where=completed_at.is_(None),
            postgresql_where=completed_at.is_(None),
        ),
    )


class UserAnswerRecord(ModelBase):
    __tablename__ = "user_answers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    attempt_id = Column(Integer, ForeignKey("quiz_attempts.id"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False, index=True)
    selected_option_id = Column(Integer, nullable=True)
    boolean_answer = Column(Boolean, nullable=True)
    is_correct = Column(Boolean, nullable=False, default=False)
    points_earned = Column(Integer, nullable=False, default=0)
    answered_at = Column(DateTime, nullable=False, default=utc_now)
