"""
Assessment Domain Models

Plain dataclasses for quizzes, questions, attempts and answers, plus the view
objects returned by the services. Entities refer to each other by integer id
only; related rows are always fetched through a repository.
"""

import enum
import datetime
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from learnquest.common.serialization import SerializableMixin
from learnquest.common.utils import percentage


class QuizType(enum.Enum):
    """Scope a quiz is attached to."""
    CONTENT_QUIZ = "content_quiz"
    SECTION_QUIZ = "section_quiz"
    LEVEL_QUIZ = "level_quiz"
    COURSE_QUIZ = "course_quiz"
    EXAM_QUIZ = "exam_quiz"


class QuestionType(enum.Enum):
    """Supported question formats. Every format has exactly one correct option."""
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"


class AttemptState(enum.Enum):
    """Lifecycle of an attempt. ``COMPLETED`` is terminal."""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ExamType(enum.Enum):
    """How an exam quiz is presented to students."""
    LEVEL_EXAM = "level_exam"
    FINAL_EXAM = "final_exam"


@dataclass
class Quiz(SerializableMixin):
    """
    A gradeable assessment definition.

    ``course_id`` is always set. The narrower scope ids are set according to
    ``quiz_type``. Total points are not stored here; they are summed from the
    linked questions whenever an attempt starts.
    """
    id: Optional[int]
    title: str
    quiz_type: QuizType
    course_id: int
    instructor_id: int
    description: Optional[str] = None
    content_id: Optional[int] = None
    section_id: Optional[int] = None
    level_id: Optional[int] = None
    max_attempts: int = 3
    passing_score: int = 70
    is_required: bool = True
    time_limit_minutes: Optional[int] = None
    is_active: bool = True
    is_deleted: bool = False
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None

    @property
    def is_available(self) -> bool:
        return self.is_active and not self.is_deleted


@dataclass
class QuestionOption(SerializableMixin):
    id: Optional[int]
    text: str
    is_correct: bool = False
    order_index: int = 0
    question_id: Optional[int] = None


@dataclass
class Question(SerializableMixin):
    """A reusable question owned by an instructor, with its ordered options."""
    id: Optional[int]
    text: str
    question_type: QuestionType
    instructor_id: int
    course_id: int
    points: int = 1
    explanation: Optional[str] = None
    is_active: bool = True
    options: List[QuestionOption] = field(default_factory=list)
    created_at: Optional[datetime.datetime] = None

    @property
    def correct_option(self) -> Optional[QuestionOption]:
        for option in self.options:
            if option.is_correct:
                return option
        return None

    def find_option(self, option_id: Optional[int]) -> Optional[QuestionOption]:
        if option_id is None:
            return None
        for option in self.options:
            if option.id == option_id:
                return option
        return None


@dataclass
class QuizQuestion(SerializableMixin):
    """Link between a quiz and a question, with ordering and a point override."""
    quiz_id: int
    question_id: int
    order_index: int
    custom_points: Optional[int] = None
    id: Optional[int] = None

    def effective_points(self, question: Question) -> int:
        return self.custom_points if self.custom_points is not None else question.points


@dataclass
class QuizEntry:
    """A linked question together with its link row, in quiz order."""
    link: QuizQuestion
    question: Question

    @property
    def points(self) -> int:
        return self.link.effective_points(self.question)


@dataclass
class QuizAttempt(SerializableMixin):
    """
    One user's attempt at a quiz.

    Created in progress by ``start_attempt`` and completed exactly once by
    ``submit``; a completed attempt is never modified again.
    """

    __serializable_fields__ = [
        "id", "quiz_id", "user_id", "attempt_number", "started_at", "completed_at",
        "score", "total_points", "score_percentage", "passed", "time_taken_minutes", "state"
    ]

    id: Optional[int]
    quiz_id: int
    user_id: int
    attempt_number: int
    started_at: datetime.datetime
    total_points: int
    score: int = 0
    passed: bool = False
    completed_at: Optional[datetime.datetime] = None
    time_taken_minutes: Optional[int] = None

    @property
    def state(self) -> AttemptState:
        return AttemptState.IN_PROGRESS if self.completed_at is None else AttemptState.COMPLETED

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @property
    def score_percentage(self) -> float:
        return percentage(self.score, self.total_points)


@dataclass
class UserAnswer(SerializableMixin):
    """A graded answer row, written once during submit."""
    id: Optional[int]
    attempt_id: int
    question_id: int
    is_correct: bool
    points_earned: int
    answered_at: datetime.datetime
    selected_option_id: Optional[int] = None
    boolean_answer: Optional[bool] = None


@dataclass
class SubmittedAnswer:
    """An answer as sent by the user; which field is used depends on the question type."""
    question_id: int
    selected_option_id: Optional[int] = None
    boolean_answer: Optional[bool] = None


def is_passing(score: int, total_points: int, passing_score: int) -> bool:
    """
    ``score / total_points * 100 >= passing_score`` in exact integer arithmetic.

    A quiz without points can never be passed.
    """
    if total_points <= 0:
        return False
    return score * 100 >= passing_score * total_points


# --- Views -----------------------------------------------------------------

@dataclass
class QuizSummary(SerializableMixin):
    """
    Lightweight projection of a quiz, optionally annotated for one user.

    The user fields stay ``None`` when no user was given.
    """
    quiz_id: int
    title: str
    quiz_type: QuizType
    course_id: int
    instructor_id: int
    description: Optional[str]
    content_id: Optional[int]
    section_id: Optional[int]
    level_id: Optional[int]
    max_attempts: int
    passing_score: int
    is_required: bool
    time_limit_minutes: Optional[int]
    is_active: bool
    total_questions: int
    total_points: int
    created_at: Optional[datetime.datetime] = None
    attempts_used: Optional[int] = None
    best_score: Optional[float] = None
    has_passed: Optional[bool] = None
    can_attempt: Optional[bool] = None


def summarize_quiz(quiz: Quiz, entries: List[QuizEntry]) -> QuizSummary:
    """Build the summary projection for ``quiz`` from its current question links."""
    return QuizSummary(
        quiz_id=quiz.id,
        title=quiz.title,
        quiz_type=quiz.quiz_type,
        course_id=quiz.course_id,
        instructor_id=quiz.instructor_id,
        description=quiz.description,
        content_id=quiz.content_id,
        section_id=quiz.section_id,
        level_id=quiz.level_id,
        max_attempts=quiz.max_attempts,
        passing_score=quiz.passing_score,
        is_required=quiz.is_required,
        time_limit_minutes=quiz.time_limit_minutes,
        is_active=quiz.is_active,
        total_questions=len(entries),
        total_points=sum(entry.points for entry in entries),
        created_at=quiz.created_at,
    )


@dataclass
class QuestionSummary(SerializableMixin):
    """A question in an instructor's bank, with the number of live quizzes using it."""
    question_id: int
    text: str
    question_type: QuestionType
    points: int
    course_id: int
    usage_count: int = 0
    created_at: Optional[datetime.datetime] = None


def summarize_question(question: Question, usage_count: int) -> QuestionSummary:
    return QuestionSummary(
        question_id=question.id,
        text=question.text,
        question_type=question.question_type,
        points=question.points,
        course_id=question.course_id,
        usage_count=usage_count,
        created_at=question.created_at,
    )


@dataclass
class OptionView(SerializableMixin):
    option_id: int
    text: str
    order_index: int
    is_correct: Optional[bool] = None


@dataclass
class QuestionView(SerializableMixin):
    """A question as shown inside a quiz. Answer data is ``None`` in the student view."""
    question_id: int
    text: str
    question_type: QuestionType
    points: int
    order_index: int
    options: List[OptionView] = field(default_factory=list)
    explanation: Optional[str] = None


def present_question(entry: QuizEntry, reveal_answers: bool) -> QuestionView:
    question = entry.question
    options = [
        OptionView(
            option_id=option.id,
            text=option.text,
            order_index=option.order_index,
            is_correct=option.is_correct if reveal_answers else None,
        )
        for option in sorted(question.options, key=lambda o: o.order_index)
    ]
    return QuestionView(
        question_id=question.id,
        text=question.text,
        question_type=question.question_type,
        points=entry.points,
        order_index=entry.link.order_index,
        options=options,
        explanation=question.explanation if reveal_answers else None,
    )


@dataclass
class AnswerResult(SerializableMixin):
    """Per-answer breakdown returned after a submit."""
    question_id: int
    question_text: str
    is_correct: bool
    points_earned: int
    points_possible: int
    selected_option_id: Optional[int] = None
    selected_option_text: Optional[str] = None
    boolean_answer: Optional[bool] = None
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None


@dataclass
class SubmissionResult(SerializableMixin):
    """Outcome of a completed attempt."""
    attempt: QuizAttempt
    answers: List[AnswerResult] = field(default_factory=list)

    @property
    def score(self) -> int:
        return self.attempt.score

    @property
    def total_points(self) -> int:
        return self.attempt.total_points

    @property
    def passed(self) -> bool:
        return self.attempt.passed

    @property
    def score_percentage(self) -> float:
        return self.attempt.score_percentage

    def to_dict(self) -> Dict:
        data = self.attempt.to_dict()
        data["answers"] = [answer.to_dict() for answer in self.answers]
        return data
