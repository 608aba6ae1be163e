"""
Exam Adapter

Exams are quizzes of type ``EXAM_QUIZ``. This module only reshapes quiz
views into exam views and delegates everything else (catalog changes,
attempts, grading, eligibility, statistics) to the generic services, so an
exam is graded exactly like any other quiz.
"""

import datetime
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from learnquest.assessments.access import AccessGate
from learnquest.assessments.attempts import AttemptManager
from learnquest.assessments.catalog import QuizCatalog
from learnquest.assessments.models import (
    AnswerResult,
    ExamType,
    Quiz,
    QuizAttempt,
    QuizSummary,
    QuizType,
    SubmissionResult,
    SubmittedAnswer,
)
from learnquest.assessments.schemas import ExamCreate, ExamWithQuestionsCreate, QuizUpdate
from learnquest.assessments.statistics import (
    CoursePerformance,
    QuestionAnalytics,
    QuizStatistics,
    StatisticsAggregator,
)
from learnquest.common.exceptions import FailureReason
from learnquest.common.logger import app_logger
from learnquest.common.results import OperationResult
from learnquest.common.serialization import SerializableMixin

logger = app_logger.getChild("assessments.exams")

GRADE_THRESHOLDS = ((90, "A"), (80, "B"), (70, "C"), (60, "D"))
FAILING_GRADE = "F"


def exam_type_from_quiz(quiz: Quiz) -> ExamType:
    """A quiz tied to a level is a level exam; anything else is a final exam."""
    return ExamType.LEVEL_EXAM if quiz.level_id is not None else ExamType.FINAL_EXAM


def exam_type_from_summary(summary: QuizSummary) -> ExamType:
    """Same rule as ``exam_type_from_quiz``; level quizzes always carry a level id."""
    if summary.level_id is not None or summary.quiz_type is QuizType.LEVEL_QUIZ:
        return ExamType.LEVEL_EXAM
    return ExamType.FINAL_EXAM


def grade_letter(score_percentage: float) -> str:
    for threshold, letter in GRADE_THRESHOLDS:
        if score_percentage >= threshold:
            return letter
    return FAILING_GRADE


@dataclass
class ExamSummary(SerializableMixin):
    exam_id: int
    title: str
    exam_type: ExamType
    course_id: int
    level_id: Optional[int]
    total_questions: int
    total_points: int
    is_active: bool


@dataclass
class ExamView(SerializableMixin):
    """Exam details, with the user's standing when a user was given."""
    exam_id: int
    title: str
    description: Optional[str]
    exam_type: ExamType
    course_id: int
    level_id: Optional[int]
    max_attempts: int
    passing_score: int
    is_required: bool
    time_limit_minutes: Optional[int]
    is_active: bool
    total_questions: int
    total_points: int
    attempts_used: Optional[int] = None
    remaining_attempts: Optional[int] = None
    best_score: Optional[float] = None
    has_passed: Optional[bool] = None
    can_attempt: Optional[bool] = None
    is_available: Optional[bool] = None


@dataclass
class ExamAttemptView(SerializableMixin):
    attempt_id: int
    exam_id: int
    exam_title: str
    attempt_number: int
    started_at: datetime.datetime
    completed_at: Optional[datetime.datetime]
    time_limit_minutes: Optional[int]
    total_points: int
    score: int
    score_percentage: float
    passed: bool
    is_completed: bool
    time_taken_minutes: Optional[int] = None


@dataclass
class ExamResult(SerializableMixin):
    attempt_id: int
    exam_id: int
    exam_title: str
    score: int
    total_points: int
    score_percentage: float
    passed: bool
    grade: str
    completed_at: Optional[datetime.datetime]
    time_taken_minutes: Optional[int]
    answers: List[AnswerResult] = field(default_factory=list)


def to_exam_summary(summary: QuizSummary) -> ExamSummary:
    return ExamSummary(
        exam_id=summary.quiz_id,
        title=summary.title,
        exam_type=exam_type_from_summary(summary),
        course_id=summary.course_id,
        level_id=summary.level_id,
        total_questions=summary.total_questions,
        total_points=summary.total_points,
        is_active=summary.is_active,
    )


def to_exam_view(summary: QuizSummary) -> ExamView:
    remaining = None
    if summary.attempts_used is not None:
        remaining = max(0, summary.max_attempts - summary.attempts_used)
    return ExamView(
        exam_id=summary.quiz_id,
        title=summary.title,
        description=summary.description,
        exam_type=exam_type_from_summary(summary),
        course_id=summary.course_id,
        level_id=summary.level_id,
        max_attempts=summary.max_attempts,
        passing_score=summary.passing_score,
        is_required=summary.is_required,
        time_limit_minutes=summary.time_limit_minutes,
        is_active=summary.is_active,
        total_questions=summary.total_questions,
        total_points=summary.total_points,
        attempts_used=summary.attempts_used,
        remaining_attempts=remaining,
        best_score=summary.best_score,
        has_passed=summary.has_passed,
        can_attempt=summary.can_attempt,
    )


def to_attempt_view(attempt: QuizAttempt, exam: QuizSummary) -> ExamAttemptView:
    return ExamAttemptView(
        attempt_id=attempt.id,
        exam_id=exam.quiz_id,
        exam_title=exam.title,
        attempt_number=attempt.attempt_number,
        started_at=attempt.started_at,
        completed_at=attempt.completed_at,
        time_limit_minutes=exam.time_limit_minutes,
        total_points=attempt.total_points,
        score=attempt.score,
        score_percentage=round(attempt.score_percentage, 2),
        passed=attempt.passed,
        is_completed=attempt.is_completed,
        time_taken_minutes=attempt.time_taken_minutes,
    )


def to_exam_result(result: SubmissionResult, exam: QuizSummary) -> ExamResult:
    attempt = result.attempt
    return ExamResult(
        attempt_id=attempt.id,
        exam_id=exam.quiz_id,
        exam_title=exam.title,
        score=attempt.score,
        total_points=attempt.total_points,
        score_percentage=round(attempt.score_percentage, 2),
        passed=attempt.passed,
        grade=grade_letter(attempt.score_percentage),
        completed_at=attempt.completed_at,
        time_taken_minutes=attempt.time_taken_minutes,
        answers=list(result.answers),
    )


class ExamAdapter:
    """Exam-flavoured facade over the catalog, attempt manager, access gate and statistics."""

    def __init__(self, catalog: QuizCatalog, attempts: AttemptManager, gate: AccessGate,
                 statistics: StatisticsAggregator):
        self._catalog = catalog
        self._attempts = attempts
        self._gate = gate
        self._statistics = statistics

    async def _require_exam(self, exam_id: int) -> OperationResult[QuizSummary]:
        found = await self._catalog.get_quiz(exam_id)
        if not found.success:
            return found
        if found.value.quiz_type is not QuizType.EXAM_QUIZ:
            return OperationResult.not_found(FailureReason.NOT_AN_EXAM, f"Quiz {exam_id} is not an exam")
        return found

    # --- definition -------------------------------------------------------------

    async def create_exam(self, definition: ExamCreate, instructor_id: int) -> OperationResult[int]:
        return await self._catalog.create_quiz(definition.to_quiz(), instructor_id)

    async def create_exam_with_questions(self, bundle: ExamWithQuestionsCreate,
                                         instructor_id: int) -> OperationResult[ExamView]:
        created = await self._catalog.create_quiz_with_questions(bundle.to_quiz_bundle(), instructor_id)
        if not created.success:
            return created.propagate()
        return OperationResult.ok(to_exam_view(created.value))

    async def update_exam(self, exam_id: int, changes: QuizUpdate, instructor_id: int) -> OperationResult[ExamView]:
        exam = await self._require_exam(exam_id)
        if not exam.success:
            return exam.propagate()
        updated = await self._catalog.update_quiz(exam_id, changes, instructor_id)
        if not updated.success:
            return updated.propagate()
        return await self.get_exam(exam_id)

    async def delete_exam(self, exam_id: int, instructor_id: int) -> OperationResult[bool]:
        exam = await self._require_exam(exam_id)
        if not exam.success:
            return exam.propagate()
        return await self._catalog.delete_quiz(exam_id, instructor_id)

    async def activate_exam(self, exam_id: int, instructor_id: int) -> OperationResult[bool]:
        """False when the exam was already active."""
        exam = await self._require_exam(exam_id)
        if not exam.success:
            return exam.propagate()
        return await self._catalog.set_quiz_active(exam_id, instructor_id, True)

    async def deactivate_exam(self, exam_id: int, instructor_id: int) -> OperationResult[bool]:
        """False when the exam was already inactive."""
        exam = await self._require_exam(exam_id)
        if not exam.success:
            return exam.propagate()
        return await self._catalog.set_quiz_active(exam_id, instructor_id, False)

    async def add_questions(self, exam_id: int, question_ids: Sequence[int], instructor_id: int,
                            custom_points: Optional[Dict[int, int]] = None) -> OperationResult[int]:
        exam = await self._require_exam(exam_id)
        if not exam.success:
            return exam.propagate()
        return await self._catalog.add_questions_to_quiz(exam_id, question_ids, instructor_id, custom_points)

    async def remove_question(self, exam_id: int, question_id: int, instructor_id: int) -> OperationResult[bool]:
        exam = await self._require_exam(exam_id)
        if not exam.success:
            return exam.propagate()
        return await self._catalog.remove_question_from_quiz(exam_id, question_id, instructor_id)

    async def reorder_questions(self, exam_id: int, orders: Dict[int, int],
                                instructor_id: int) -> OperationResult[bool]:
        exam = await self._require_exam(exam_id)
        if not exam.success:
            return exam.propagate()
        return await self._catalog.reorder_quiz_questions(exam_id, orders, instructor_id)

    # --- queries ----------------------------------------------------------------

    async def get_exam(self, exam_id: int, user_id: Optional[int] = None) -> OperationResult[ExamView]:
        """Exam details; with ``user_id`` also the user's attempts, standing and availability."""
        exam = await self._require_exam(exam_id)
        if not exam.success:
            return exam.propagate()
        if user_id is None:
            return OperationResult.ok(to_exam_view(exam.value))

        described = await self._gate.describe_quiz_for_user(exam_id, user_id)
        if not described.success:
            return described.propagate()
        view = to_exam_view(described.value)
        view.is_available = await self._gate.is_available(exam_id, user_id)
        return OperationResult.ok(view)

    async def list_exams_by_course(self, course_id: int) -> List[ExamSummary]:
        return [to_exam_summary(summary) for summary in await self._catalog.list_exams(course_id=course_id)]

    async def list_exams_by_level(self, level_id: int) -> List[ExamSummary]:
        return [to_exam_summary(summary) for summary in await self._catalog.list_exams(level_id=level_id)]

    # --- taking an exam -------------------------------------------------------------

    async def is_available(self, exam_id: int, user_id: int) -> bool:
        exam = await self._require_exam(exam_id)
        return exam.success and await self._gate.is_available(exam_id, user_id)

    async def can_access(self, exam_id: int, user_id: int) -> bool:
        exam = await self._require_exam(exam_id)
        return exam.success and await self._gate.can_access(exam_id, user_id)

    async def get_remaining_attempts(self, exam_id: int, user_id: int) -> OperationResult[int]:
        exam = await self._require_exam(exam_id)
        if not exam.success:
            return exam.propagate()
        return await self._gate.remaining_attempts(exam_id, user_id)

    async def has_passed(self, exam_id: int, user_id: int) -> bool:
        exam = await self._require_exam(exam_id)
        return exam.success and await self._gate.has_passed(exam_id, user_id)

    async def start_exam(self, exam_id: int, user_id: int) -> OperationResult[ExamAttemptView]:
        exam = await self._require_exam(exam_id)
        if not exam.success:
            return exam.propagate()
        started = await self._attempts.start_attempt(exam_id, user_id)
        if not started.success:
            return started.propagate()
        logger.info(f"Exam {exam_id} started by user {user_id}")
        return OperationResult.ok(to_attempt_view(started.value, exam.value))

    async def get_current_attempt(self, exam_id: int, user_id: int) -> OperationResult[Optional[ExamAttemptView]]:
        exam = await self._require_exam(exam_id)
        if not exam.success:
            return exam.propagate()
        attempt = await self._attempts.get_active_attempt(exam_id, user_id)
        return OperationResult.ok(to_attempt_view(attempt, exam.value) if attempt else None)

    async def submit_exam(self, exam_id: int, user_id: int,
                          answers: Sequence[SubmittedAnswer]) -> OperationResult[ExamResult]:
        exam = await self._require_exam(exam_id)
        if not exam.success:
            return exam.propagate()
        submitted = await self._attempts.submit(exam_id, user_id, answers)
        if not submitted.success:
            return submitted.propagate()
        result = to_exam_result(submitted.value, exam.value)
        logger.info(f"Exam {exam_id} submitted by user {user_id}: grade {result.grade}")
        return OperationResult.ok(result)

    async def is_in_progress(self, exam_id: int, user_id: int) -> bool:
        exam = await self._require_exam(exam_id)
        return exam.success and await self._attempts.is_in_progress(exam_id, user_id)

    async def get_remaining_time(self, exam_id: int, user_id: int) -> Optional[datetime.timedelta]:
        """None when the id is not an exam or the user has no timed attempt in progress."""
        exam = await self._require_exam(exam_id)
        if not exam.success:
            return None
        return await self._attempts.get_remaining_time(exam_id, user_id)

    async def get_user_exam_history(self, exam_id: int, user_id: int) -> OperationResult[List[ExamAttemptView]]:
        """The user's attempts at the exam, newest first."""
        exam = await self._require_exam(exam_id)
        if not exam.success:
            return exam.propagate()
        attempts = await self._attempts.list_user_attempts(exam_id, user_id)
        return OperationResult.ok([to_attempt_view(attempt, exam.value) for attempt in attempts])

    async def get_best_result(self, exam_id: int, user_id: int) -> OperationResult[Optional[ExamResult]]:
        exam = await self._require_exam(exam_id)
        if not exam.success:
            return exam.propagate()
        best = await self._attempts.get_best_attempt(exam_id, user_id)
        if best is None:
            return OperationResult.ok(None)
        detailed = await self._attempts.get_attempt(best.id, user_id)
        if not detailed.success:
            return detailed.propagate()
        return OperationResult.ok(to_exam_result(detailed.value, exam.value))

    # --- analytics --------------------------------------------------------------------

    async def get_exam_statistics(self, exam_id: int, instructor_id: int) -> OperationResult[QuizStatistics]:
        exam = await self._require_exam(exam_id)
        if not exam.success:
            return exam.propagate()
        return await self._statistics.get_quiz_statistics(exam_id, instructor_id)

    async def get_question_analytics(self, exam_id: int,
                                     instructor_id: int) -> OperationResult[List[QuestionAnalytics]]:
        exam = await self._require_exam(exam_id)
        if not exam.success:
            return exam.propagate()
        return await self._statistics.get_question_analytics(exam_id, instructor_id)

    async def get_course_performance(self, course_id: int, instructor_id: int) -> OperationResult[CoursePerformance]:
        return await self._statistics.get_course_performance(course_id, instructor_id, exams_only=True)
