"""
Access Gate

Eligibility predicates: whether a user may start another attempt, how many
attempts remain, whether a quiz has been passed, and whether the required
quizzes of a scope are satisfied.

Attempts count against ``max_attempts`` from the moment they are started,
whether or not they were ever submitted.
"""

import dataclasses
from typing import List, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from learnquest.assessments.collaborators import CourseDirectory, ProgressTracker
from learnquest.assessments.models import Quiz, QuizSummary, summarize_quiz
from learnquest.assessments.repositories import AssessmentStore, unit_of_work
from learnquest.common.exceptions import FailureReason
from learnquest.common.logger import app_logger
from learnquest.common.results import OperationResult

logger = app_logger.getChild("assessments.access")


async def check_can_attempt(store: AssessmentStore, quiz: Quiz, user_id: int) -> OperationResult[int]:
    """
    Decide whether ``user_id`` may start a new attempt at ``quiz``.

    Runs on the caller's store so that the check and the insert that follows
    share one transaction.

    Returns:
        Result holding the number of attempts already used, or the reason the
        user is refused
    """
    if not quiz.is_available:
        return OperationResult.invalid_state(FailureReason.QUIZ_INACTIVE, f"Quiz {quiz.id} is not active")

    if await store.attempts.get_active(quiz.id, user_id) is not None:
        return OperationResult.invalid_state(
            FailureReason.ACTIVE_ATTEMPT_EXISTS,
            f"User {user_id} already has an attempt in progress for quiz {quiz.id}",
        )

    used = await store.attempts.count_for_user(quiz.id, user_id)
    if used >= quiz.max_attempts:
        return OperationResult.invalid_state(
            FailureReason.ATTEMPT_LIMIT_REACHED,
            f"User {user_id} has used all {quiz.max_attempts} attempts for quiz {quiz.id}",
        )
    return OperationResult.ok(used)


async def annotate_for_user(store: AssessmentStore, summary: QuizSummary, quiz: Quiz,
                            user_id: int) -> QuizSummary:
    """Fill the per-user fields of a quiz summary."""
    attempts = await store.attempts.list_for_user(quiz.id, user_id)
    completed = [attempt for attempt in attempts if attempt.is_completed]
    can_attempt = await check_can_attempt(store, quiz, user_id)
    return dataclasses.replace(
        summary,
        attempts_used=len(attempts),
        best_score=max((attempt.score_percentage for attempt in completed), default=None),
        has_passed=any(attempt.passed for attempt in completed),
        can_attempt=can_attempt.success,
    )


class AccessGate:
    """
    Read-only eligibility checks.

    Args:
        session_factory: Async session factory
        courses: Enrollment lookups for ``can_access``
        progress: Content completion lookups for ``is_available``
    """

    def __init__(self, session_factory: async_sessionmaker, courses: CourseDirectory, progress: ProgressTracker):
        self._session_factory = session_factory
        self._courses = courses
        self._progress = progress

    async def check_attempt(self, quiz_id: int, user_id: int) -> OperationResult[int]:
        """Like ``can_attempt`` but tells why a user is refused."""
        async with unit_of_work(self._session_factory) as store:
            quiz = await store.quizzes.get(quiz_id)
            if quiz is None:
                return OperationResult.not_found(FailureReason.QUIZ_NOT_FOUND, f"Quiz {quiz_id} not found")
            return await check_can_attempt(store, quiz, user_id)

    async def can_attempt(self, quiz_id: int, user_id: int) -> bool:
        return (await self.check_attempt(quiz_id, user_id)).success

    async def remaining_attempts(self, quiz_id: int, user_id: int) -> OperationResult[int]:
        async with unit_of_work(self._session_factory) as store:
            quiz = await store.quizzes.get(quiz_id)
            if quiz is None:
                return OperationResult.not_found(FailureReason.QUIZ_NOT_FOUND, f"Quiz {quiz_id} not found")
            used = await store.attempts.count_for_user(quiz_id, user_id)
        return OperationResult.ok(max(0, quiz.max_attempts - used))

    async def has_passed(self, quiz_id: int, user_id: int) -> bool:
        async with unit_of_work(self._session_factory) as store:
            return await store.attempts.has_passed(quiz_id, user_id)

    async def is_available(self, quiz_id: int, user_id: int) -> bool:
        """
        True when the user may attempt the quiz and has finished the content it
        depends on: the quiz's level when set, otherwise the whole course.
        """
        async with unit_of_work(self._session_factory) as store:
            quiz = await store.quizzes.get(quiz_id)
            if quiz is None:
                return False
            allowed = await check_can_attempt(store, quiz, user_id)
        if not allowed.success:
            logger.debug(f"Quiz {quiz_id} unavailable to user {user_id}: {allowed.reason.value}")
            return False
        return await self._progress.has_completed_required_content(user_id, quiz.course_id, quiz.level_id)

    async def can_access(self, quiz_id: int, user_id: int) -> bool:
        """True when the quiz is active and the user is enrolled in its course."""
        async with unit_of_work(self._session_factory) as store:
            quiz = await store.quizzes.get(quiz_id)
        if quiz is None or not quiz.is_available:
            return False
        return await self._courses.is_enrolled(quiz.course_id, user_id)

    async def describe_quiz_for_user(self, quiz_id: int, user_id: int) -> OperationResult[QuizSummary]:
        """Quiz summary annotated with the user's attempts, best score and eligibility."""
        async with unit_of_work(self._session_factory) as store:
            quiz = await store.quizzes.get(quiz_id)
            if quiz is None:
                return OperationResult.not_found(FailureReason.QUIZ_NOT_FOUND, f"Quiz {quiz_id} not found")
            entries = await store.quiz_questions.list_entries(quiz_id)
            summary = await annotate_for_user(store, summarize_quiz(quiz, entries), quiz, user_id)
        return OperationResult.ok(summary)

    async def get_required_quizzes(self, user_id: int, content_id: Optional[int] = None,
                                   section_id: Optional[int] = None, level_id: Optional[int] = None,
                                   course_id: Optional[int] = None) -> List[QuizSummary]:
        """
        Required quizzes of every given scope, each quiz once, annotated for the user.

        The course scope contributes only course quizzes; quizzes of its
        levels, sections and content are reached through their own ids.
        """
        async with unit_of_work(self._session_factory) as store:
            quizzes = await store.quizzes.list_required(content_id, section_id, level_id, course_id)
            summaries = []
            for quiz in quizzes:
                entries = await store.quiz_questions.list_entries(quiz.id)
                summaries.append(await annotate_for_user(store, summarize_quiz(quiz, entries), quiz, user_id))
        return summaries

    async def required_quizzes_satisfied(self, user_id: int, content_id: Optional[int] = None,
                                         section_id: Optional[int] = None, level_id: Optional[int] = None,
                                         course_id: Optional[int] = None) -> bool:
        """True when the user passed every required quiz across the given scopes."""
        async with unit_of_work(self._session_factory) as store:
            quizzes = await store.quizzes.list_required(content_id, section_id, level_id, course_id)
            for quiz in quizzes:
                if not await store.attempts.has_passed(quiz.id, user_id):
                    logger.debug(f"User {user_id} has not passed required quiz {quiz.id}")
                    return False
        return True
