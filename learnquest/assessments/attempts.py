"""
Attempt Manager

The attempt state machine. An attempt is created in progress by
``start_attempt`` and completed exactly once by ``submit``; there is no other
transition. A time limit is only checked when the user submits: an attempt
past its limit is refused and stays in progress.
"""

import datetime
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from learnquest.assessments.access import check_can_attempt
from learnquest.assessments.catalog import load_owned_quiz
from learnquest.assessments.grading import GradeOutcome, answer_for_question, describe, grade
from learnquest.assessments.models import (
    QuestionView,
    QuizAttempt,
    QuizEntry,
    QuizQuestion,
    SubmissionResult,
    SubmittedAnswer,
    UserAnswer,
    is_passing,
    present_question,
)
from learnquest.assessments.repositories import AssessmentStore, unit_of_work
from learnquest.common.exceptions import FailureReason
from learnquest.common.logger import LoggerAdapter, app_logger, log_execution_time
from learnquest.common.results import OperationResult
from learnquest.common.utils import round_minutes, utc_now

logger = app_logger.getChild("assessments.attempts")


class AttemptManager:
    """
    Starts, submits and looks up quiz attempts.

    Args:
        session_factory: Async session factory; start and submit each run in
            a single transaction
        clock: Returns the current UTC time
    """

    def __init__(self, session_factory: async_sessionmaker,
                 clock: Callable[[], datetime.datetime] = utc_now):
        self._session_factory = session_factory
        self._clock = clock

    async def start_attempt(self, quiz_id: int, user_id: int) -> OperationResult[QuizAttempt]:
        """
        Open a new attempt.

        ``total_points`` is the sum of the effective points of the questions
        linked at this moment; later changes to the quiz do not affect it.
        """
        log = LoggerAdapter(logger, {"quiz_id": quiz_id, "user_id": user_id})

        async with unit_of_work(self._session_factory) as store:
            quiz = await store.quizzes.get(quiz_id)
            if quiz is None:
                return OperationResult.not_found(FailureReason.QUIZ_NOT_FOUND, f"Quiz {quiz_id} not found")

            allowed = await check_can_attempt(store, quiz, user_id)
            if not allowed.success:
                log.warning(f"Attempt refused: {allowed.failure.message}")
                return allowed.propagate()

            entries = await store.quiz_questions.list_entries(quiz_id)
            attempt = QuizAttempt(
                id=None,
                quiz_id=quiz_id,
                user_id=user_id,
                attempt_number=allowed.value + 1,
                started_at=self._clock(),
                total_points=sum(entry.points for entry in entries),
            )
            try:
                attempt = await store.attempts.add(attempt)
            except IntegrityError:
                # A concurrent request opened an attempt between our check and the insert
                await store.session.rollback()
                log.warning("Attempt refused: concurrent attempt already opened")
                return OperationResult.invalid_state(
                    FailureReason.ACTIVE_ATTEMPT_EXISTS,
                    f"User {user_id} already has an attempt in progress for quiz {quiz_id}",
                )

        log.info(f"Attempt {attempt.id} (#{attempt.attempt_number}) started, total points {attempt.total_points}")
        return OperationResult.ok(attempt)

    async def get_active_attempt(self, quiz_id: int, user_id: int) -> Optional[QuizAttempt]:
        async with unit_of_work(self._session_factory) as store:
            return await store.attempts.get_active(quiz_id, user_id)

    async def is_in_progress(self, quiz_id: int, user_id: int) -> bool:
        return await self.get_active_attempt(quiz_id, user_id) is not None

    async def get_remaining_time(self, quiz_id: int, user_id: int) -> Optional[datetime.timedelta]:
        """
        Time left on the active attempt.

        None when the quiz has no time limit or the user has no active attempt.
        Never negative.
        """
        async with unit_of_work(self._session_factory) as store:
            quiz = await store.quizzes.get(quiz_id)
            if quiz is None or quiz.time_limit_minutes is None:
                return None
            attempt = await store.attempts.get_active(quiz_id, user_id)
        if attempt is None:
            return None
        deadline = attempt.started_at + datetime.timedelta(minutes=quiz.time_limit_minutes)
        return max(deadline - self._clock(), datetime.timedelta(0))

    @log_execution_time(logger)
    async def submit(self, quiz_id: int, user_id: int,
                     answers: Sequence[SubmittedAnswer]) -> OperationResult[SubmissionResult]:
        """
        Grade and complete the user's active attempt.

        Answers for questions not in the quiz are ignored, and only the first
        answer per question counts. Unanswered questions earn nothing and get
        no answer row. Everything is written in one transaction.

        Returns:
            Result holding the completed attempt and the per-answer breakdown
        """
        log = LoggerAdapter(logger, {"quiz_id": quiz_id, "user_id": user_id})

        async with unit_of_work(self._session_factory) as store:
            quiz = await store.quizzes.get(quiz_id)
            if quiz is None:
                return OperationResult.not_found(FailureReason.QUIZ_NOT_FOUND, f"Quiz {quiz_id} not found")

            attempt = await store.attempts.get_active(quiz_id, user_id)
            if attempt is None:
                log.warning("Submit refused: no active attempt")
                return OperationResult.invalid_state(
                    FailureReason.NO_ACTIVE_ATTEMPT, f"User {user_id} has no active attempt for quiz {quiz_id}"
                )
            log = log.with_context(attempt_id=attempt.id)

            now = self._clock()
            elapsed = now - attempt.started_at
            if quiz.time_limit_minutes is not None and elapsed > datetime.timedelta(minutes=quiz.time_limit_minutes):
                log.warning(f"Submit refused: {elapsed} exceeds the {quiz.time_limit_minutes} minute limit")
                return OperationResult.invalid_state(
                    FailureReason.TIME_LIMIT_EXCEEDED,
                    f"Time limit of {quiz.time_limit_minutes} minutes exceeded",
                )

            entries = {entry.question.id: entry for entry in await store.quiz_questions.list_entries(quiz_id)}
            rows, breakdown = [], []
            for answer in answers:
                entry = entries.pop(answer.question_id, None)
                if entry is None:
                    log.debug(f"Ignoring answer for question {answer.question_id}")
                    continue
                answer = answer_for_question(entry.question, answer)
                outcome = grade(entry.question, answer, entry.points)
                rows.append(UserAnswer(
                    id=None,
                    attempt_id=attempt.id,
                    question_id=answer.question_id,
                    selected_option_id=answer.selected_option_id,
                    boolean_answer=answer.boolean_answer,
                    is_correct=outcome.is_correct,
                    points_earned=outcome.points_earned,
                    answered_at=now,
                ))
                breakdown.append(describe(entry, answer, outcome))

            # Points raised after the attempt started cannot push the score past its total
            score = min(sum(row.points_earned for row in rows), attempt.total_points)
            attempt.score = score
            attempt.completed_at = now
            attempt.time_taken_minutes = round_minutes(elapsed)
            attempt.passed = is_passing(score, attempt.total_points, quiz.passing_score)

            if not await store.attempts.complete(attempt):
                log.warning("Submit refused: attempt was completed by another request")
                return OperationResult.invalid_state(
                    FailureReason.NO_ACTIVE_ATTEMPT, f"User {user_id} has no active attempt for quiz {quiz_id}"
                )
            await store.answers.add_many(rows)

        log.info(
            f"Attempt submitted: score {attempt.score}/{attempt.total_points} "
            f"({attempt.score_percentage:.1f}%), passed={attempt.passed}, {len(rows)} answers"
        )
        return OperationResult.ok(SubmissionResult(attempt=attempt, answers=breakdown))

    async def get_questions_for_attempt(self, quiz_id: int, user_id: int) -> OperationResult[List[QuestionView]]:
        """Student view of the quiz questions; only available while an attempt is in progress."""
        async with unit_of_work(self._session_factory) as store:
            if await store.quizzes.get(quiz_id) is None:
                return OperationResult.not_found(FailureReason.QUIZ_NOT_FOUND, f"Quiz {quiz_id} not found")
            if await store.attempts.get_active(quiz_id, user_id) is None:
                return OperationResult.invalid_state(
                    FailureReason.NO_ACTIVE_ATTEMPT, f"User {user_id} has no active attempt for quiz {quiz_id}"
                )
            entries = await store.quiz_questions.list_entries(quiz_id)
        return OperationResult.ok([present_question(entry, reveal_answers=False) for entry in entries])

    async def _rebuild_result(self, store: AssessmentStore, attempt: QuizAttempt) -> SubmissionResult:
        if not attempt.is_completed:
            return SubmissionResult(attempt=attempt)

        answers = await store.answers.list_for_attempts([attempt.id])
        questions = await store.questions.get_many([answer.question_id for answer in answers])
        links: Dict[int, QuizQuestion] = {
            link.question_id: link for link in await store.quiz_questions.list_links(attempt.quiz_id)
        }
        breakdown = []
        for answer in answers:
            question = questions.get(answer.question_id)
            if question is None:
                continue
            link = links.get(question.id) or QuizQuestion(attempt.quiz_id, question.id, order_index=0)
            submitted = SubmittedAnswer(answer.question_id, answer.selected_option_id, answer.boolean_answer)
            outcome = GradeOutcome(answer.is_correct, answer.points_earned)
            breakdown.append(describe(QuizEntry(link=link, question=question), submitted, outcome))
        return SubmissionResult(attempt=attempt, answers=breakdown)

    async def get_attempt(self, attempt_id: int, user_id: int) -> OperationResult[SubmissionResult]:
        """
        One of the user's attempts. Completed attempts come with their stored
        answer breakdown; the stored grading is reported, never recomputed.
        """
        async with unit_of_work(self._session_factory) as store:
            attempt = await store.attempts.get(attempt_id)
            if attempt is None:
                return OperationResult.not_found(FailureReason.ATTEMPT_NOT_FOUND, f"Attempt {attempt_id} not found")
            if attempt.user_id != user_id:
                return OperationResult.unauthorized(f"Attempt {attempt_id} belongs to another user")
            return OperationResult.ok(await self._rebuild_result(store, attempt))

    async def list_user_attempts(self, quiz_id: int, user_id: int) -> List[QuizAttempt]:
        """All of the user's attempts at the quiz, newest first."""
        async with unit_of_work(self._session_factory) as store:
            return await store.attempts.list_for_user(quiz_id, user_id)

    async def get_best_attempt(self, quiz_id: int, user_id: int) -> Optional[QuizAttempt]:
        """Highest-scoring completed attempt; ties go to the most recent one."""
        attempts = [a for a in await self.list_user_attempts(quiz_id, user_id) if a.is_completed]
        if not attempts:
            return None
        return max(attempts, key=lambda a: (a.score_percentage, a.started_at, a.attempt_number))

    # --- instructor review -------------------------------------------------------

    async def list_quiz_attempts(self, quiz_id: int, instructor_id: int) -> OperationResult[List[QuizAttempt]]:
        """Every user's attempts at a quiz the instructor owns, newest first."""
        async with unit_of_work(self._session_factory) as store:
            owned = await load_owned_quiz(store, quiz_id, instructor_id)
            if not owned.success:
                return owned.propagate()
            return OperationResult.ok(await store.attempts.list_for_quiz(quiz_id))

    async def get_attempt_details(self, attempt_id: int, instructor_id: int) -> OperationResult[SubmissionResult]:
        """
        Any user's attempt, for the instructor who created its quiz. Attempts
        of a deleted quiz stay visible to its creator.
        """
        async with unit_of_work(self._session_factory) as store:
            attempt = await store.attempts.get(attempt_id)
            if attempt is None:
                return OperationResult.not_found(FailureReason.ATTEMPT_NOT_FOUND, f"Attempt {attempt_id} not found")
            quiz = await store.quizzes.get(attempt.quiz_id, include_deleted=True)
            if quiz is None or quiz.instructor_id != instructor_id:
                return OperationResult.unauthorized(
                    f"Instructor {instructor_id} does not own the quiz of attempt {attempt_id}"
                )
            return OperationResult.ok(await self._rebuild_result(store, attempt))
