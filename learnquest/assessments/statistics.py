"""
Statistics Aggregator

Read-only analytics over completed attempts: pass rate and score summary,
score distribution, per-question difficulty and per-option selection.
Attempts still in progress are never counted. Empty data yields zeroed
results, never an error.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy.ext.asyncio import async_sessionmaker

from learnquest.assessments.catalog import load_owned_quiz
from learnquest.assessments.collaborators import CourseDirectory
from learnquest.assessments.models import QuestionType, QuizAttempt, QuizEntry, UserAnswer
from learnquest.assessments.repositories import unit_of_work
from learnquest.common.exceptions import FailureReason
from learnquest.common.logger import app_logger
from learnquest.common.results import OperationResult
from learnquest.common.serialization import SerializableMixin
from learnquest.common.utils import percentage, safe_divide

logger = app_logger.getChild("assessments.statistics")

# Inclusive percentage ranges; a score goes to the first bucket whose upper bound covers it
SCORE_BUCKETS = ((0, 20), (21, 40), (41, 60), (61, 80), (81, 100))

DIFFICULTY_LABELS = ((0.8, "Easy"), (0.6, "Medium"), (0.4, "Hard"))
HARDEST_LABEL = "Very Hard"

LOW_ACCURACY = 40.0
HIGH_ACCURACY = 90.0


@dataclass
class QuestionStat(SerializableMixin):
    question_id: int
    question_text: str
    total_answers: int
    correct_answers: int
    correct_percentage: float
    difficulty_index: float
    difficulty_label: str


@dataclass
class ScoreBucket(SerializableMixin):
    range_label: str
    min_score: int
    max_score: int
    count: int
    percentage: float


@dataclass
class AttemptSummary(SerializableMixin):
    total_attempts: int = 0
    passed_attempts: int = 0
    pass_rate: float = 0.0
    average_score: float = 0.0
    highest_score: float = 0.0
    lowest_score: float = 0.0
    average_time_minutes: float = 0.0


@dataclass
class QuizStatistics(SerializableMixin):
    quiz_id: int
    title: str
    unique_students: int
    summary: AttemptSummary
    question_stats: List[QuestionStat] = field(default_factory=list)
    score_distribution: List[ScoreBucket] = field(default_factory=list)


@dataclass
class OptionAnalytics(SerializableMixin):
    option_id: Optional[int]
    text: str
    is_correct: bool
    selection_count: int
    selection_percentage: float


@dataclass
class QuestionAnalytics(SerializableMixin):
    question_id: int
    question_text: str
    question_type: QuestionType
    total_answers: int
    correct_answers: int
    difficulty_index: float
    difficulty_label: str
    options: List[OptionAnalytics] = field(default_factory=list)


@dataclass
class QuizPerformance(SerializableMixin):
    quiz_id: int
    title: str
    total_attempts: int
    unique_students: int
    pass_rate: float
    average_score: float


@dataclass
class CoursePerformance(SerializableMixin):
    course_id: int
    total_quizzes: int
    total_attempts: int
    unique_students: int
    pass_rate: float
    average_score: float
    quizzes: List[QuizPerformance] = field(default_factory=list)


@dataclass
class QuestionInsight(SerializableMixin):
    question_id: int
    question_text: str
    total_answers: int
    correct_answers: int
    accuracy: float
    recommendations: List[str] = field(default_factory=list)


# --- pure aggregation ---------------------------------------------------------

def difficulty_label(index: float) -> str:
    for threshold, label in DIFFICULTY_LABELS:
        if index >= threshold:
            return label
    return HARDEST_LABEL


def summarize_attempts(attempts: Sequence[QuizAttempt]) -> AttemptSummary:
    """Pass rate and score figures over completed attempts."""
    completed = [attempt for attempt in attempts if attempt.is_completed]
    if not completed:
        return AttemptSummary()

    scores = [attempt.score_percentage for attempt in completed]
    passed = sum(1 for attempt in completed if attempt.passed)
    times = [attempt.time_taken_minutes for attempt in completed if attempt.time_taken_minutes is not None]
    return AttemptSummary(
        total_attempts=len(completed),
        passed_attempts=passed,
        pass_rate=round(percentage(passed, len(completed)), 2),
        average_score=round(sum(scores) / len(scores), 2),
        highest_score=round(max(scores), 2),
        lowest_score=round(min(scores), 2),
        average_time_minutes=round(safe_divide(sum(times), len(times)), 2),
    )


def score_distribution(attempts: Sequence[QuizAttempt]) -> List[ScoreBucket]:
    """
    Count completed attempts per fixed score range.

    Ranges are closed on both ends, so a boundary score such as 40 belongs to
    the lower range (21-40).
    """
    completed = [attempt for attempt in attempts if attempt.is_completed]
    counts = [0] * len(SCORE_BUCKETS)
    for attempt in completed:
        score = attempt.score_percentage
        for index, (_, upper) in enumerate(SCORE_BUCKETS):
            if score <= upper:
                counts[index] += 1
                break

    return [
        ScoreBucket(
            range_label=f"{lower}-{upper}",
            min_score=lower,
            max_score=upper,
            count=count,
            percentage=round(percentage(count, len(completed)), 2),
        )
        for (lower, upper), count in zip(SCORE_BUCKETS, counts)
    ]


def _tally(answers: Iterable[UserAnswer]) -> Dict[int, List[int]]:
    """question id -> [answers, correct answers]"""
    tally: Dict[int, List[int]] = {}
    for answer in answers:
        counts = tally.setdefault(answer.question_id, [0, 0])
        counts[0] += 1
        if answer.is_correct:
            counts[1] += 1
    return tally


def question_stats(entries: Sequence[QuizEntry], answers: Iterable[UserAnswer]) -> List[QuestionStat]:
    """Per-question correctness for the linked questions, in quiz order."""
    tally = _tally(answers)
    stats = []
    for entry in entries:
        total, correct = tally.get(entry.question.id, (0, 0))
        index = safe_divide(correct, total)
        stats.append(QuestionStat(
            question_id=entry.question.id,
            question_text=entry.question.text,
            total_answers=total,
            correct_answers=correct,
            correct_percentage=round(percentage(correct, total), 2),
            difficulty_index=round(index, 4),
            difficulty_label=difficulty_label(index),
        ))
    return stats


def question_analytics(entry: QuizEntry, answers: Sequence[UserAnswer]) -> QuestionAnalytics:
    """Difficulty and per-option selection counts for one question."""
    question = entry.question
    total = len(answers)
    correct = sum(1 for answer in answers if answer.is_correct)
    index = safe_divide(correct, total)

    if question.question_type is QuestionType.TRUE_FALSE:
        # True/false answers carry a boolean, so count them against the option text
        selections = Counter(
            "true" if answer.boolean_answer else "false"
            for answer in answers if answer.boolean_answer is not None
        )
        counts = {option.id: selections[option.text.strip().lower()] for option in question.options}
    else:
        selections = Counter(answer.selected_option_id for answer in answers)
        counts = {option.id: selections[option.id] for option in question.options}

    return QuestionAnalytics(
        question_id=question.id,
        question_text=question.text,
        question_type=question.question_type,
        total_answers=total,
        correct_answers=correct,
        difficulty_index=round(index, 4),
        difficulty_label=difficulty_label(index),
        options=[
            OptionAnalytics(
                option_id=option.id,
                text=option.text,
                is_correct=option.is_correct,
                selection_count=counts[option.id],
                selection_percentage=round(percentage(counts[option.id], total), 2),
            )
            for option in question.options
        ],
    )


def accuracy_recommendations(accuracy: float, total_answers: int) -> List[str]:
    if total_answers == 0:
        return ["Not answered yet"]
    if accuracy < LOW_ACCURACY:
        return ["Low accuracy: review the question wording and options for clarity"]
    if accuracy > HIGH_ACCURACY:
        return ["High accuracy: the question may be too easy"]
    return []


# --- service ----------------------------------------------------------------------

class StatisticsAggregator:
    """Instructor-facing analytics. Only the quiz or course owner may read them."""

    def __init__(self, session_factory: async_sessionmaker, courses: CourseDirectory):
        self._session_factory = session_factory
        self._courses = courses

    async def get_quiz_statistics(self, quiz_id: int, instructor_id: int) -> OperationResult[QuizStatistics]:
        async with unit_of_work(self._session_factory) as store:
            owned = await load_owned_quiz(store, quiz_id, instructor_id)
            if not owned.success:
                return owned.propagate()
            quiz = owned.value

            attempts = await store.attempts.list_completed([quiz_id])
            answers = await store.answers.list_for_attempts([attempt.id for attempt in attempts])
            entries = await store.quiz_questions.list_entries(quiz_id)

        statistics = QuizStatistics(
            quiz_id=quiz.id,
            title=quiz.title,
            unique_students=len({attempt.user_id for attempt in attempts}),
            summary=summarize_attempts(attempts),
            question_stats=question_stats(entries, answers),
            score_distribution=score_distribution(attempts),
        )
        logger.debug(f"Statistics for quiz {quiz_id} over {len(attempts)} completed attempts")
        return OperationResult.ok(statistics)

    async def get_question_analytics(self, quiz_id: int,
                                     instructor_id: int) -> OperationResult[List[QuestionAnalytics]]:
        async with unit_of_work(self._session_factory) as store:
            owned = await load_owned_quiz(store, quiz_id, instructor_id)
            if not owned.success:
                return owned.propagate()
            attempts = await store.attempts.list_completed([quiz_id])
            answers = await store.answers.list_for_attempts([attempt.id for attempt in attempts])
            entries = await store.quiz_questions.list_entries(quiz_id)

        by_question: Dict[int, List[UserAnswer]] = {}
        for answer in answers:
            by_question.setdefault(answer.question_id, []).append(answer)
        return OperationResult.ok([
            question_analytics(entry, by_question.get(entry.question.id, [])) for entry in entries
        ])

    async def get_course_performance(self, course_id: int, instructor_id: int,
                                     exams_only: bool = True) -> OperationResult[CoursePerformance]:
        """Attempt figures across the course's exams (or all of its quizzes)."""
        if not await self._courses.course_exists(course_id):
            return OperationResult.not_found(FailureReason.COURSE_NOT_FOUND, f"Course {course_id} not found")
        if not await self._courses.is_course_instructor(course_id, instructor_id):
            return OperationResult.unauthorized(f"Instructor {instructor_id} does not own course {course_id}")

        async with unit_of_work(self._session_factory) as store:
            if exams_only:
                quizzes = await store.quizzes.list_exams(course_id=course_id)
            else:
                quizzes = await store.quizzes.list_by_course(course_id)
            attempts = await store.attempts.list_completed([quiz.id for quiz in quizzes])

        by_quiz: Dict[int, List[QuizAttempt]] = {}
        for attempt in attempts:
            by_quiz.setdefault(attempt.quiz_id, []).append(attempt)

        per_quiz = []
        for quiz in quizzes:
            quiz_attempts = by_quiz.get(quiz.id, [])
            summary = summarize_attempts(quiz_attempts)
            per_quiz.append(QuizPerformance(
                quiz_id=quiz.id,
                title=quiz.title,
                total_attempts=summary.total_attempts,
                unique_students=len({attempt.user_id for attempt in quiz_attempts}),
                pass_rate=summary.pass_rate,
                average_score=summary.average_score,
            ))

        overall = summarize_attempts(attempts)
        return OperationResult.ok(CoursePerformance(
            course_id=course_id,
            total_quizzes=len(quizzes),
            total_attempts=overall.total_attempts,
            unique_students=len({attempt.user_id for attempt in attempts}),
            pass_rate=overall.pass_rate,
            average_score=overall.average_score,
            quizzes=per_quiz,
        ))

    async def get_question_statistics(self, question_id: int,
                                      instructor_id: int) -> OperationResult[QuestionInsight]:
        """Accuracy of a question across every quiz it appears in."""
        async with unit_of_work(self._session_factory) as store:
            question = await store.questions.get(question_id)
            if question is None:
                return OperationResult.not_found(
                    FailureReason.QUESTION_NOT_FOUND, f"Question {question_id} not found"
                )
            if question.instructor_id != instructor_id:
                return OperationResult.unauthorized(
                    f"Instructor {instructor_id} does not own question {question_id}"
                )
            answers = await store.answers.list_for_question(question_id)

        correct = sum(1 for answer in answers if answer.is_correct)
        accuracy = round(percentage(correct, len(answers)), 2)
        return OperationResult.ok(QuestionInsight(
            question_id=question.id,
            question_text=question.text,
            total_answers=len(answers),
            correct_answers=correct,
            accuracy=accuracy,
            recommendations=accuracy_recommendations(accuracy, len(answers)),
        ))

    async def get_recent_attempts(self, quiz_id: int, instructor_id: int,
                                  count: int = 10) -> OperationResult[List[QuizAttempt]]:
        async with unit_of_work(self._session_factory) as store:
            owned = await load_owned_quiz(store, quiz_id, instructor_id)
            if not owned.success:
                return owned.propagate()
            return OperationResult.ok(await store.attempts.list_recent([quiz_id], count))

    async def get_instructor_recent_attempts(self, instructor_id: int, count: int = 10) -> List[QuizAttempt]:
        """Latest attempts across all of the instructor's quizzes, newest first."""
        async with unit_of_work(self._session_factory) as store:
            return await store.attempts.list_recent_for_instructor(instructor_id, count)
