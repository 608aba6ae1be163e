"""
Assessment Repositories

SQLAlchemy-backed data access for the assessment tables. Each repository works
on the ``AsyncSession`` it is given and never commits; the service owning the
session decides when the unit of work ends. ORM rows are mapped to domain
dataclasses by explicit functions, one per entity.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import and_, delete, exists, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from learnquest.assessments.database_models import (
    QuestionOptionRecord,
    QuestionRecord,
    QuizAttemptRecord,
    QuizQuestionRecord,
    QuizRecord,
    UserAnswerRecord,
)
from learnquest.assessments.models import (
    Question,
    QuestionOption,
    QuestionType,
    Quiz,
    QuizAttempt,
    QuizEntry,
    QuizQuestion,
    QuizType,
    UserAnswer,
)
from learnquest.common.db.session import session_scope
from learnquest.common.logger import app_logger
from learnquest.common.utils import utc_now

logger = app_logger.getChild("assessments.repositories")


# --- ORM -> domain mapping ---------------------------------------------------

def quiz_to_domain(row: QuizRecord) -> Quiz:
    return Quiz(
        id=row.id,
        title=row.title,
        description=row.description,
        quiz_type=QuizType(row.quiz_type),
        course_id=row.course_id,
        content_id=row.content_id,
        section_id=row.section_id,
        level_id=row.level_id,
        instructor_id=row.instructor_id,
        max_attempts=row.max_attempts,
        passing_score=row.passing_score,
        is_required=row.is_required,
        time_limit_minutes=row.time_limit_minutes,
        is_active=row.is_active,
        is_deleted=row.is_deleted,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def option_to_domain(row: QuestionOptionRecord) -> QuestionOption:
    return QuestionOption(
        id=row.id,
        question_id=row.question_id,
        text=row.text,
        is_correct=row.is_correct,
        order_index=row.order_index,
    )


def question_to_domain(row: QuestionRecord, options: Iterable[QuestionOptionRecord]) -> Question:
    return Question(
        id=row.id,
        text=row.text,
        question_type=QuestionType(row.question_type),
        points=row.points,
        instructor_id=row.instructor_id,
        course_id=row.course_id,
        explanation=row.explanation,
        is_active=row.is_active,
        created_at=row.created_at,
        options=sorted((option_to_domain(o) for o in options), key=lambda o: (o.order_index, o.id)),
    )


def link_to_domain(row: QuizQuestionRecord) -> QuizQuestion:
    return QuizQuestion(
        id=row.id,
        quiz_id=row.quiz_id,
        question_id=row.question_id,
        order_index=row.order_index,
        custom_points=row.custom_points,
    )


def attempt_to_domain(row: QuizAttemptRecord) -> QuizAttempt:
    return QuizAttempt(
        id=row.id,
        quiz_id=row.quiz_id,
        user_id=row.user_id,
        attempt_number=row.attempt_number,
        started_at=row.started_at,
        completed_at=row.completed_at,
        score=row.score,
        total_points=row.total_points,
        passed=row.passed,
        time_taken_minutes=row.time_taken_minutes,
    )


def answer_to_domain(row: UserAnswerRecord) -> UserAnswer:
    return UserAnswer(
        id=row.id,
        attempt_id=row.attempt_id,
        question_id=row.question_id,
        selected_option_id=row.selected_option_id,
        boolean_answer=row.boolean_answer,
        is_correct=row.is_correct,
        points_earned=row.points_earned,
        answered_at=row.answered_at,
    )


# --- Repositories --------------------------------------------------------------

class QuizRepository:
    """Quiz definitions. Soft-deleted quizzes are hidden unless asked for."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_row(self, quiz_id: int, include_deleted: bool = False) -> Optional[QuizRecord]:
        row = await self.session.get(QuizRecord, quiz_id)
        if row is None or (row.is_deleted and not include_deleted):
            return None
        return row

    async def get(self, quiz_id: int, include_deleted: bool = False) -> Optional[Quiz]:
        row = await self._get_row(quiz_id, include_deleted)
        return quiz_to_domain(row) if row else None

    async def add(self, quiz: Quiz) -> Quiz:
        row = QuizRecord(
            title=quiz.title,
            description=quiz.description,
            quiz_type=quiz.quiz_type.value,
            course_id=quiz.course_id,
            content_id=quiz.content_id,
            section_id=quiz.section_id,
            level_id=quiz.level_id,
            instructor_id=quiz.instructor_id,
            max_attempts=quiz.max_attempts,
            passing_score=quiz.passing_score,
            is_required=quiz.is_required,
            time_limit_minutes=quiz.time_limit_minutes,
            is_active=quiz.is_active,
            is_deleted=quiz.is_deleted,
            created_at=quiz.created_at or utc_now(),
        )
        self.session.add(row)
        await self.session.flush()
        return quiz_to_domain(row)

    async def update(self, quiz_id: int, changes: Dict) -> Optional[Quiz]:
        row = await self._get_row(quiz_id)
        if row is None:
            return None
        row.update(changes)
        await self.session.flush()
        return quiz_to_domain(row)

    async def _list(self, *conditions, include_inactive: bool = True) -> List[Quiz]:
        stmt = select(QuizRecord).where(QuizRecord.is_deleted.is_(False), *conditions)
        if not include_inactive:
            stmt = stmt.where(QuizRecord.is_active.is_(True))
        result = await self.session.execute(stmt.order_by(QuizRecord.created_at, QuizRecord.id))
        return [quiz_to_domain(row) for row in result.scalars()]

    async def list_by_course(self, course_id: int, include_inactive: bool = True) -> List[Quiz]:
        return await self._list(QuizRecord.course_id == course_id, include_inactive=include_inactive)

    async def list_by_instructor(self, instructor_id: int) -> List[Quiz]:
        return await self._list(QuizRecord.instructor_id == instructor_id)

    async def list_by_type(self, quiz_type: QuizType, entity_id: Optional[int] = None) -> List[Quiz]:
        conditions = [QuizRecord.quiz_type == quiz_type.value]
        if entity_id is not None:
            scope_column = {
                QuizType.CONTENT_QUIZ: QuizRecord.content_id,
                QuizType.SECTION_QUIZ: QuizRecord.section_id,
                QuizType.LEVEL_QUIZ: QuizRecord.level_id,
                QuizType.COURSE_QUIZ: QuizRecord.course_id,
                QuizType.EXAM_QUIZ: QuizRecord.course_id,
            }[quiz_type]
            conditions.append(scope_column == entity_id)
        return await self._list(*conditions, include_inactive=False)

    async def list_exams(self, course_id: Optional[int] = None, level_id: Optional[int] = None,
                         instructor_id: Optional[int] = None) -> List[Quiz]:
        conditions = [QuizRecord.quiz_type == QuizType.EXAM_QUIZ.value]
        if course_id is not None:
            conditions.append(QuizRecord.course_id == course_id)
        if level_id is not None:
            conditions.append(QuizRecord.level_id == level_id)
        if instructor_id is not None:
            conditions.append(QuizRecord.instructor_id == instructor_id)
        return await self._list(*conditions)

    async def list_required(self, content_id: Optional[int] = None, section_id: Optional[int] = None,
                            level_id: Optional[int] = None, course_id: Optional[int] = None) -> List[Quiz]:
        """
        Required, active quizzes attached to any of the given scopes.

        The course scope only matches quizzes of type ``COURSE_QUIZ``; the other
        quizzes of a course are reached through their narrower scope.
        """
        scopes = []
        if content_id is not None:
            scopes.append(QuizRecord.content_id == content_id)
        if section_id is not None:
            scopes.append(QuizRecord.section_id == section_id)
        if level_id is not None:
            scopes.append(QuizRecord.level_id == level_id)
        if course_id is not None:
            scopes.append(and_(
                QuizRecord.course_id == course_id,
                QuizRecord.quiz_type == QuizType.COURSE_QUIZ.value,
            ))
        if not scopes:
            return []
        return await self._list(QuizRecord.is_required.is_(True), or_(*scopes), include_inactive=False)


class QuestionRepository:
    """Questions together with their options."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _options_for(self, question_ids: Sequence[int]) -> Dict[int, List[QuestionOptionRecord]]:
        grouped: Dict[int, List[QuestionOptionRecord]] = {qid: [] for qid in question_ids}
        if not question_ids:
            return grouped
        result = await self.session.execute(
            select(QuestionOptionRecord).where(QuestionOptionRecord.question_id.in_(question_ids))
        )
        for option in result.scalars():
            grouped[option.question_id].append(option)
        return grouped

    async def get(self, question_id: int) -> Optional[Question]:
        row = await self.session.get(QuestionRecord, question_id)
        if row is None:
            return None
        options = await self._options_for([question_id])
        return question_to_domain(row, options[question_id])

    async def get_many(self, question_ids: Sequence[int]) -> Dict[int, Question]:
        if not question_ids:
            return {}
        result = await self.session.execute(
            select(QuestionRecord).where(QuestionRecord.id.in_(list(question_ids)))
        )
        rows = list(result.scalars())
        options = await self._options_for([row.id for row in rows])
        return {row.id: question_to_domain(row, options[row.id]) for row in rows}

    async def add(self, question: Question) -> Question:
        row = QuestionRecord(
            text=question.text,
            question_type=question.question_type.value,
            points=question.points,
            instructor_id=question.instructor_id,
            course_id=question.course_id,
            explanation=question.explanation,
            is_active=question.is_active,
            created_at=question.created_at or utc_now(),
        )
        self.session.add(row)
        await self.session.flush()

        option_rows = [
            QuestionOptionRecord(
                question_id=row.id,
                text=option.text,
                is_correct=option.is_correct,
                order_index=option.order_index,
            )
            for option in question.options
        ]
        self.session.add_all(option_rows)
        await self.session.flush()
        return question_to_domain(row, option_rows)

    async def update(self, question_id: int, changes: Dict) -> None:
        row = await self.session.get(QuestionRecord, question_id)
        if row is not None:
            row.update(changes)
            await self.session.flush()

    async def add_option(self, question_id: int, text: str, is_correct: bool, order_index: int) -> None:
        self.session.add(QuestionOptionRecord(
            question_id=question_id, text=text, is_correct=is_correct, order_index=order_index
        ))
        await self.session.flush()

    async def update_option(self, option_id: int, changes: Dict) -> bool:
        row = await self.session.get(QuestionOptionRecord, option_id)
        if row is None:
            return False
        row.update(changes)
        await self.session.flush()
        return True

    async def delete_option(self, option_id: int) -> None:
        await self.session.execute(delete(QuestionOptionRecord).where(QuestionOptionRecord.id == option_id))

    async def is_used_in_active_quiz(self, question_id: int) -> bool:
        stmt = select(exists().where(
            QuizQuestionRecord.question_id == question_id,
            QuizQuestionRecord.quiz_id == QuizRecord.id,
            QuizRecord.is_active.is_(True),
            QuizRecord.is_deleted.is_(False),
        ))
        return bool(await self.session.scalar(stmt))

    async def list_for_course(self, course_id: int, instructor_id: int, search: Optional[str] = None,
                              order_by_text: bool = False) -> List[Question]:
        """
        Active questions of an instructor in a course.

        ``search`` matches the text or the explanation, case-insensitively.
        Results are newest first unless ``order_by_text`` is set.
        """
        stmt = select(QuestionRecord).where(
            QuestionRecord.course_id == course_id,
            QuestionRecord.instructor_id == instructor_id,
            QuestionRecord.is_active.is_(True),
        )
        if search:
            term = search.lower()
            stmt = stmt.where(or_(
                func.lower(QuestionRecord.text).contains(term, autoescape=True),
                func.lower(func.coalesce(QuestionRecord.explanation, "")).contains(term, autoescape=True),
            ))
        if order_by_text:
            stmt = stmt.order_by(QuestionRecord.text, QuestionRecord.id)
        else:
            stmt = stmt.order_by(QuestionRecord.created_at.desc(), QuestionRecord.id.desc())
        rows = list((await self.session.execute(stmt)).scalars())
        options = await self._options_for([row.id for row in rows])
        return [question_to_domain(row, options[row.id]) for row in rows]

    async def usage_counts(self, question_ids: Sequence[int]) -> Dict[int, int]:
        """Number of active, non-deleted quizzes each question is linked to."""
        counts = {qid: 0 for qid in question_ids}
        if not question_ids:
            return counts
        result = await self.session.execute(
            select(QuizQuestionRecord.question_id, func.count(QuizQuestionRecord.quiz_id))
            .join(QuizRecord, QuizRecord.id == QuizQuestionRecord.quiz_id)
            .where(
                QuizQuestionRecord.question_id.in_(list(question_ids)),
                QuizRecord.is_active.is_(True),
                QuizRecord.is_deleted.is_(False),
            )
            .group_by(QuizQuestionRecord.question_id)
        )
        for question_id, count in result.all():
            counts[question_id] = count
        return counts


class QuizQuestionRepository:
    """Quiz-to-question links."""

    def __init__(self, session: AsyncSession, questions: QuestionRepository):
        self.session = session
        self.questions = questions

    async def list_links(self, quiz_id: int) -> List[QuizQuestion]:
        result = await self.session.execute(
            select(QuizQuestionRecord)
            .where(QuizQuestionRecord.quiz_id == quiz_id)
            .order_by(QuizQuestionRecord.order_index, QuizQuestionRecord.id)
        )
        return [link_to_domain(row) for row in result.scalars()]

    async def list_entries(self, quiz_id: int) -> List[QuizEntry]:
        """Linked questions in quiz order. Links to missing questions are skipped."""
        links = await self.list_links(quiz_id)
        questions = await self.questions.get_many([link.question_id for link in links])
        entries = []
        for link in links:
            question = questions.get(link.question_id)
            if question is None:
                logger.warning(f"Quiz {quiz_id} links to missing question {link.question_id}")
                continue
            entries.append(QuizEntry(link=link, question=question))
        return entries

    async def max_order_index(self, quiz_id: int) -> int:
        value = await self.session.scalar(
            select(func.max(QuizQuestionRecord.order_index)).where(QuizQuestionRecord.quiz_id == quiz_id)
        )
        return value or 0

    async def link(self, quiz_id: int, question_id: int, order_index: int,
                   custom_points: Optional[int] = None) -> QuizQuestion:
        row = QuizQuestionRecord(
            quiz_id=quiz_id, question_id=question_id, order_index=order_index, custom_points=custom_points
        )
        self.session.add(row)
        await self.session.flush()
        return link_to_domain(row)

    async def unlink(self, quiz_id: int, question_id: int) -> bool:
        result = await self.session.execute(
            delete(QuizQuestionRecord).where(
                QuizQuestionRecord.quiz_id == quiz_id,
                QuizQuestionRecord.question_id == question_id,
            )
        )
        return result.rowcount > 0

    async def _link_rows(self, quiz_id: int) -> Dict[int, QuizQuestionRecord]:
        result = await self.session.execute(
            select(QuizQuestionRecord).where(QuizQuestionRecord.quiz_id == quiz_id)
        )
        return {row.question_id: row for row in result.scalars()}

    async def set_order(self, quiz_id: int, orders: Dict[int, int]) -> int:
        """Apply ``question_id -> order_index``; returns how many links changed."""
        rows = await self._link_rows(quiz_id)
        changed = 0
        for question_id, order_index in orders.items():
            row = rows.get(question_id)
            if row is not None:
                row.order_index = order_index
                changed += 1
        await self.session.flush()
        return changed

    async def set_custom_points(self, quiz_id: int, points: Dict[int, Optional[int]]) -> int:
        rows = await self._link_rows(quiz_id)
        changed = 0
        for question_id, value in points.items():
            row = rows.get(question_id)
            if row is not None:
                row.custom_points = value
                changed += 1
        await self.session.flush()
        return changed


class AttemptRepository:
    """Quiz attempts."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, attempt_id: int) -> Optional[QuizAttempt]:
        row = await self.session.get(QuizAttemptRecord, attempt_id)
        return attempt_to_domain(row) if row else None

    async def count_for_user(self, quiz_id: int, user_id: int) -> int:
        value = await self.session.scalar(
            select(func.count(QuizAttemptRecord.id)).where(
                QuizAttemptRecord.quiz_id == quiz_id,
                QuizAttemptRecord.user_id == user_id,
            )
        )
        return value or 0

    async def get_active(self, quiz_id: int, user_id: int) -> Optional[QuizAttempt]:
        result = await self.session.execute(
            select(QuizAttemptRecord).where(
                QuizAttemptRecord.quiz_id == quiz_id,
                QuizAttemptRecord.user_id == user_id,
                QuizAttemptRecord.completed_at.is_(None),
            ).order_by(QuizAttemptRecord.started_at.desc())
        )
        row = result.scalars().first()
        return attempt_to_domain(row) if row else None

    async def has_passed(self, quiz_id: int, user_id: int) -> bool:
        stmt = select(exists().where(
            QuizAttemptRecord.quiz_id == quiz_id,
            QuizAttemptRecord.user_id == user_id,
            QuizAttemptRecord.completed_at.is_not(None),
            QuizAttemptRecord.passed.is_(True),
        ))
        return bool(await self.session.scalar(stmt))

    async def add(self, attempt: QuizAttempt) -> QuizAttempt:
        """Insert a new attempt. The unique indexes reject a second open attempt."""
        row = QuizAttemptRecord(
            quiz_id=attempt.quiz_id,
            user_id=attempt.user_id,
            attempt_number=attempt.attempt_number,
            started_at=attempt.started_at,
            score=attempt.score,
            total_points=attempt.total_points,
            passed=attempt.passed,
        )
        self.session.add(row)
        await self.session.flush()
        return attempt_to_domain(row)

    async def complete(self, attempt: QuizAttempt) -> bool:
        """
        Persist the result fields of a submitted attempt.

        Only an attempt that is still open is updated; False means another
        request completed it first.
        """
        result = await self.session.execute(
            update(QuizAttemptRecord)
            .where(QuizAttemptRecord.id == attempt.id, QuizAttemptRecord.completed_at.is_(None))
            .values(
                completed_at=attempt.completed_at,
                score=attempt.score,
                passed=attempt.passed,
                time_taken_minutes=attempt.time_taken_minutes,
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    async def list_for_user(self, quiz_id: int, user_id: int) -> List[QuizAttempt]:
        """Every attempt of the user at the quiz, newest first."""
        result = await self.session.execute(
            select(QuizAttemptRecord).where(
                QuizAttemptRecord.quiz_id == quiz_id,
                QuizAttemptRecord.user_id == user_id,
            ).order_by(QuizAttemptRecord.attempt_number.desc())
        )
        return [attempt_to_domain(row) for row in result.scalars()]

    async def list_completed(self, quiz_ids: Sequence[int]) -> List[QuizAttempt]:
        if not quiz_ids:
            return []
        result = await self.session.execute(
            select(QuizAttemptRecord).where(
                QuizAttemptRecord.quiz_id.in_(list(quiz_ids)),
                QuizAttemptRecord.completed_at.is_not(None),
            ).order_by(QuizAttemptRecord.completed_at, QuizAttemptRecord.id)
        )
        return [attempt_to_domain(row) for row in result.scalars()]

    async def list_recent(self, quiz_ids: Sequence[int], count: int = 10) -> List[QuizAttempt]:
        if not quiz_ids:
            return []
        result = await self.session.execute(
            select(QuizAttemptRecord)
            .where(QuizAttemptRecord.quiz_id.in_(list(quiz_ids)))
            .order_by(QuizAttemptRecord.started_at.desc(), QuizAttemptRecord.id.desc())
            .limit(count)
        )
        return [attempt_to_domain(row) for row in result.scalars()]

    async def list_for_quiz(self, quiz_id: int) -> List[QuizAttempt]:
        """Every attempt at the quiz by any user, newest first."""
        result = await self.session.execute(
            select(QuizAttemptRecord)
            .where(QuizAttemptRecord.quiz_id == quiz_id)
            .order_by(QuizAttemptRecord.started_at.desc(), QuizAttemptRecord.id.desc())
        )
        return [attempt_to_domain(row) for row in result.scalars()]

    async def list_recent_for_instructor(self, instructor_id: int, count: int = 10) -> List[QuizAttempt]:
        """Latest attempts across every quiz the instructor created, deleted quizzes included."""
        result = await self.session.execute(
            select(QuizAttemptRecord)
            .join(QuizRecord, QuizRecord.id == QuizAttemptRecord.quiz_id)
            .where(QuizRecord.instructor_id == instructor_id)
            .order_by(QuizAttemptRecord.started_at.desc(), QuizAttemptRecord.id.desc())
            .limit(count)
        )
        return [attempt_to_domain(row) for row in result.scalars()]


class AnswerRepository:
    """Graded user answers."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_many(self, answers: Sequence[UserAnswer]) -> List[UserAnswer]:
        rows = [
            UserAnswerRecord(
                attempt_id=answer.attempt_id,
                question_id=answer.question_id,
                selected_option_id=answer.selected_option_id,
                boolean_answer=answer.boolean_answer,
                is_correct=answer.is_correct,
                points_earned=answer.points_earned,
                answered_at=answer.answered_at,
            )
            for answer in answers
        ]
        self.session.add_all(rows)
        await self.session.flush()
        return [answer_to_domain(row) for row in rows]

    async def list_for_attempts(self, attempt_ids: Sequence[int]) -> List[UserAnswer]:
        if not attempt_ids:
            return []
        result = await self.session.execute(
            select(UserAnswerRecord)
            .where(UserAnswerRecord.attempt_id.in_(list(attempt_ids)))
            .order_by(UserAnswerRecord.id)
        )
        return [answer_to_domain(row) for row in result.scalars()]

    async def list_for_question(self, question_id: int) -> List[UserAnswer]:
        """Answers to the question from completed attempts only."""
        result = await self.session.execute(
            select(UserAnswerRecord)
            .join(QuizAttemptRecord, QuizAttemptRecord.id == UserAnswerRecord.attempt_id)
            .where(
                UserAnswerRecord.question_id == question_id,
                QuizAttemptRecord.completed_at.is_not(None),
            )
        )
        return [answer_to_domain(row) for row in result.scalars()]


class AssessmentStore:
    """
    All assessment repositories bound to one session.

    Services open one store per operation so that every read and write of that
    operation shares a transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.quizzes = QuizRepository(session)
        self.questions = QuestionRepository(session)
        self.quiz_questions = QuizQuestionRepository(session, self.questions)
        self.attempts = AttemptRepository(session)
        self.answers = AnswerRepository(session)


@asynccontextmanager
async def unit_of_work(session_factory: async_sessionmaker) -> AsyncIterator[AssessmentStore]:
    """Open a transactional ``AssessmentStore``; commits on success, rolls back otherwise."""
    async with session_scope(session_factory) as session:
        yield AssessmentStore(session)
