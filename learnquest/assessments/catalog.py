"""
Quiz Catalog

Owns quiz and question definitions and the links between them. Every write
checks ownership first and validates the complete change before touching the
database, so a failed result never leaves a partial write behind.
"""

import datetime
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import async_sessionmaker

from learnquest.assessments.collaborators import CourseDirectory
from learnquest.assessments.models import (
    Question,
    QuestionOption,
    QuestionSummary,
    QuestionType,
    QuestionView,
    Quiz,
    QuizSummary,
    QuizType,
    present_question,
    summarize_question,
    summarize_quiz,
)
from learnquest.assessments.repositories import AssessmentStore, unit_of_work
from learnquest.assessments.schemas import (
    OptionCreate,
    QuestionCreate,
    QuestionUpdate,
    QuizCreate,
    QuizUpdate,
    QuizWithQuestionsCreate,
)
from learnquest.common.config import AssessmentConfig, get_config
from learnquest.common.exceptions import FailureReason
from learnquest.common.logger import app_logger
from learnquest.common.results import OperationResult
from learnquest.common.utils import utc_now

logger = app_logger.getChild("assessments.catalog")

# Settings that cannot be cleared through an update
_NON_NULLABLE_QUIZ_FIELDS = {"title", "max_attempts", "passing_score", "is_required", "is_active"}


async def load_owned_quiz(store: AssessmentStore, quiz_id: int, instructor_id: int) -> OperationResult[Quiz]:
    """Fetch a non-deleted quiz and check that ``instructor_id`` created it."""
    quiz = await store.quizzes.get(quiz_id)
    if quiz is None:
        return OperationResult.not_found(FailureReason.QUIZ_NOT_FOUND, f"Quiz {quiz_id} not found")
    if quiz.instructor_id != instructor_id:
        return OperationResult.unauthorized(f"Instructor {instructor_id} does not own quiz {quiz_id}")
    return OperationResult.ok(quiz)


class QuizCatalog:
    """
    Service for quiz and question definitions.

    Args:
        session_factory: Async session factory; each call runs in its own transaction
        courses: Course ownership and structure lookups
        config: Defaults and limits, taken from the app config when omitted
        clock: Returns the current UTC time
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        courses: CourseDirectory,
        config: Optional[AssessmentConfig] = None,
        clock: Callable[[], datetime.datetime] = utc_now,
    ):
        self._session_factory = session_factory
        self._courses = courses
        self._config = config or get_config().assessment
        self._clock = clock

    # --- validation helpers ------------------------------------------------

    async def _check_course(self, course_id: int, instructor_id: int,
                            level_id: Optional[int] = None) -> OperationResult[None]:
        if not await self._courses.course_exists(course_id):
            return OperationResult.not_found(FailureReason.COURSE_NOT_FOUND, f"Course {course_id} not found")
        if not await self._courses.is_course_instructor(course_id, instructor_id):
            return OperationResult.unauthorized(f"Instructor {instructor_id} does not own course {course_id}")
        if level_id is not None and not await self._courses.level_belongs_to_course(level_id, course_id):
            return OperationResult.invalid(
                f"Level {level_id} does not belong to course {course_id}",
                {"level_id": "Level does not belong to the course"},
            )
        return OperationResult.ok()

    def _quiz_setting_errors(self, max_attempts: Optional[int], time_limit: Optional[int]) -> Dict[str, str]:
        errors = {}
        if max_attempts is not None and not 1 <= max_attempts <= self._config.max_attempts_limit:
            errors["max_attempts"] = f"Must be between 1 and {self._config.max_attempts_limit}"
        if time_limit is not None and not 1 <= time_limit <= self._config.max_time_limit_minutes:
            errors["time_limit_minutes"] = f"Must be between 1 and {self._config.max_time_limit_minutes}"
        return errors

    def _points_error(self, points: Optional[int]) -> Optional[str]:
        if points is not None and not 1 <= points <= self._config.max_question_points:
            return f"Must be between 1 and {self._config.max_question_points}"
        return None

    def _option_errors(self, question_type: QuestionType, options: Sequence) -> Dict[str, str]:
        errors = {}
        count = len(options)
        if not self._config.min_options <= count <= self._config.max_options:
            errors["options"] = (
                f"A question needs between {self._config.min_options} and {self._config.max_options} options"
            )
        elif sum(1 for option in options if option.is_correct) != 1:
            errors["options"] = "Exactly one option must be marked correct"
        elif question_type is QuestionType.TRUE_FALSE:
            texts = sorted(option.text.strip().lower() for option in options)
            if texts != ["false", "true"]:
                errors["options"] = "True/false questions need exactly the options 'True' and 'False'"
        return errors

    def _validate_quiz_definition(self, definition: QuizCreate) -> OperationResult[None]:
        errors = self._quiz_setting_errors(definition.max_attempts, definition.time_limit_minutes)
        if errors:
            return OperationResult.invalid("Invalid quiz settings", errors)
        return OperationResult.ok()

    def _validate_question_definition(self, definition: QuestionCreate) -> OperationResult[None]:
        errors = self._option_errors(definition.question_type, definition.options)
        points_error = self._points_error(definition.points)
        if points_error:
            errors["points"] = points_error
        if errors:
            return OperationResult.invalid("Invalid question", errors)
        return OperationResult.ok()

    # --- builders ------------------------------------------------------------

    def _build_quiz(self, definition: QuizCreate, instructor_id: int) -> Quiz:
        defaults = self._config
        return Quiz(
            id=None,
            title=definition.title,
            description=definition.description,
            quiz_type=definition.quiz_type,
            course_id=definition.course_id,
            content_id=definition.content_id,
            section_id=definition.section_id,
            level_id=definition.level_id,
            instructor_id=instructor_id,
            max_attempts=definition.max_attempts or defaults.default_max_attempts,
            passing_score=(definition.passing_score if definition.passing_score is not None
                           else defaults.default_passing_score),
            is_required=(definition.is_required if definition.is_required is not None
                         else defaults.default_is_required),
            time_limit_minutes=definition.time_limit_minutes,
            is_active=True,
            created_at=self._clock(),
        )

    def _build_question(self, definition: QuestionCreate, instructor_id: int) -> Question:
        return Question(
            id=None,
            text=definition.text,
            question_type=definition.question_type,
            instructor_id=instructor_id,
            course_id=definition.course_id,
            points=definition.points or self._config.default_question_points,
            explanation=definition.explanation,
            is_active=True,
            created_at=self._clock(),
            options=[
                QuestionOption(id=None, text=option.text, is_correct=option.is_correct,
                               order_index=option.order_index or index)
                for index, option in enumerate(definition.options, start=1)
            ],
        )

    async def _summaries(self, store: AssessmentStore, quizzes: List[Quiz]) -> List[QuizSummary]:
        summaries = []
        for quiz in quizzes:
            entries = await store.quiz_questions.list_entries(quiz.id)
            summaries.append(summarize_quiz(quiz, entries))
        return summaries

    # --- quizzes ---------------------------------------------------------------

    async def create_quiz(self, definition: QuizCreate, instructor_id: int) -> OperationResult[int]:
        """
        Create an empty quiz owned by ``instructor_id``.

        Returns:
            Result holding the new quiz id
        """
        check = await self._check_course(definition.course_id, instructor_id, definition.level_id)
        if not check.success:
            return check.propagate()
        check = self._validate_quiz_definition(definition)
        if not check.success:
            return check.propagate()

        async with unit_of_work(self._session_factory) as store:
            quiz = await store.quizzes.add(self._build_quiz(definition, instructor_id))

        logger.info(f"Quiz {quiz.id} ({quiz.quiz_type.value}) created by instructor {instructor_id}")
        return OperationResult.ok(quiz.id)

    async def create_quiz_with_questions(self, bundle: QuizWithQuestionsCreate,
                                         instructor_id: int) -> OperationResult[QuizSummary]:
        """
        Create a quiz, its new questions and all links in one transaction.

        New questions are linked first, then the existing ones, in the order given.
        """
        definition = bundle.quiz
        check = await self._check_course(definition.course_id, instructor_id, definition.level_id)
        if not check.success:
            return check.propagate()
        check = self._validate_quiz_definition(definition)
        if not check.success:
            return check.propagate()

        for index, question_definition in enumerate(bundle.new_questions):
            check = self._validate_question_definition(question_definition)
            if not check.success:
                return OperationResult.invalid(
                    f"Invalid new question at position {index}",
                    {f"new_questions[{index}].{key}": value for key, value in check.failure.details.items()},
                )
            if question_definition.course_id != definition.course_id:
                check = await self._check_course(question_definition.course_id, instructor_id)
                if not check.success:
                    return check.propagate()

        async with unit_of_work(self._session_factory) as store:
            existing = await store.questions.get_many(bundle.existing_question_ids)
            for question_id in bundle.existing_question_ids:
                question = existing.get(question_id)
                if question is None or not question.is_active:
                    return OperationResult.not_found(
                        FailureReason.QUESTION_NOT_FOUND, f"Question {question_id} not found"
                    )
                if question.instructor_id != instructor_id:
                    return OperationResult.unauthorized(
                        f"Instructor {instructor_id} does not own question {question_id}"
                    )

            quiz = await store.quizzes.add(self._build_quiz(definition, instructor_id))
            question_ids = []
            for question_definition in bundle.new_questions:
                created = await store.questions.add(self._build_question(question_definition, instructor_id))
                question_ids.append(created.id)
            question_ids.extend(bundle.existing_question_ids)

            for order_index, question_id in enumerate(question_ids, start=1):
                await store.quiz_questions.link(quiz.id, question_id, order_index)

            entries = await store.quiz_questions.list_entries(quiz.id)
            summary = summarize_quiz(quiz, entries)

        logger.info(
            f"Quiz {quiz.id} created by instructor {instructor_id} with {len(question_ids)} questions "
            f"({len(bundle.new_questions)} new)"
        )
        return OperationResult.ok(summary)

    async def update_quiz(self, quiz_id: int, changes: QuizUpdate, instructor_id: int) -> OperationResult[Quiz]:
        values = {
            key: value for key, value in changes.model_dump(exclude_unset=True).items()
            if value is not None or key not in _NON_NULLABLE_QUIZ_FIELDS
        }
        errors = self._quiz_setting_errors(values.get("max_attempts"), values.get("time_limit_minutes"))
        if errors:
            return OperationResult.invalid("Invalid quiz settings", errors)

        async with unit_of_work(self._session_factory) as store:
            owned = await load_owned_quiz(store, quiz_id, instructor_id)
            if not owned.success:
                return owned
            values["updated_at"] = self._clock()
            quiz = await store.quizzes.update(quiz_id, values)

        logger.info(f"Quiz {quiz_id} updated by instructor {instructor_id}: {sorted(values)}")
        return OperationResult.ok(quiz)

    async def delete_quiz(self, quiz_id: int, instructor_id: int) -> OperationResult[bool]:
        """Soft-delete a quiz; its attempts stay in place as history."""
        async with unit_of_work(self._session_factory) as store:
            owned = await load_owned_quiz(store, quiz_id, instructor_id)
            if not owned.success:
                return owned.propagate()
            await store.quizzes.update(quiz_id, {"is_deleted": True, "updated_at": self._clock()})

        logger.info(f"Quiz {quiz_id} soft-deleted by instructor {instructor_id}")
        return OperationResult.ok(True)

    async def toggle_quiz_status(self, quiz_id: int, instructor_id: int) -> OperationResult[bool]:
        """Flip ``is_active``; the result holds the new state."""
        async with unit_of_work(self._session_factory) as store:
            owned = await load_owned_quiz(store, quiz_id, instructor_id)
            if not owned.success:
                return owned.propagate()
            new_state = not owned.value.is_active
            await store.quizzes.update(quiz_id, {"is_active": new_state, "updated_at": self._clock()})

        logger.info(f"Quiz {quiz_id} is_active set to {new_state} by instructor {instructor_id}")
        return OperationResult.ok(new_state)

    async def set_quiz_active(self, quiz_id: int, instructor_id: int, active: bool) -> OperationResult[bool]:
        """Set ``is_active``; the result is False when the quiz was already in that state."""
        async with unit_of_work(self._session_factory) as store:
            owned = await load_owned_quiz(store, quiz_id, instructor_id)
            if not owned.success:
                return owned.propagate()
            if owned.value.is_active == active:
                return OperationResult.ok(False)
            await store.quizzes.update(quiz_id, {"is_active": active, "updated_at": self._clock()})

        logger.info(f"Quiz {quiz_id} is_active set to {active} by instructor {instructor_id}")
        return OperationResult.ok(True)

    async def get_quiz(self, quiz_id: int) -> OperationResult[QuizSummary]:
        async with unit_of_work(self._session_factory) as store:
            quiz = await store.quizzes.get(quiz_id)
            if quiz is None:
                return OperationResult.not_found(FailureReason.QUIZ_NOT_FOUND, f"Quiz {quiz_id} not found")
            entries = await store.quiz_questions.list_entries(quiz_id)
        return OperationResult.ok(summarize_quiz(quiz, entries))

    async def get_quiz_questions(self, quiz_id: int, instructor_id: int) -> OperationResult[List[QuestionView]]:
        """Instructor view of a quiz's questions, correct options and explanations included."""
        async with unit_of_work(self._session_factory) as store:
            owned = await load_owned_quiz(store, quiz_id, instructor_id)
            if not owned.success:
                return owned.propagate()
            entries = await store.quiz_questions.list_entries(quiz_id)
        return OperationResult.ok([present_question(entry, reveal_answers=True) for entry in entries])

    async def list_quizzes_by_course(self, course_id: int) -> List[QuizSummary]:
        async with unit_of_work(self._session_factory) as store:
            return await self._summaries(store, await store.quizzes.list_by_course(course_id))

    async def list_quizzes_by_instructor(self, instructor_id: int) -> List[QuizSummary]:
        async with unit_of_work(self._session_factory) as store:
            return await self._summaries(store, await store.quizzes.list_by_instructor(instructor_id))

    async def list_quizzes_by_type(self, quiz_type: QuizType, entity_id: Optional[int] = None) -> List[QuizSummary]:
        """Active quizzes of one type, optionally narrowed to the scope entity the type refers to."""
        async with unit_of_work(self._session_factory) as store:
            return await self._summaries(store, await store.quizzes.list_by_type(quiz_type, entity_id))

    async def list_exams(self, course_id: Optional[int] = None, level_id: Optional[int] = None) -> List[QuizSummary]:
        async with unit_of_work(self._session_factory) as store:
            return await self._summaries(store, await store.quizzes.list_exams(course_id=course_id, level_id=level_id))

    # --- questions -------------------------------------------------------------

    async def create_question(self, definition: QuestionCreate, instructor_id: int) -> OperationResult[Question]:
        check = await self._check_course(definition.course_id, instructor_id)
        if not check.success:
            return check.propagate()
        check = self._validate_question_definition(definition)
        if not check.success:
            return check.propagate()

        async with unit_of_work(self._session_factory) as store:
            question = await store.questions.add(self._build_question(definition, instructor_id))

        logger.info(f"Question {question.id} created by instructor {instructor_id}")
        return OperationResult.ok(question)

    async def _load_owned_question(self, store: AssessmentStore, question_id: int,
                                   instructor_id: int) -> OperationResult[Question]:
        question = await store.questions.get(question_id)
        if question is None:
            return OperationResult.not_found(FailureReason.QUESTION_NOT_FOUND, f"Question {question_id} not found")
        if question.instructor_id != instructor_id:
            return OperationResult.unauthorized(f"Instructor {instructor_id} does not own question {question_id}")
        return OperationResult.ok(question)

    async def get_question(self, question_id: int, instructor_id: int) -> OperationResult[Question]:
        async with unit_of_work(self._session_factory) as store:
            return await self._load_owned_question(store, question_id, instructor_id)

    async def update_question(self, question_id: int, changes: QuestionUpdate,
                              instructor_id: int) -> OperationResult[Question]:
        """
        Update a question and optionally its options.

        Refused while the question is linked to an active quiz, since attempts
        in progress were started against the current version.
        """
        values = {
            key: value for key, value in changes.model_dump(exclude_unset=True, exclude={"options"}).items()
            if value is not None or key == "explanation"
        }
        points_error = self._points_error(values.get("points"))
        if points_error:
            return OperationResult.invalid("Invalid question", {"points": points_error})

        async with unit_of_work(self._session_factory) as store:
            owned = await self._load_owned_question(store, question_id, instructor_id)
            if not owned.success:
                return owned
            question = owned.value
            if await store.questions.is_used_in_active_quiz(question_id):
                return OperationResult.invalid_state(
                    FailureReason.QUESTION_IN_USE, f"Question {question_id} is used in an active quiz"
                )

            if changes.options is not None:
                known_ids = {option.id for option in question.options}
                unknown = [o.option_id for o in changes.options
                           if o.option_id is not None and o.option_id not in known_ids]
                if unknown:
                    return OperationResult.invalid(
                        "Unknown options", {"options": f"Options {unknown} do not belong to question {question_id}"}
                    )

                # Validate the option set as it will look after the change
                edited = {o.option_id: o for o in changes.options if o.option_id is not None}
                resulting = [
                    OptionCreate(text=edited[o.id].text, is_correct=edited[o.id].is_correct,
                                 order_index=edited[o.id].order_index)
                    if o.id in edited else OptionCreate(text=o.text, is_correct=o.is_correct,
                                                        order_index=o.order_index)
                    for o in question.options
                    if not (o.id in edited and edited[o.id].is_deleted)
                ]
                resulting.extend(
                    OptionCreate(text=o.text, is_correct=o.is_correct, order_index=o.order_index)
                    for o in changes.options if o.option_id is None and not o.is_deleted
                )
                errors = self._option_errors(question.question_type, resulting)
                if errors:
                    return OperationResult.invalid("Invalid options", errors)

                for option in changes.options:
                    if option.option_id is None:
                        if not option.is_deleted:
                            await store.questions.add_option(
                                question_id, option.text, option.is_correct, option.order_index
                            )
                    elif option.is_deleted:
                        await store.questions.delete_option(option.option_id)
                    else:
                        await store.questions.update_option(option.option_id, {
                            "text": option.text,
                            "is_correct": option.is_correct,
                            "order_index": option.order_index,
                        })

            values["updated_at"] = self._clock()
            await store.questions.update(question_id, values)
            updated = await store.questions.get(question_id)

        logger.info(f"Question {question_id} updated by instructor {instructor_id}")
        return OperationResult.ok(updated)

    async def delete_question(self, question_id: int, instructor_id: int) -> OperationResult[bool]:
        """Deactivate a question. Refused while it is linked to an active quiz."""
        async with unit_of_work(self._session_factory) as store:
            owned = await self._load_owned_question(store, question_id, instructor_id)
            if not owned.success:
                return owned.propagate()
            if await store.questions.is_used_in_active_quiz(question_id):
                return OperationResult.invalid_state(
                    FailureReason.QUESTION_IN_USE, f"Question {question_id} is used in an active quiz"
                )
            await store.questions.update(question_id, {"is_active": False, "updated_at": self._clock()})

        logger.info(f"Question {question_id} deactivated by instructor {instructor_id}")
        return OperationResult.ok(True)

    async def _question_summaries(self, store: AssessmentStore, questions: List[Question]) -> List[QuestionSummary]:
        usage = await store.questions.usage_counts([question.id for question in questions])
        return [summarize_question(question, usage[question.id]) for question in questions]

    async def list_questions_by_course(self, course_id: int,
                                       instructor_id: int) -> OperationResult[List[QuestionSummary]]:
        """The instructor's active questions in a course, newest first, with usage counts."""
        check = await self._check_course(course_id, instructor_id)
        if not check.success:
            return check.propagate()
        async with unit_of_work(self._session_factory) as store:
            questions = await store.questions.list_for_course(course_id, instructor_id)
            return OperationResult.ok(await self._question_summaries(store, questions))

    async def list_available_questions(self, course_id: int, instructor_id: int,
                                       quiz_id: Optional[int] = None) -> OperationResult[List[QuestionSummary]]:
        """
        Questions that can be added to a quiz, ordered by text.

        When ``quiz_id`` is given the quiz must belong to the instructor and
        questions already linked to it are left out.
        """
        check = await self._check_course(course_id, instructor_id)
        if not check.success:
            return check.propagate()
        async with unit_of_work(self._session_factory) as store:
            linked = set()
            if quiz_id is not None:
                owned = await load_owned_quiz(store, quiz_id, instructor_id)
                if not owned.success:
                    return owned.propagate()
                linked = {link.question_id for link in await store.quiz_questions.list_links(quiz_id)}
            questions = [
                question for question in await store.questions.list_for_course(
                    course_id, instructor_id, order_by_text=True
                )
                if question.id not in linked
            ]
            return OperationResult.ok(await self._question_summaries(store, questions))

    async def search_questions(self, course_id: int, search_term: str,
                               instructor_id: int) -> OperationResult[List[QuestionSummary]]:
        """Case-insensitive search over question text and explanation, ordered by text."""
        term = (search_term or "").strip()
        if not term:
            return OperationResult.invalid("Invalid search", {"search_term": "Must not be blank"})
        check = await self._check_course(course_id, instructor_id)
        if not check.success:
            return check.propagate()
        async with unit_of_work(self._session_factory) as store:
            questions = await store.questions.list_for_course(
                course_id, instructor_id, search=term, order_by_text=True
            )
            return OperationResult.ok(await self._question_summaries(store, questions))

    # --- quiz composition --------------------------------------------------------

    async def add_questions_to_quiz(self, quiz_id: int, question_ids: Sequence[int], instructor_id: int,
                                    custom_points: Optional[Dict[int, int]] = None) -> OperationResult[int]:
        """
        Append questions to a quiz after its current last position.

        Questions that do not exist, were deleted, belong to another
        instructor or are already linked are skipped. The result holds how many were added.
        """
        custom_points = custom_points or {}
        errors = {
            f"custom_points[{question_id}]": message
            for question_id, message in ((qid, self._points_error(p)) for qid, p in custom_points.items())
            if message
        }
        if errors:
            return OperationResult.invalid("Invalid custom points", errors)

        async with unit_of_work(self._session_factory) as store:
            owned = await load_owned_quiz(store, quiz_id, instructor_id)
            if not owned.success:
                return owned.propagate()

            linked = {link.question_id for link in await store.quiz_questions.list_links(quiz_id)}
            questions = await store.questions.get_many(list(dict.fromkeys(question_ids)))
            order_index = await store.quiz_questions.max_order_index(quiz_id)
            added = 0
            for question_id in dict.fromkeys(question_ids):
                question = questions.get(question_id)
                if (question is None or not question.is_active or question.instructor_id != instructor_id
                        or question_id in linked):
                    logger.debug(f"Skipping question {question_id} for quiz {quiz_id}")
                    continue
                order_index += 1
                await store.quiz_questions.link(quiz_id, question_id, order_index, custom_points.get(question_id))
                linked.add(question_id)
                added += 1

        logger.info(f"Added {added} questions to quiz {quiz_id}")
        return OperationResult.ok(added)

    async def remove_question_from_quiz(self, quiz_id: int, question_id: int,
                                        instructor_id: int) -> OperationResult[bool]:
        async with unit_of_work(self._session_factory) as store:
            owned = await load_owned_quiz(store, quiz_id, instructor_id)
            if not owned.success:
                return owned.propagate()
            removed = await store.quiz_questions.unlink(quiz_id, question_id)
            if not removed:
                return OperationResult.not_found(
                    FailureReason.QUESTION_NOT_FOUND, f"Question {question_id} is not part of quiz {quiz_id}"
                )
        return OperationResult.ok(True)

    async def reorder_quiz_questions(self, quiz_id: int, orders: Dict[int, int],
                                     instructor_id: int) -> OperationResult[bool]:
        """Apply ``question_id -> order_index``; ids not linked to the quiz are ignored."""
        if any(order < 0 for order in orders.values()):
            return OperationResult.invalid("Invalid order", {"orders": "Order indexes must not be negative"})

        async with unit_of_work(self._session_factory) as store:
            owned = await load_owned_quiz(store, quiz_id, instructor_id)
            if not owned.success:
                return owned.propagate()
            changed = await store.quiz_questions.set_order(quiz_id, orders)
        return OperationResult.ok(changed > 0)

    async def update_question_points(self, quiz_id: int, points: Dict[int, Optional[int]],
                                     instructor_id: int) -> OperationResult[int]:
        """Set or clear (None) per-quiz point overrides; attempts already started keep their totals."""
        errors = {
            f"points[{question_id}]": message
            for question_id, message in ((qid, self._points_error(p)) for qid, p in points.items())
            if message
        }
        if errors:
            return OperationResult.invalid("Invalid custom points", errors)

        async with unit_of_work(self._session_factory) as store:
            owned = await load_owned_quiz(store, quiz_id, instructor_id)
            if not owned.success:
                return owned.propagate()
            changed = await store.quiz_questions.set_custom_points(quiz_id, points)
        return OperationResult.ok(changed)
