"""
Tests for quiz and question definitions.
"""

import pytest
from pydantic import ValidationError as SchemaError

from learnquest.assessments.models import QuestionType, QuizType
from learnquest.assessments.schemas import (
    OptionCreate,
    OptionUpdate,
    QuestionCreate,
    QuestionUpdate,
    QuizCreate,
    QuizUpdate,
    QuizWithQuestionsCreate,
)
from learnquest.common.exceptions import ErrorKind, FailureReason
from learnquest.tests.helpers import (
    COURSE_ID,
    INSTRUCTOR_ID,
    LEVEL_ID,
    OTHER_COURSE_ID,
    OTHER_INSTRUCTOR_ID,
    OTHER_LEVEL_ID,
    build_quiz,
    mc_question,
    quiz_definition,
    tf_question,
)


# --- schemas -------------------------------------------------------------------

def test_level_quiz_requires_level_id():
    with pytest.raises(SchemaError):
        QuizCreate(title="Level check", quiz_type=QuizType.LEVEL_QUIZ, course_id=COURSE_ID)


def test_scope_ids_must_match_quiz_type():
    with pytest.raises(SchemaError):
        QuizCreate(title="Content check", quiz_type=QuizType.CONTENT_QUIZ, course_id=COURSE_ID,
                   content_id=3, level_id=LEVEL_ID)


def test_exam_cannot_be_scoped_to_content():
    with pytest.raises(SchemaError):
        QuizCreate(title="Final exam", quiz_type=QuizType.EXAM_QUIZ, course_id=COURSE_ID, content_id=3)


def test_question_needs_exactly_one_correct_option():
    with pytest.raises(SchemaError):
        QuestionCreate(
            text="Which ones are right?",
            question_type=QuestionType.MULTIPLE_CHOICE,
            course_id=COURSE_ID,
            options=[OptionCreate(text="A", is_correct=True), OptionCreate(text="B", is_correct=True)],
        )


def test_true_false_question_needs_true_and_false_options():
    with pytest.raises(SchemaError):
        QuestionCreate(
            text="Is this a valid question?",
            question_type=QuestionType.TRUE_FALSE,
            course_id=COURSE_ID,
            options=[OptionCreate(text="Yes", is_correct=True), OptionCreate(text="No")],
        )


def test_bundle_rejects_duplicate_and_empty_question_lists():
    with pytest.raises(SchemaError):
        QuizWithQuestionsCreate(quiz=quiz_definition(), existing_question_ids=[1, 1])
    with pytest.raises(SchemaError):
        QuizWithQuestionsCreate(quiz=quiz_definition())


# --- quizzes ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_quiz_applies_configured_defaults(services, clock):
    quiz_id = (await services.catalog.create_quiz(quiz_definition(), INSTRUCTOR_ID)).unwrap()

    summary = (await services.catalog.get_quiz(quiz_id)).unwrap()

    assert summary.max_attempts == 3
    assert summary.passing_score == 70
    assert summary.is_required is True
    assert summary.is_active is True
    assert summary.total_questions == 0
    assert summary.created_at == clock.now


@pytest.mark.asyncio
async def test_create_quiz_checks_the_course(services):
    missing = await services.catalog.create_quiz(quiz_definition(course_id=999), INSTRUCTOR_ID)
    foreign = await services.catalog.create_quiz(quiz_definition(course_id=OTHER_COURSE_ID), INSTRUCTOR_ID)
    wrong_level = await services.catalog.create_quiz(
        quiz_definition(quiz_type=QuizType.LEVEL_QUIZ, level_id=OTHER_LEVEL_ID), INSTRUCTOR_ID
    )

    assert missing.reason is FailureReason.COURSE_NOT_FOUND
    assert foreign.kind is ErrorKind.UNAUTHORIZED
    assert wrong_level.kind is ErrorKind.VALIDATION
    assert "level_id" in wrong_level.failure.details


@pytest.mark.asyncio
async def test_create_quiz_checks_configured_limits(services):
    result = await services.catalog.create_quiz(
        quiz_definition(max_attempts=11, time_limit_minutes=301), INSTRUCTOR_ID
    )

    assert result.kind is ErrorKind.VALIDATION
    assert set(result.failure.details) == {"max_attempts", "time_limit_minutes"}
    assert await services.catalog.list_quizzes_by_course(COURSE_ID) == []


@pytest.mark.asyncio
async def test_create_quiz_with_questions_links_new_before_existing(services):
    existing = (await services.catalog.create_question(
        mc_question(3, text="An existing question to reuse"), INSTRUCTOR_ID
    )).unwrap()
    bundle = QuizWithQuestionsCreate(
        quiz=quiz_definition(title="Bundled quiz"),
        new_questions=[mc_question(5), tf_question(points=2)],
        existing_question_ids=[existing.id],
    )

    summary = (await services.catalog.create_quiz_with_questions(bundle, INSTRUCTOR_ID)).unwrap()
    views = (await services.catalog.get_quiz_questions(summary.quiz_id, INSTRUCTOR_ID)).unwrap()

    assert summary.total_questions == 3
    assert summary.total_points == 10
    assert [view.order_index for view in views] == [1, 2, 3]
    assert views[-1].question_id == existing.id
    assert views[1].question_type is QuestionType.TRUE_FALSE


@pytest.mark.asyncio
async def test_create_quiz_with_questions_writes_nothing_on_failure(services):
    foreign = (await services.catalog.create_question(
        mc_question(course_id=OTHER_COURSE_ID), OTHER_INSTRUCTOR_ID
    )).unwrap()
    bundle = QuizWithQuestionsCreate(
        quiz=quiz_definition(), new_questions=[mc_question()], existing_question_ids=[foreign.id]
    )

    result = await services.catalog.create_quiz_with_questions(bundle, INSTRUCTOR_ID)

    assert result.kind is ErrorKind.UNAUTHORIZED
    assert await services.catalog.list_quizzes_by_instructor(INSTRUCTOR_ID) == []


@pytest.mark.asyncio
async def test_create_quiz_with_questions_rejects_deleted_question(services):
    retired = (await services.catalog.create_question(mc_question(), INSTRUCTOR_ID)).unwrap()
    await services.catalog.delete_question(retired.id, INSTRUCTOR_ID)
    bundle = QuizWithQuestionsCreate(quiz=quiz_definition(), existing_question_ids=[retired.id])

    result = await services.catalog.create_quiz_with_questions(bundle, INSTRUCTOR_ID)

    assert result.reason is FailureReason.QUESTION_NOT_FOUND
    assert await services.catalog.list_quizzes_by_instructor(INSTRUCTOR_ID) == []


@pytest.mark.asyncio
async def test_create_quiz_with_questions_reports_invalid_new_question(services):
    bundle = QuizWithQuestionsCreate(
        quiz=quiz_definition(), new_questions=[mc_question(), mc_question(points=500)]
    )

    result = await services.catalog.create_quiz_with_questions(bundle, INSTRUCTOR_ID)

    assert result.kind is ErrorKind.VALIDATION
    assert "new_questions[1].points" in result.failure.details


@pytest.mark.asyncio
async def test_update_quiz_applies_set_fields_only(services):
    quiz_id, _ = await build_quiz(services, [mc_question()], time_limit_minutes=20, passing_score=80)

    updated = (await services.catalog.update_quiz(
        quiz_id, QuizUpdate(title="Renamed quiz", time_limit_minutes=None), INSTRUCTOR_ID
    )).unwrap()

    assert updated.title == "Renamed quiz"
    assert updated.time_limit_minutes is None
    assert updated.passing_score == 80
    assert updated.updated_at is not None


@pytest.mark.asyncio
async def test_update_quiz_ignores_null_for_required_settings(services):
    quiz_id, _ = await build_quiz(services, [mc_question()])

    updated = (await services.catalog.update_quiz(
        quiz_id, QuizUpdate(title=None, max_attempts=None), INSTRUCTOR_ID
    )).unwrap()

    assert updated.title == "Chapter quiz"
    assert updated.max_attempts == 3


@pytest.mark.asyncio
async def test_only_the_owner_can_change_a_quiz(services):
    quiz_id, _ = await build_quiz(services, [mc_question()])

    update = await services.catalog.update_quiz(quiz_id, QuizUpdate(title="Hijacked"), OTHER_INSTRUCTOR_ID)
    delete = await services.catalog.delete_quiz(quiz_id, OTHER_INSTRUCTOR_ID)
    toggle = await services.catalog.toggle_quiz_status(quiz_id, OTHER_INSTRUCTOR_ID)

    for result in (update, delete, toggle):
        assert result.kind is ErrorKind.UNAUTHORIZED
        assert result.reason is FailureReason.NOT_OWNER
    assert (await services.catalog.get_quiz(quiz_id)).unwrap().title == "Chapter quiz"


@pytest.mark.asyncio
async def test_deleted_quiz_is_hidden(services):
    quiz_id, _ = await build_quiz(services, [mc_question()])

    assert (await services.catalog.delete_quiz(quiz_id, INSTRUCTOR_ID)).unwrap() is True

    assert (await services.catalog.get_quiz(quiz_id)).reason is FailureReason.QUIZ_NOT_FOUND
    assert await services.catalog.list_quizzes_by_course(COURSE_ID) == []
    again = await services.catalog.delete_quiz(quiz_id, INSTRUCTOR_ID)
    assert again.kind is ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_toggle_and_set_active(services):
    quiz_id, _ = await build_quiz(services, [mc_question()])

    assert (await services.catalog.toggle_quiz_status(quiz_id, INSTRUCTOR_ID)).unwrap() is False
    assert (await services.catalog.toggle_quiz_status(quiz_id, INSTRUCTOR_ID)).unwrap() is True
    assert (await services.catalog.set_quiz_active(quiz_id, INSTRUCTOR_ID, True)).unwrap() is False
    assert (await services.catalog.set_quiz_active(quiz_id, INSTRUCTOR_ID, False)).unwrap() is True
    assert (await services.catalog.get_quiz(quiz_id)).unwrap().is_active is False


@pytest.mark.asyncio
async def test_listing_quizzes(services):
    course_quiz, _ = await build_quiz(services, [mc_question()])
    level_quiz, _ = await build_quiz(services, [mc_question()], title="Level quiz",
                                     quiz_type=QuizType.LEVEL_QUIZ, level_id=LEVEL_ID)
    inactive, _ = await build_quiz(services, [mc_question()], title="Inactive level quiz",
                                   quiz_type=QuizType.LEVEL_QUIZ, level_id=LEVEL_ID)
    await services.catalog.toggle_quiz_status(inactive, INSTRUCTOR_ID)

    by_course = await services.catalog.list_quizzes_by_course(COURSE_ID)
    by_type = await services.catalog.list_quizzes_by_type(QuizType.LEVEL_QUIZ, LEVEL_ID)
    other_level = await services.catalog.list_quizzes_by_type(QuizType.LEVEL_QUIZ, OTHER_LEVEL_ID)
    by_instructor = await services.catalog.list_quizzes_by_instructor(INSTRUCTOR_ID)

    assert [s.quiz_id for s in by_course] == [course_quiz, level_quiz, inactive]
    assert [s.quiz_id for s in by_type] == [level_quiz]
    assert other_level == []
    assert len(by_instructor) == 3


# --- questions -----------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_question_checks_configured_limits(services):
    too_many_options = await services.catalog.create_question(mc_question(option_count=5), INSTRUCTOR_ID)
    too_many_points = await services.catalog.create_question(mc_question(points=101), INSTRUCTOR_ID)

    assert too_many_options.kind is ErrorKind.VALIDATION
    assert "options" in too_many_options.failure.details
    assert "points" in too_many_points.failure.details


@pytest.mark.asyncio
async def test_create_question_defaults_points(services):
    definition = mc_question()
    definition.points = None

    question = (await services.catalog.create_question(definition, INSTRUCTOR_ID)).unwrap()

    assert question.points == 1
    assert [option.order_index for option in question.options] == [1, 2, 3, 4]
    assert question.correct_option.text == "Option 0"


@pytest.mark.asyncio
async def test_question_in_active_quiz_cannot_change(services):
    quiz_id, views = await build_quiz(services, [mc_question()])
    question_id = views[0].question_id

    update = await services.catalog.update_question(question_id, QuestionUpdate(points=9), INSTRUCTOR_ID)
    delete = await services.catalog.delete_question(question_id, INSTRUCTOR_ID)

    assert update.reason is FailureReason.QUESTION_IN_USE
    assert delete.reason is FailureReason.QUESTION_IN_USE


@pytest.mark.asyncio
async def test_update_question_options(services):
    quiz_id, views = await build_quiz(services, [mc_question(correct_index=0)])
    await services.catalog.toggle_quiz_status(quiz_id, INSTRUCTOR_ID)
    options = views[0].options

    changes = QuestionUpdate(
        text="Which option is right after the edit?",
        options=[
            OptionUpdate(option_id=options[0].option_id, text="Option 0", is_correct=False, order_index=1),
            OptionUpdate(option_id=options[1].option_id, text="Option 1", is_correct=True, order_index=2),
            OptionUpdate(option_id=options[3].option_id, text="Option 3", is_deleted=True),
        ],
    )
    question = (await services.catalog.update_question(views[0].question_id, changes, INSTRUCTOR_ID)).unwrap()

    assert question.text == "Which option is right after the edit?"
    assert len(question.options) == 3
    assert question.correct_option.id == options[1].option_id


@pytest.mark.asyncio
async def test_update_question_rejects_invalid_option_sets(services):
    quiz_id, views = await build_quiz(services, [mc_question(correct_index=0)])
    await services.catalog.toggle_quiz_status(quiz_id, INSTRUCTOR_ID)
    question_id = views[0].question_id
    correct = views[0].options[0]

    no_correct = await services.catalog.update_question(question_id, QuestionUpdate(options=[
        OptionUpdate(option_id=correct.option_id, text=correct.text, is_correct=False),
    ]), INSTRUCTOR_ID)
    unknown = await services.catalog.update_question(question_id, QuestionUpdate(options=[
        OptionUpdate(option_id=123456, text="Ghost option"),
    ]), INSTRUCTOR_ID)

    assert no_correct.kind is ErrorKind.VALIDATION
    assert unknown.kind is ErrorKind.VALIDATION
    unchanged = (await services.catalog.get_question(question_id, INSTRUCTOR_ID)).unwrap()
    assert unchanged.correct_option.id == correct.option_id


@pytest.mark.asyncio
async def test_delete_question_deactivates_it(services):
    question = (await services.catalog.create_question(mc_question(), INSTRUCTOR_ID)).unwrap()

    assert (await services.catalog.delete_question(question.id, INSTRUCTOR_ID)).unwrap() is True

    assert (await services.catalog.get_question(question.id, INSTRUCTOR_ID)).unwrap().is_active is False
    other = await services.catalog.get_question(question.id, OTHER_INSTRUCTOR_ID)
    assert other.kind is ErrorKind.UNAUTHORIZED


# --- composition -----------------------------------------------------------------------

@pytest.mark.asyncio
async def test_add_questions_skips_unusable_ids(services):
    quiz_id, views = await build_quiz(services, [mc_question()])
    fresh = (await services.catalog.create_question(mc_question(), INSTRUCTOR_ID)).unwrap()
    foreign = (await services.catalog.create_question(
        mc_question(course_id=OTHER_COURSE_ID), OTHER_INSTRUCTOR_ID
    )).unwrap()

    added = await services.catalog.add_questions_to_quiz(
        quiz_id, [views[0].question_id, fresh.id, foreign.id, 777777, fresh.id], INSTRUCTOR_ID
    )

    assert added.unwrap() == 1
    linked = (await services.catalog.get_quiz_questions(quiz_id, INSTRUCTOR_ID)).unwrap()
    assert [(view.question_id, view.order_index) for view in linked] == [
        (views[0].question_id, 1), (fresh.id, 2)
    ]


@pytest.mark.asyncio
async def test_add_questions_skips_deleted_questions(services):
    quiz_id, _ = await build_quiz(services, [])
    retired = (await services.catalog.create_question(mc_question(5), INSTRUCTOR_ID)).unwrap()
    assert (await services.catalog.delete_question(retired.id, INSTRUCTOR_ID)).unwrap() is True

    added = await services.catalog.add_questions_to_quiz(quiz_id, [retired.id], INSTRUCTOR_ID)

    assert added.unwrap() == 0
    assert (await services.catalog.get_quiz(quiz_id)).unwrap().total_points == 0


@pytest.mark.asyncio
async def test_add_questions_validates_custom_points(services):
    quiz_id, _ = await build_quiz(services, [])
    question = (await services.catalog.create_question(mc_question(), INSTRUCTOR_ID)).unwrap()

    result = await services.catalog.add_questions_to_quiz(quiz_id, [question.id], INSTRUCTOR_ID, {question.id: 0})

    assert result.kind is ErrorKind.VALIDATION
    assert f"custom_points[{question.id}]" in result.failure.details


@pytest.mark.asyncio
async def test_remove_question_from_quiz(services):
    quiz_id, views = await build_quiz(services, [mc_question(5), mc_question(3)])

    removed = await services.catalog.remove_question_from_quiz(quiz_id, views[0].question_id, INSTRUCTOR_ID)
    missing = await services.catalog.remove_question_from_quiz(quiz_id, views[0].question_id, INSTRUCTOR_ID)

    assert removed.unwrap() is True
    assert missing.reason is FailureReason.QUESTION_NOT_FOUND
    assert (await services.catalog.get_quiz(quiz_id)).unwrap().total_points == 3


@pytest.mark.asyncio
async def test_reorder_quiz_questions(services):
    quiz_id, views = await build_quiz(services, [mc_question(), tf_question()])
    first, second = views[0].question_id, views[1].question_id

    reordered = await services.catalog.reorder_quiz_questions(quiz_id, {first: 2, second: 1}, INSTRUCTOR_ID)
    negative = await services.catalog.reorder_quiz_questions(quiz_id, {first: -1}, INSTRUCTOR_ID)
    unrelated = await services.catalog.reorder_quiz_questions(quiz_id, {888888: 1}, INSTRUCTOR_ID)

    assert reordered.unwrap() is True
    assert negative.kind is ErrorKind.VALIDATION
    assert unrelated.unwrap() is False
    linked = (await services.catalog.get_quiz_questions(quiz_id, INSTRUCTOR_ID)).unwrap()
    assert [view.question_id for view in linked] == [second, first]


@pytest.mark.asyncio
async def test_update_question_points_sets_and_clears_overrides(services):
    quiz_id, views = await build_quiz(services, [mc_question(5)])
    question_id = views[0].question_id

    await services.catalog.update_question_points(quiz_id, {question_id: 12}, INSTRUCTOR_ID)
    assert (await services.catalog.get_quiz(quiz_id)).unwrap().total_points == 12

    await services.catalog.update_question_points(quiz_id, {question_id: None}, INSTRUCTOR_ID)
    assert (await services.catalog.get_quiz(quiz_id)).unwrap().total_points == 5


@pytest.mark.asyncio
async def test_instructor_view_reveals_answers(services):
    quiz_id, _ = await build_quiz(services, [mc_question(correct_index=2)])

    views = (await services.catalog.get_quiz_questions(quiz_id, INSTRUCTOR_ID)).unwrap()
    other = await services.catalog.get_quiz_questions(quiz_id, OTHER_INSTRUCTOR_ID)

    assert [option.is_correct for option in views[0].options] == [False, False, True, False]
    assert views[0].explanation == "Because it is."
    assert other.kind is ErrorKind.UNAUTHORIZED


# --- question bank -----------------------------------------------------------------------

async def _bank(services, clock):
    """Three questions of the instructor, created a minute apart; the last one deleted."""
    created = []
    for definition in (mc_question(text="Beta question"), tf_question(text="Alpha statement"),
                       mc_question(text="Gamma question")):
        created.append((await services.catalog.create_question(definition, INSTRUCTOR_ID)).unwrap())
        clock.advance(minutes=1)
    await services.catalog.delete_question(created[2].id, INSTRUCTOR_ID)
    return created


@pytest.mark.asyncio
async def test_list_questions_by_course_counts_live_usage(services, clock):
    beta, alpha, _ = await _bank(services, clock)
    await services.catalog.create_question(mc_question(course_id=OTHER_COURSE_ID), OTHER_INSTRUCTOR_ID)
    live = (await services.catalog.create_quiz(quiz_definition(title="Live quiz"), INSTRUCTOR_ID)).unwrap()
    paused = (await services.catalog.create_quiz(quiz_definition(title="Paused quiz"), INSTRUCTOR_ID)).unwrap()
    await services.catalog.add_questions_to_quiz(live, [beta.id], INSTRUCTOR_ID)
    await services.catalog.add_questions_to_quiz(paused, [beta.id, alpha.id], INSTRUCTOR_ID)
    await services.catalog.toggle_quiz_status(paused, INSTRUCTOR_ID)

    summaries = (await services.catalog.list_questions_by_course(COURSE_ID, INSTRUCTOR_ID)).unwrap()

    assert [(s.question_id, s.usage_count) for s in summaries] == [(alpha.id, 0), (beta.id, 1)]
    assert summaries[0].question_type is QuestionType.TRUE_FALSE
    assert summaries[1].points == 5


@pytest.mark.asyncio
async def test_question_bank_checks_the_course(services):
    foreign = await services.catalog.list_questions_by_course(OTHER_COURSE_ID, INSTRUCTOR_ID)
    missing = await services.catalog.list_available_questions(999, INSTRUCTOR_ID)

    assert foreign.kind is ErrorKind.UNAUTHORIZED
    assert missing.reason is FailureReason.COURSE_NOT_FOUND


@pytest.mark.asyncio
async def test_available_questions_leave_out_linked_ones(services, clock):
    beta, alpha, _ = await _bank(services, clock)
    quiz_id = (await services.catalog.create_quiz(quiz_definition(), INSTRUCTOR_ID)).unwrap()

    everything = (await services.catalog.list_available_questions(COURSE_ID, INSTRUCTOR_ID)).unwrap()
    await services.catalog.add_questions_to_quiz(quiz_id, [alpha.id], INSTRUCTOR_ID)
    remaining = (await services.catalog.list_available_questions(COURSE_ID, INSTRUCTOR_ID, quiz_id)).unwrap()
    foreign_quiz = await services.catalog.list_available_questions(COURSE_ID, INSTRUCTOR_ID, 424242)

    assert [s.question_id for s in everything] == [alpha.id, beta.id]
    assert [s.question_id for s in remaining] == [beta.id]
    assert foreign_quiz.reason is FailureReason.QUIZ_NOT_FOUND


@pytest.mark.asyncio
async def test_search_questions_matches_text_and_explanation(services, clock):
    beta, alpha, _ = await _bank(services, clock)

    by_text = (await services.catalog.search_questions(COURSE_ID, "  ALPHA ", INSTRUCTOR_ID)).unwrap()
    by_explanation = (await services.catalog.search_questions(COURSE_ID, "because", INSTRUCTOR_ID)).unwrap()
    wildcard = (await services.catalog.search_questions(COURSE_ID, "%", INSTRUCTOR_ID)).unwrap()
    blank = await services.catalog.search_questions(COURSE_ID, "   ", INSTRUCTOR_ID)

    assert [s.question_id for s in by_text] == [alpha.id]
    assert [s.question_id for s in by_explanation] == [beta.id]
    assert wildcard == []
    assert blank.kind is ErrorKind.VALIDATION
    assert "search_term" in blank.failure.details
