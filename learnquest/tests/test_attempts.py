"""
Tests for the attempt lifecycle: start, submit, time limits and lookups.
"""

import datetime
import logging
import random

import pytest

from learnquest.assessments.models import AttemptState, SubmittedAnswer
from learnquest.common.exceptions import ErrorKind, FailureReason
from learnquest.common.results import OperationResult
from learnquest.tests.helpers import (
    INSTRUCTOR_ID,
    OTHER_INSTRUCTOR_ID,
    OTHER_STUDENT_ID,
    STUDENT_ID,
    build_quiz,
    correct_answer,
    mc_question,
    tf_question,
    wrong_answer,
)


@pytest.mark.asyncio
async def test_all_correct_answers_pass(services):
    quiz_id, views = await build_quiz(services, [mc_question(5), mc_question(5)], passing_score=60)

    attempt = (await services.attempts.start_attempt(quiz_id, STUDENT_ID)).unwrap()
    assert attempt.total_points == 10
    assert attempt.state is AttemptState.IN_PROGRESS

    result = (await services.attempts.submit(quiz_id, STUDENT_ID, [correct_answer(v) for v in views])).unwrap()

    assert result.score == 10
    assert result.score_percentage == 100
    assert result.passed is True
    assert result.attempt.state is AttemptState.COMPLETED
    assert [answer.is_correct for answer in result.answers] == [True, True]


@pytest.mark.asyncio
async def test_half_correct_fails_below_passing_score(services):
    quiz_id, views = await build_quiz(services, [mc_question(5), mc_question(5)], passing_score=60)
    await services.attempts.start_attempt(quiz_id, STUDENT_ID)

    result = (await services.attempts.submit(
        quiz_id, STUDENT_ID, [correct_answer(views[0]), wrong_answer(views[1])]
    )).unwrap()

    assert result.score == 5
    assert result.score_percentage == 50
    assert result.passed is False


@pytest.mark.asyncio
async def test_score_exactly_at_passing_score_passes(services):
    quiz_id, views = await build_quiz(services, [mc_question(7), mc_question(3)], passing_score=70)
    await services.attempts.start_attempt(quiz_id, STUDENT_ID)

    result = (await services.attempts.submit(
        quiz_id, STUDENT_ID, [correct_answer(views[0]), wrong_answer(views[1])]
    )).unwrap()

    assert result.score == 7
    assert result.passed is True


@pytest.mark.asyncio
async def test_true_false_grading_through_submit(services):
    quiz_id, views = await build_quiz(services, [tf_question(correct=True, points=2)], max_attempts=2)

    await services.attempts.start_attempt(quiz_id, STUDENT_ID)
    first = (await services.attempts.submit(
        quiz_id, STUDENT_ID, [SubmittedAnswer(views[0].question_id, boolean_answer=True)]
    )).unwrap()
    assert first.answers[0].is_correct is True
    assert first.score == 2

    await services.attempts.start_attempt(quiz_id, STUDENT_ID)
    second = (await services.attempts.submit(
        quiz_id, STUDENT_ID, [SubmittedAnswer(views[0].question_id, boolean_answer=False)]
    )).unwrap()
    assert second.answers[0].is_correct is False
    assert second.score == 0


@pytest.mark.asyncio
async def test_attempt_limit_counts_completed_attempts(services):
    quiz_id, views = await build_quiz(services, [mc_question()], max_attempts=1)
    await services.attempts.start_attempt(quiz_id, STUDENT_ID)
    await services.attempts.submit(quiz_id, STUDENT_ID, [correct_answer(views[0])])

    second = await services.attempts.start_attempt(quiz_id, STUDENT_ID)

    assert not second.success
    assert second.kind is ErrorKind.INVALID_STATE
    assert second.reason is FailureReason.ATTEMPT_LIMIT_REACHED


@pytest.mark.asyncio
async def test_passing_does_not_block_remaining_attempts(services):
    quiz_id, views = await build_quiz(services, [mc_question()], max_attempts=2)
    await services.attempts.start_attempt(quiz_id, STUDENT_ID)
    assert (await services.attempts.submit(quiz_id, STUDENT_ID, [correct_answer(views[0])])).unwrap().passed

    again = await services.attempts.start_attempt(quiz_id, STUDENT_ID)

    assert again.success
    assert again.value.attempt_number == 2


@pytest.mark.asyncio
async def test_second_start_while_in_progress_is_refused(services):
    quiz_id, _ = await build_quiz(services, [mc_question()])
    await services.attempts.start_attempt(quiz_id, STUDENT_ID)

    second = await services.attempts.start_attempt(quiz_id, STUDENT_ID)

    assert second.reason is FailureReason.ACTIVE_ATTEMPT_EXISTS
    assert len(await services.attempts.list_user_attempts(quiz_id, STUDENT_ID)) == 1


@pytest.mark.asyncio
async def test_concurrent_start_is_rejected_by_the_database(services, monkeypatch):
    quiz_id, _ = await build_quiz(services, [mc_question()])
    await services.attempts.start_attempt(quiz_id, STUDENT_ID)

    # Simulate a request whose eligibility check ran before the first insert
    async def stale_check(store, quiz, user_id):
        return OperationResult.ok(0)

    monkeypatch.setattr("learnquest.assessments.attempts.check_can_attempt", stale_check)
    second = await services.attempts.start_attempt(quiz_id, STUDENT_ID)

    assert second.reason is FailureReason.ACTIVE_ATTEMPT_EXISTS
    assert len(await services.attempts.list_user_attempts(quiz_id, STUDENT_ID)) == 1


@pytest.mark.asyncio
async def test_attempt_numbers_are_sequential(services, clock):
    quiz_id, views = await build_quiz(services, [mc_question()], max_attempts=3)

    numbers = []
    for _ in range(3):
        numbers.append((await services.attempts.start_attempt(quiz_id, STUDENT_ID)).unwrap().attempt_number)
        clock.advance(minutes=1)
        await services.attempts.submit(quiz_id, STUDENT_ID, [wrong_answer(views[0])])

    assert numbers == [1, 2, 3]
    history = await services.attempts.list_user_attempts(quiz_id, STUDENT_ID)
    assert [attempt.attempt_number for attempt in history] == [3, 2, 1]


@pytest.mark.asyncio
async def test_attempts_are_counted_per_user(services):
    quiz_id, _ = await build_quiz(services, [mc_question()], max_attempts=1)
    await services.attempts.start_attempt(quiz_id, STUDENT_ID)

    other = await services.attempts.start_attempt(quiz_id, OTHER_STUDENT_ID)

    assert other.success
    assert other.value.attempt_number == 1


@pytest.mark.asyncio
async def test_submit_twice_fails_second_time(services):
    quiz_id, views = await build_quiz(services, [mc_question()])
    await services.attempts.start_attempt(quiz_id, STUDENT_ID)
    first = await services.attempts.submit(quiz_id, STUDENT_ID, [correct_answer(views[0])])

    second = await services.attempts.submit(quiz_id, STUDENT_ID, [wrong_answer(views[0])])

    assert first.success
    assert second.reason is FailureReason.NO_ACTIVE_ATTEMPT
    stored = (await services.attempts.get_attempt(first.value.attempt.id, STUDENT_ID)).unwrap()
    assert stored.score == first.value.score


@pytest.mark.asyncio
async def test_submit_without_attempt_fails(services):
    quiz_id, views = await build_quiz(services, [mc_question()])

    result = await services.attempts.submit(quiz_id, STUDENT_ID, [correct_answer(views[0])])

    assert result.kind is ErrorKind.INVALID_STATE
    assert result.reason is FailureReason.NO_ACTIVE_ATTEMPT


@pytest.mark.asyncio
async def test_total_points_are_fixed_when_the_attempt_starts(services):
    quiz_id, views = await build_quiz(services, [mc_question(5), mc_question(5)], passing_score=50)
    attempt = (await services.attempts.start_attempt(quiz_id, STUDENT_ID)).unwrap()

    changed = await services.catalog.update_question_points(quiz_id, {views[0].question_id: 20}, INSTRUCTOR_ID)
    assert changed.unwrap() == 1
    assert (await services.catalog.get_quiz(quiz_id)).unwrap().total_points == 25

    result = (await services.attempts.submit(quiz_id, STUDENT_ID, [correct_answer(v) for v in views])).unwrap()

    assert attempt.total_points == 10
    assert result.total_points == 10
    assert result.score == 10
    assert result.passed is True


@pytest.mark.asyncio
async def test_custom_points_override_question_points(services):
    quiz_id, views = await build_quiz(services, [mc_question(5), mc_question(5)], custom_points={0: 8})

    attempt = (await services.attempts.start_attempt(quiz_id, STUDENT_ID)).unwrap()
    result = (await services.attempts.submit(quiz_id, STUDENT_ID, [correct_answer(views[0])])).unwrap()

    assert attempt.total_points == 13
    assert result.score == 8
    assert result.answers[0].points_possible == 8


@pytest.mark.asyncio
async def test_quiz_without_questions_is_never_passed(services):
    quiz_id, _ = await build_quiz(services, [], passing_score=0)
    attempt = (await services.attempts.start_attempt(quiz_id, STUDENT_ID)).unwrap()

    result = (await services.attempts.submit(quiz_id, STUDENT_ID, [])).unwrap()

    assert attempt.total_points == 0
    assert result.score == 0
    assert result.score_percentage == 0
    assert result.passed is False


@pytest.mark.asyncio
async def test_answers_to_foreign_questions_are_ignored(services):
    quiz_id, views = await build_quiz(services, [mc_question(5)])
    _, other_views = await build_quiz(services, [mc_question(5)], title="Other quiz")
    await services.attempts.start_attempt(quiz_id, STUDENT_ID)

    result = (await services.attempts.submit(
        quiz_id, STUDENT_ID, [correct_answer(other_views[0]), SubmittedAnswer(question_id=99999)]
    )).unwrap()

    assert result.score == 0
    assert result.answers == []


@pytest.mark.asyncio
async def test_only_first_answer_per_question_counts(services):
    quiz_id, views = await build_quiz(services, [mc_question(5)])
    await services.attempts.start_attempt(quiz_id, STUDENT_ID)

    result = (await services.attempts.submit(
        quiz_id, STUDENT_ID, [wrong_answer(views[0]), correct_answer(views[0])]
    )).unwrap()

    assert result.score == 0
    assert len(result.answers) == 1
    assert result.answers[0].is_correct is False


@pytest.mark.asyncio
async def test_unanswered_questions_earn_nothing(services):
    quiz_id, views = await build_quiz(services, [mc_question(4), mc_question(6)])
    await services.attempts.start_attempt(quiz_id, STUDENT_ID)

    result = (await services.attempts.submit(quiz_id, STUDENT_ID, [correct_answer(views[1])])).unwrap()

    assert result.score == 6
    assert [answer.question_id for answer in result.answers] == [views[1].question_id]


@pytest.mark.asyncio
async def test_submit_after_time_limit_is_refused(services, clock):
    quiz_id, views = await build_quiz(services, [mc_question()], time_limit_minutes=10)
    await services.attempts.start_attempt(quiz_id, STUDENT_ID)
    clock.advance(minutes=11)

    result = await services.attempts.submit(quiz_id, STUDENT_ID, [correct_answer(views[0])])

    assert result.kind is ErrorKind.INVALID_STATE
    assert result.reason is FailureReason.TIME_LIMIT_EXCEEDED
    active = await services.attempts.get_active_attempt(quiz_id, STUDENT_ID)
    assert active is not None
    assert active.completed_at is None


@pytest.mark.asyncio
async def test_expired_attempt_still_counts_and_blocks_new_attempts(services, clock):
    quiz_id, views = await build_quiz(services, [mc_question()], time_limit_minutes=10, max_attempts=3)
    await services.attempts.start_attempt(quiz_id, STUDENT_ID)
    clock.advance(minutes=30)
    await services.attempts.submit(quiz_id, STUDENT_ID, [correct_answer(views[0])])

    assert (await services.gate.remaining_attempts(quiz_id, STUDENT_ID)).unwrap() == 2
    again = await services.attempts.start_attempt(quiz_id, STUDENT_ID)
    assert again.reason is FailureReason.ACTIVE_ATTEMPT_EXISTS


@pytest.mark.asyncio
async def test_submit_exactly_at_time_limit_is_accepted(services, clock):
    quiz_id, views = await build_quiz(services, [mc_question()], time_limit_minutes=10)
    await services.attempts.start_attempt(quiz_id, STUDENT_ID)
    clock.advance(minutes=10)

    result = (await services.attempts.submit(quiz_id, STUDENT_ID, [correct_answer(views[0])])).unwrap()

    assert result.attempt.time_taken_minutes == 10


@pytest.mark.asyncio
async def test_time_taken_is_rounded_to_minutes(services, clock):
    quiz_id, views = await build_quiz(services, [mc_question()])
    started = (await services.attempts.start_attempt(quiz_id, STUDENT_ID)).unwrap()
    clock.advance(minutes=7, seconds=30)

    result = (await services.attempts.submit(quiz_id, STUDENT_ID, [correct_answer(views[0])])).unwrap()

    assert result.attempt.time_taken_minutes == 8
    assert result.attempt.completed_at - started.started_at == datetime.timedelta(minutes=7, seconds=30)


@pytest.mark.asyncio
async def test_remaining_time(services, clock):
    quiz_id, views = await build_quiz(services, [mc_question()], time_limit_minutes=30)
    assert await services.attempts.get_remaining_time(quiz_id, STUDENT_ID) is None

    await services.attempts.start_attempt(quiz_id, STUDENT_ID)
    clock.advance(minutes=12)
    assert await services.attempts.get_remaining_time(quiz_id, STUDENT_ID) == datetime.timedelta(minutes=18)

    clock.advance(minutes=40)
    assert await services.attempts.get_remaining_time(quiz_id, STUDENT_ID) == datetime.timedelta(0)


@pytest.mark.asyncio
async def test_remaining_time_without_limit_is_none(services):
    quiz_id, _ = await build_quiz(services, [mc_question()])
    await services.attempts.start_attempt(quiz_id, STUDENT_ID)

    assert await services.attempts.get_remaining_time(quiz_id, STUDENT_ID) is None
    assert await services.attempts.is_in_progress(quiz_id, STUDENT_ID)


@pytest.mark.asyncio
async def test_start_on_missing_quiz(services):
    result = await services.attempts.start_attempt(424242, STUDENT_ID)

    assert result.kind is ErrorKind.NOT_FOUND
    assert result.reason is FailureReason.QUIZ_NOT_FOUND


@pytest.mark.asyncio
async def test_start_on_inactive_or_deleted_quiz(services):
    inactive_id, _ = await build_quiz(services, [mc_question()])
    deleted_id, _ = await build_quiz(services, [mc_question()], title="Deleted quiz")
    await services.catalog.toggle_quiz_status(inactive_id, INSTRUCTOR_ID)
    await services.catalog.delete_quiz(deleted_id, INSTRUCTOR_ID)

    inactive = await services.attempts.start_attempt(inactive_id, STUDENT_ID)
    deleted = await services.attempts.start_attempt(deleted_id, STUDENT_ID)

    assert inactive.reason is FailureReason.QUIZ_INACTIVE
    assert deleted.reason is FailureReason.QUIZ_NOT_FOUND


@pytest.mark.asyncio
async def test_student_view_hides_answers(services):
    quiz_id, _ = await build_quiz(services, [mc_question(), tf_question()])

    before = await services.attempts.get_questions_for_attempt(quiz_id, STUDENT_ID)
    assert before.reason is FailureReason.NO_ACTIVE_ATTEMPT

    await services.attempts.start_attempt(quiz_id, STUDENT_ID)
    views = (await services.attempts.get_questions_for_attempt(quiz_id, STUDENT_ID)).unwrap()

    assert [view.order_index for view in views] == [1, 2]
    for view in views:
        assert view.explanation is None
        assert all(option.is_correct is None for option in view.options)


@pytest.mark.asyncio
async def test_get_attempt_rebuilds_stored_breakdown(services):
    quiz_id, views = await build_quiz(services, [mc_question(5), tf_question(points=3)])
    await services.attempts.start_attempt(quiz_id, STUDENT_ID)
    submitted = (await services.attempts.submit(
        quiz_id, STUDENT_ID, [correct_answer(views[0]), wrong_answer(views[1])]
    )).unwrap()

    stored = (await services.attempts.get_attempt(submitted.attempt.id, STUDENT_ID)).unwrap()

    assert stored.score == 5
    assert [(a.question_id, a.is_correct, a.points_earned) for a in stored.answers] == [
        (a.question_id, a.is_correct, a.points_earned) for a in submitted.answers
    ]


@pytest.mark.asyncio
async def test_only_the_answer_field_of_the_question_type_is_stored(services):
    quiz_id, (mc_view, tf_view) = await build_quiz(services, [mc_question(5), tf_question(correct=True)])
    await services.attempts.start_attempt(quiz_id, STUDENT_ID)
    option_id = correct_answer(mc_view).selected_option_id
    mixed = [
        SubmittedAnswer(mc_view.question_id, selected_option_id=option_id, boolean_answer=True),
        SubmittedAnswer(tf_view.question_id, selected_option_id=tf_view.options[0].option_id, boolean_answer=True),
    ]

    submitted = (await services.attempts.submit(quiz_id, STUDENT_ID, mixed)).unwrap()
    stored = (await services.attempts.get_attempt(submitted.attempt.id, STUDENT_ID)).unwrap()

    expected = [(mc_view.question_id, option_id, None), (tf_view.question_id, None, True)]
    assert submitted.score == 6
    for result in (submitted, stored):
        assert [(a.question_id, a.selected_option_id, a.boolean_answer) for a in result.answers] == expected


@pytest.mark.asyncio
async def test_get_attempt_of_other_user_or_missing(services):
    quiz_id, _ = await build_quiz(services, [mc_question()])
    attempt = (await services.attempts.start_attempt(quiz_id, STUDENT_ID)).unwrap()

    other = await services.attempts.get_attempt(attempt.id, OTHER_STUDENT_ID)
    missing = await services.attempts.get_attempt(987654, STUDENT_ID)

    assert other.kind is ErrorKind.UNAUTHORIZED
    assert missing.reason is FailureReason.ATTEMPT_NOT_FOUND


@pytest.mark.asyncio
async def test_best_attempt_prefers_latest_among_equal_scores(services, clock):
    quiz_id, views = await build_quiz(services, [mc_question(5), mc_question(5)], max_attempts=4)
    plans = [
        [correct_answer(views[0])],
        [correct_answer(v) for v in views],
        [correct_answer(v) for v in views],
    ]
    for answers in plans:
        await services.attempts.start_attempt(quiz_id, STUDENT_ID)
        clock.advance(minutes=5)
        await services.attempts.submit(quiz_id, STUDENT_ID, answers)
    # An open attempt is never the best one
    await services.attempts.start_attempt(quiz_id, STUDENT_ID)

    best = await services.attempts.get_best_attempt(quiz_id, STUDENT_ID)

    assert best.attempt_number == 3
    assert best.score == 10


@pytest.mark.asyncio
async def test_best_attempt_none_without_completed_attempts(services):
    quiz_id, _ = await build_quiz(services, [mc_question()])
    await services.attempts.start_attempt(quiz_id, STUDENT_ID)

    assert await services.attempts.get_best_attempt(quiz_id, STUDENT_ID) is None


@pytest.mark.asyncio
async def test_random_submissions_score_the_sum_of_correct_points(services):
    rng = random.Random(20260105)
    points = [rng.randint(1, 10) for _ in range(6)]
    quiz_id, views = await build_quiz(
        services, [mc_question(p, correct_index=rng.randrange(4)) for p in points],
        max_attempts=10, passing_score=60,
    )
    total = sum(points)

    for _ in range(10):
        answers, expected = [], 0
        for view in views:
            choice = rng.choice(("correct", "wrong", "skip"))
            if choice == "correct":
                answers.append(correct_answer(view))
                expected += view.points
            elif choice == "wrong":
                answers.append(wrong_answer(view))
        rng.shuffle(answers)

        await services.attempts.start_attempt(quiz_id, STUDENT_ID)
        result = (await services.attempts.submit(quiz_id, STUDENT_ID, answers)).unwrap()

        assert result.total_points == total
        assert result.score == expected
        assert 0 <= result.score <= result.total_points
        assert result.passed == (expected * 100 >= 60 * total)


@pytest.mark.asyncio
async def test_submit_logs_with_attempt_context(services, caplog):
    quiz_id, views = await build_quiz(services, [mc_question()])
    attempt = (await services.attempts.start_attempt(quiz_id, STUDENT_ID)).unwrap()

    with caplog.at_level(logging.INFO, logger="learnquest"):
        await services.attempts.submit(quiz_id, STUDENT_ID, [correct_answer(views[0])])

    messages = [record.getMessage() for record in caplog.records]
    assert any(
        f"attempt_id={attempt.id}" in message and "Attempt submitted" in message for message in messages
    )


# --- instructor review -------------------------------------------------------------

@pytest.mark.asyncio
async def test_instructor_lists_attempts_of_every_user(services, clock):
    quiz_id, _ = await build_quiz(services, [mc_question()])
    first = (await services.attempts.start_attempt(quiz_id, STUDENT_ID)).unwrap()
    clock.advance(minutes=2)
    second = (await services.attempts.start_attempt(quiz_id, OTHER_STUDENT_ID)).unwrap()

    attempts = (await services.attempts.list_quiz_attempts(quiz_id, INSTRUCTOR_ID)).unwrap()
    foreign = await services.attempts.list_quiz_attempts(quiz_id, OTHER_INSTRUCTOR_ID)

    assert [attempt.id for attempt in attempts] == [second.id, first.id]
    assert foreign.kind is ErrorKind.UNAUTHORIZED


@pytest.mark.asyncio
async def test_instructor_attempt_details_include_the_breakdown(services):
    quiz_id, views = await build_quiz(services, [mc_question(5), tf_question(points=3)])
    await services.attempts.start_attempt(quiz_id, STUDENT_ID)
    submitted = (await services.attempts.submit(
        quiz_id, STUDENT_ID, [correct_answer(views[0]), wrong_answer(views[1])]
    )).unwrap()
    attempt_id = submitted.attempt.id

    details = (await services.attempts.get_attempt_details(attempt_id, INSTRUCTOR_ID)).unwrap()
    foreign = await services.attempts.get_attempt_details(attempt_id, OTHER_INSTRUCTOR_ID)
    missing = await services.attempts.get_attempt_details(987654, INSTRUCTOR_ID)

    assert details.attempt.user_id == STUDENT_ID
    assert [(a.is_correct, a.points_earned) for a in details.answers] == [(True, 5), (False, 0)]
    assert foreign.kind is ErrorKind.UNAUTHORIZED
    assert missing.reason is FailureReason.ATTEMPT_NOT_FOUND


@pytest.mark.asyncio
async def test_attempts_of_a_deleted_quiz_stay_visible_to_its_creator(services):
    quiz_id, views = await build_quiz(services, [mc_question()])
    await services.attempts.start_attempt(quiz_id, STUDENT_ID)
    submitted = (await services.attempts.submit(quiz_id, STUDENT_ID, [correct_answer(views[0])])).unwrap()
    await services.catalog.delete_quiz(quiz_id, INSTRUCTOR_ID)

    details = await services.attempts.get_attempt_details(submitted.attempt.id, INSTRUCTOR_ID)
    listing = await services.attempts.list_quiz_attempts(quiz_id, INSTRUCTOR_ID)

    assert details.unwrap().score == submitted.score
    assert listing.reason is FailureReason.QUIZ_NOT_FOUND
