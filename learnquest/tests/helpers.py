"""
Builders shared by the assessment tests.
"""

import datetime
from typing import List, Optional, Tuple

from learnquest.assessments.models import QuestionType, QuestionView, QuizType, SubmittedAnswer
from learnquest.assessments.schemas import OptionCreate, QuestionCreate, QuizCreate

COURSE_ID = 1
OTHER_COURSE_ID = 2
LEVEL_ID = 10
OTHER_LEVEL_ID = 20
INSTRUCTOR_ID = 100
OTHER_INSTRUCTOR_ID = 200
STUDENT_ID = 500
OTHER_STUDENT_ID = 501


class Clock:
    """Settable clock injected into the services."""

    def __init__(self, now: datetime.datetime):
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += datetime.timedelta(**delta)


def mc_question(points: int = 5, correct_index: int = 0, text: str = "Which option is the right one?",
                course_id: int = COURSE_ID, option_count: int = 4) -> QuestionCreate:
    return QuestionCreate(
        text=text,
        question_type=QuestionType.MULTIPLE_CHOICE,
        course_id=course_id,
        points=points,
        explanation="Because it is.",
        options=[
            OptionCreate(text=f"Option {index}", is_correct=index == correct_index, order_index=index + 1)
            for index in range(option_count)
        ],
    )


def tf_question(correct: bool = True, points: int = 1, text: str = "The sky is blue on a clear day.") -> QuestionCreate:
    return QuestionCreate(
        text=text,
        question_type=QuestionType.TRUE_FALSE,
        course_id=COURSE_ID,
        points=points,
        options=[
            OptionCreate(text="True", is_correct=correct, order_index=1),
            OptionCreate(text="False", is_correct=not correct, order_index=2),
        ],
    )


def quiz_definition(title: str = "Chapter quiz", quiz_type: QuizType = QuizType.COURSE_QUIZ,
                    **settings) -> QuizCreate:
    return QuizCreate(title=title, quiz_type=quiz_type, course_id=settings.pop("course_id", COURSE_ID), **settings)


async def build_quiz(services, questions: List[QuestionCreate], custom_points: Optional[dict] = None,
                     **settings) -> Tuple[int, List[QuestionView]]:
    """
    Create a quiz with the given questions through the catalog.

    Returns the quiz id and the instructor view of its questions in order.
    """
    question_ids = []
    for definition in questions:
        question_ids.append((await services.catalog.create_question(definition, INSTRUCTOR_ID)).unwrap().id)

    quiz_id = (await services.catalog.create_quiz(quiz_definition(**settings), INSTRUCTOR_ID)).unwrap()
    if question_ids:
        points = None
        if custom_points:
            points = {question_ids[index]: value for index, value in custom_points.items()}
        await services.catalog.add_questions_to_quiz(quiz_id, question_ids, INSTRUCTOR_ID, points)

    views = (await services.catalog.get_quiz_questions(quiz_id, INSTRUCTOR_ID)).unwrap()
    return quiz_id, views


def correct_answer(view: QuestionView) -> SubmittedAnswer:
    correct = next(option for option in view.options if option.is_correct)
    if view.question_type is QuestionType.TRUE_FALSE:
        return SubmittedAnswer(view.question_id, boolean_answer=correct.text.lower() == "true")
    return SubmittedAnswer(view.question_id, selected_option_id=correct.option_id)


def wrong_answer(view: QuestionView) -> SubmittedAnswer:
    wrong = next(option for option in view.options if not option.is_correct)
    if view.question_type is QuestionType.TRUE_FALSE:
        return SubmittedAnswer(view.question_id, boolean_answer=wrong.text.lower() == "true")
    return SubmittedAnswer(view.question_id, selected_option_id=wrong.option_id)
