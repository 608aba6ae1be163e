"""
Grading Engine

Deterministic, all-or-nothing grading of a single answer against a question's
correct option. There is no partial credit and no negative marking.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional

from learnquest.assessments.models import (
    AnswerResult,
    Question,
    QuestionType,
    QuizEntry,
    SubmittedAnswer,
)


@dataclass(frozen=True)
class GradeOutcome:
    is_correct: bool
    points_earned: int


INCORRECT = GradeOutcome(is_correct=False, points_earned=0)


def canonical_boolean(question: Question) -> Optional[bool]:
    """
    The correct answer of a true/false question.

    Derived from the text of the option flagged correct: ``"true"`` in any
    case means True, anything else False. None when no option is flagged.
    """
    correct = question.correct_option
    if correct is None:
        return None
    return correct.text.strip().lower() == "true"


def _grade_multiple_choice(question: Question, answer: SubmittedAnswer, points: int) -> GradeOutcome:
    # Option ids from other questions simply do not match
    selected = question.find_option(answer.selected_option_id)
    if selected is not None and selected.is_correct:
        return GradeOutcome(is_correct=True, points_earned=points)
    return INCORRECT


def _grade_true_false(question: Question, answer: SubmittedAnswer, points: int) -> GradeOutcome:
    if answer.boolean_answer is None:
        return INCORRECT
    expected = canonical_boolean(question)
    if expected is not None and answer.boolean_answer == expected:
        return GradeOutcome(is_correct=True, points_earned=points)
    return INCORRECT


_GRADERS: Dict[QuestionType, Callable[[Question, SubmittedAnswer, int], GradeOutcome]] = {
    QuestionType.MULTIPLE_CHOICE: _grade_multiple_choice,
    QuestionType.TRUE_FALSE: _grade_true_false,
}

# Answer field each question type is graded on; the other field is dropped before storage
_ANSWER_FIELDS: Dict[QuestionType, str] = {
    QuestionType.MULTIPLE_CHOICE: "selected_option_id",
    QuestionType.TRUE_FALSE: "boolean_answer",
}

_missing = (set(QuestionType) - set(_GRADERS)) | (set(QuestionType) - set(_ANSWER_FIELDS))
if _missing:
    raise RuntimeError(f"Grading is not configured for question types: {sorted(t.value for t in _missing)}")


def grade(question: Question, answer: Optional[SubmittedAnswer], points: int) -> GradeOutcome:
    """
    Grade one answer.

    Args:
        question: The question with its options
        answer: The submitted answer, or None when the question was skipped
        points: Effective points of the question in this quiz

    Returns:
        Correctness and the points earned (``points`` or 0)
    """
    if answer is None:
        return INCORRECT
    return _GRADERS[question.question_type](question, answer, max(points, 0))


def answer_for_question(question: Question, answer: SubmittedAnswer) -> SubmittedAnswer:
    """Copy of ``answer`` carrying only the field used by the question's type."""
    field_name = _ANSWER_FIELDS[question.question_type]
    return SubmittedAnswer(answer.question_id, **{field_name: getattr(answer, field_name)})


def correct_answer_text(question: Question) -> Optional[str]:
    correct = question.correct_option
    return correct.text if correct else None


def describe(entry: QuizEntry, answer: SubmittedAnswer, outcome: GradeOutcome) -> AnswerResult:
    """Build the per-answer breakdown shown after submit."""
    question = entry.question
    selected = question.find_option(answer.selected_option_id)
    return AnswerResult(
        question_id=question.id,
        question_text=question.text,
        is_correct=outcome.is_correct,
        points_earned=outcome.points_earned,
        points_possible=entry.points,
        selected_option_id=answer.selected_option_id,
        selected_option_text=selected.text if selected else None,
        boolean_answer=answer.boolean_answer,
        correct_answer=correct_answer_text(question),
        explanation=question.explanation,
    )
