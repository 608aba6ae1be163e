"""
Input schemas for the assessment engine.

These pydantic models validate the shape of incoming definitions before any
persistence happens. Limits that depend on configuration (attempt cap, time
limit, point range, option count) are checked by ``QuizCatalog``.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from learnquest.assessments.models import QuestionType, QuizType

# Which narrower scope ids each quiz type must carry; anything else must be empty
_SCOPE_FIELDS = ("content_id", "section_id", "level_id")
_REQUIRED_SCOPE = {
    QuizType.CONTENT_QUIZ: {"content_id"},
    QuizType.SECTION_QUIZ: {"section_id"},
    QuizType.LEVEL_QUIZ: {"level_id"},
    QuizType.COURSE_QUIZ: set(),
}


class QuizCreate(BaseModel):
    """Definition of a new quiz. Unset settings take the configured defaults."""
    title: str = Field(..., min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    quiz_type: QuizType
    course_id: int = Field(..., gt=0)
    content_id: Optional[int] = Field(default=None, gt=0)
    section_id: Optional[int] = Field(default=None, gt=0)
    level_id: Optional[int] = Field(default=None, gt=0)
    max_attempts: Optional[int] = Field(default=None, ge=1)
    passing_score: Optional[int] = Field(default=None, ge=0, le=100)
    is_required: Optional[bool] = None
    time_limit_minutes: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode='after')
    def validate_scope(self) -> 'QuizCreate':
        # Exams may optionally be tied to a level but never to content or a section
        if self.quiz_type is QuizType.EXAM_QUIZ:
            if self.content_id is not None or self.section_id is not None:
                raise ValueError("Exam quizzes can only be scoped to a course or a level")
            return self

        required = _REQUIRED_SCOPE[self.quiz_type]
        for name in _SCOPE_FIELDS:
            value = getattr(self, name)
            if name in required and value is None:
                raise ValueError(f"{name} is required for {self.quiz_type.value}")
            if name not in required and value is not None:
                raise ValueError(f"{name} must not be set for {self.quiz_type.value}")
        return self


class QuizUpdate(BaseModel):
    """Partial update; only fields that are set are applied."""
    title: Optional[str] = Field(default=None, min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    max_attempts: Optional[int] = Field(default=None, ge=1)
    passing_score: Optional[int] = Field(default=None, ge=0, le=100)
    is_required: Optional[bool] = None
    time_limit_minutes: Optional[int] = Field(default=None, ge=1)
    is_active: Optional[bool] = None


class OptionCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=500)
    is_correct: bool = False
    order_index: int = Field(default=0, ge=0)


def _check_options(question_type: QuestionType, options: List[OptionCreate]) -> None:
    correct = [option for option in options if option.is_correct]
    if len(correct) != 1:
        raise ValueError("Exactly one option must be marked correct")

    if question_type is QuestionType.TRUE_FALSE:
        texts = sorted(option.text.strip().lower() for option in options)
        if texts != ["false", "true"]:
            raise ValueError("True/false questions need exactly the options 'True' and 'False'")


class QuestionCreate(BaseModel):
    text: str = Field(..., min_length=10, max_length=2000)
    question_type: QuestionType
    course_id: int = Field(..., gt=0)
    points: Optional[int] = Field(default=None, ge=1)
    explanation: Optional[str] = Field(default=None, max_length=2000)
    options: List[OptionCreate] = Field(..., min_length=2)

    @model_validator(mode='after')
    def validate_options(self) -> 'QuestionCreate':
        _check_options(self.question_type, self.options)
        return self


class OptionUpdate(BaseModel):
    """An option change: ``option_id`` None adds an option, ``is_deleted`` removes one."""
    option_id: Optional[int] = None
    text: str = Field(..., min_length=1, max_length=500)
    is_correct: bool = False
    order_index: int = Field(default=0, ge=0)
    is_deleted: bool = False


class QuestionUpdate(BaseModel):
    text: Optional[str] = Field(default=None, min_length=10, max_length=2000)
    points: Optional[int] = Field(default=None, ge=1)
    explanation: Optional[str] = Field(default=None, max_length=2000)
    is_active: Optional[bool] = None
    options: Optional[List[OptionUpdate]] = None


def _check_unique_ids(ids: List[int]) -> List[int]:
    if len(set(ids)) != len(ids):
        raise ValueError("existing_question_ids contains duplicates")
    return ids


class QuizWithQuestionsCreate(BaseModel):
    quiz: QuizCreate
    new_questions: List[QuestionCreate] = Field(default_factory=list)
    existing_question_ids: List[int] = Field(default_factory=list)

    @field_validator('existing_question_ids')
    @classmethod
    def validate_unique_ids(cls, v: List[int]) -> List[int]:
        return _check_unique_ids(v)

    @model_validator(mode='after')
    def validate_not_empty(self) -> 'QuizWithQuestionsCreate':
        if not self.new_questions and not self.existing_question_ids:
            raise ValueError("At least one new or existing question is required")
        return self


class ExamCreate(BaseModel):
    """An exam is a quiz of type ``EXAM_QUIZ``, scoped to a course and optionally one of its levels."""
    title: str = Field(..., min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    course_id: int = Field(..., gt=0)
    level_id: Optional[int] = Field(default=None, gt=0)
    max_attempts: Optional[int] = Field(default=None, ge=1)
    passing_score: Optional[int] = Field(default=None, ge=0, le=100)
    is_required: Optional[bool] = None
    time_limit_minutes: Optional[int] = Field(default=None, ge=1)

    def to_quiz(self) -> QuizCreate:
        return QuizCreate(quiz_type=QuizType.EXAM_QUIZ, **self.model_dump())


class ExamWithQuestionsCreate(BaseModel):
    exam: ExamCreate
    new_questions: List[QuestionCreate] = Field(default_factory=list)
    existing_question_ids: List[int] = Field(default_factory=list)

    @field_validator('existing_question_ids')
    @classmethod
    def validate_unique_ids(cls, v: List[int]) -> List[int]:
        return _check_unique_ids(v)

    @model_validator(mode='after')
    def validate_not_empty(self) -> 'ExamWithQuestionsCreate':
        if not self.new_questions and not self.existing_question_ids:
            raise ValueError("At least one new or existing question is required")
        return self

    def to_quiz_bundle(self) -> QuizWithQuestionsCreate:
        return QuizWithQuestionsCreate(
            quiz=self.exam.to_quiz(),
            new_questions=self.new_questions,
            existing_question_ids=self.existing_question_ids,
        )


class AnswerSubmission(BaseModel):
    question_id: int
    selected_option_id: Optional[int] = None
    boolean_answer: Optional[bool] = None

    @model_validator(mode='after')
    def validate_single_answer(self) -> 'AnswerSubmission':
        if self.selected_option_id is not None and self.boolean_answer is not None:
            raise ValueError("Provide either selected_option_id or boolean_answer, not both")
        return self


class SubmitRequest(BaseModel):
    answers: List[AnswerSubmission] = Field(default_factory=list)


class AddQuestionsRequest(BaseModel):
    question_ids: List[int] = Field(..., min_length=1)
    custom_points: Dict[int, int] = Field(default_factory=dict)


class ReorderRequest(BaseModel):
    orders: Dict[int, int]
