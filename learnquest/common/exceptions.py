"""
Common Exception Classes

Business outcomes of the assessment engine are reported through
``OperationResult`` (see ``learnquest.common.results``). The exceptions below
are what a failed result turns into when a caller chooses to ``unwrap()`` it,
plus ``DatabaseError`` for infrastructure faults that are never folded into a
result.
"""

import enum
from typing import Optional, Any


class ErrorKind(enum.Enum):
    """Machine-checkable category of a business failure."""
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    INVALID_STATE = "invalid_state"
    VALIDATION = "validation"


class FailureReason(enum.Enum):
    """Specific cause of a business failure, refining ``ErrorKind``."""
    QUIZ_NOT_FOUND = "quiz_not_found"
    QUESTION_NOT_FOUND = "question_not_found"
    ATTEMPT_NOT_FOUND = "attempt_not_found"
    COURSE_NOT_FOUND = "course_not_found"
    QUIZ_INACTIVE = "quiz_inactive"
    NOT_OWNER = "not_owner"
    ACTIVE_ATTEMPT_EXISTS = "active_attempt_exists"
    ATTEMPT_LIMIT_REACHED = "attempt_limit_reached"
    NO_ACTIVE_ATTEMPT = "no_active_attempt"
    TIME_LIMIT_EXCEEDED = "time_limit_exceeded"
    QUESTION_IN_USE = "question_in_use"
    NOT_AN_EXAM = "not_an_exam"
    INVALID_INPUT = "invalid_input"


class BaseError(Exception):
    """Base class for all custom exceptions."""

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_exception = original_exception


class DatabaseError(BaseError):
    """Raised when the persistence layer fails; the transaction has been rolled back."""

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(f"Database error: {message}", original_exception)


class AssessmentError(BaseError):
    """
    Base class for business-rule failures of the assessment engine.

    Attributes:
        kind: The error category
        reason: The specific failure cause
    """

    kind: ErrorKind = ErrorKind.INVALID_STATE

    def __init__(self, message: str, reason: FailureReason):
        super().__init__(message)
        self.reason = reason


class NotFoundError(AssessmentError):
    """A quiz, question or attempt does not exist or has been soft-deleted."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, message: str, reason: FailureReason = FailureReason.QUIZ_NOT_FOUND,
                 resource_id: Any = None):
        super().__init__(message, reason)
        self.resource_id = resource_id


class UnauthorizedError(AssessmentError):
    """The instructor does not own the quiz, question or course being changed."""

    kind = ErrorKind.UNAUTHORIZED

    def __init__(self, message: str, reason: FailureReason = FailureReason.NOT_OWNER):
        super().__init__(message, reason)


class InvalidStateError(AssessmentError):
    """An operation is not allowed in the current attempt or quiz state."""

    kind = ErrorKind.INVALID_STATE


class ValidationError(AssessmentError):
    """Input was rejected before anything was persisted."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, errors: Optional[dict] = None,
                 reason: FailureReason = FailureReason.INVALID_INPUT):
        super().__init__(f"Validation error: {message}", reason)
        self.errors = errors or {}

