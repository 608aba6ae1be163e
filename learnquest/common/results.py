"""
Operation Results

Business operations return an ``OperationResult`` instead of raising, so that
"no active attempt" or "attempt limit reached" are values the caller has to
look at rather than exceptions to catch by type.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Optional, TypeVar

from learnquest.common.exceptions import (
    AssessmentError,
    ErrorKind,
    FailureReason,
    NotFoundError,
    UnauthorizedError,
    InvalidStateError,
    ValidationError,
)

V = TypeVar('V')


@dataclass(frozen=True)
class Failure:
    """
    Description of why an operation did not succeed.

    Attributes:
        kind: Error category
        reason: Specific cause
        message: Human readable message
        details: Optional extra data (field errors for validation failures)
    """
    kind: ErrorKind
    reason: FailureReason
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_exception(self) -> AssessmentError:
        """Build the exception matching this failure's kind."""
        if self.kind is ErrorKind.NOT_FOUND:
            return NotFoundError(self.message, self.reason)
        if self.kind is ErrorKind.UNAUTHORIZED:
            return UnauthorizedError(self.message, self.reason)
        if self.kind is ErrorKind.VALIDATION:
            return ValidationError(self.message, self.details, self.reason)
        return InvalidStateError(self.message, self.reason)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "error": self.kind.value,
            "reason": self.reason.value,
            "message": self.message,
        }
        if self.details:
            data["details"] = self.details
        return data


@dataclass(frozen=True)
class OperationResult(Generic[V]):
    """
    Result of a business operation.

    Attributes:
        success: Whether the operation succeeded
        value: The produced value when successful
        failure: Why the operation failed when unsuccessful
    """
    success: bool
    value: Optional[V] = None
    failure: Optional[Failure] = None

    @classmethod
    def ok(cls, value: V = None) -> 'OperationResult[V]':
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, kind: ErrorKind, reason: FailureReason, message: str,
             details: Optional[Dict[str, Any]] = None) -> 'OperationResult[V]':
        return cls(success=False, failure=Failure(kind, reason, message, details or {}))

    @classmethod
    def not_found(cls, reason: FailureReason, message: str) -> 'OperationResult[V]':
        return cls.fail(ErrorKind.NOT_FOUND, reason, message)

    @classmethod
    def unauthorized(cls, message: str,
                     reason: FailureReason = FailureReason.NOT_OWNER) -> 'OperationResult[V]':
        return cls.fail(ErrorKind.UNAUTHORIZED, reason, message)

    @classmethod
    def invalid_state(cls, reason: FailureReason, message: str) -> 'OperationResult[V]':
        return cls.fail(ErrorKind.INVALID_STATE, reason, message)

    @classmethod
    def invalid(cls, message: str, errors: Optional[Dict[str, Any]] = None,
                reason: FailureReason = FailureReason.INVALID_INPUT) -> 'OperationResult[V]':
        return cls.fail(ErrorKind.VALIDATION, reason, message, errors)

    def propagate(self) -> 'OperationResult[Any]':
        """Re-type a failed result so it can be returned from another operation."""
        if self.success:
            raise ValueError("Only failed results can be propagated")
        return OperationResult(success=False, failure=self.failure)

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.failure.kind if self.failure else None

    @property
    def reason(self) -> Optional[FailureReason]:
        return self.failure.reason if self.failure else None

    def unwrap(self) -> V:
        """
        Return the value, or raise the exception matching the failure.

        Raises:
            NotFoundError, UnauthorizedError, InvalidStateError, ValidationError
        """
        if self.success:
            return self.value
        raise self.failure.to_exception()
