"""
Custom Exceptions for the Hoarding Rental Service

This module defines the error codes and exception classes used inside the
service layer. Guard violations are raised inside a transaction so that it
rolls back, and are converted into typed results at the operation boundary.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Standard error codes for the application"""
    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    TIMEOUT = "TIMEOUT"
    STALE_VERSION = "STALE_VERSION"

    # Booking token lifecycle
    HOARDING_UNAVAILABLE = "HOARDING_UNAVAILABLE"
    ALREADY_UNDER_PROCESS = "ALREADY_UNDER_PROCESS"
    ALREADY_ASSIGNED = "ALREADY_ASSIGNED"
    FORBIDDEN_TRANSITION = "FORBIDDEN_TRANSITION"
    PROOF_REQUIRED = "PROOF_REQUIRED"
    NOT_READY = "NOT_READY"
    INVALID_STATE = "INVALID_STATE"
    RETRYABLE_CONFLICT = "RETRYABLE_CONFLICT"


# Conflict kinds carry who won a race on a hoarding
CONFLICT_CODES = frozenset({ErrorCode.ALREADY_UNDER_PROCESS, ErrorCode.ALREADY_ASSIGNED})


@dataclass(frozen=True)
class Conflict:
    """
    Structured description of a lost race.

    Attributes:
        kind: ALREADY_UNDER_PROCESS (confirm) or ALREADY_ASSIGNED (fitter)
        token_id: Token the loser acted on
        hoarding_id: Hoarding the race was over
        winner_user_id: Who committed first, when known
        winner_role: Role of the winner, when known
        winner_token_id: Token that holds the hoarding, when known
    """

    kind: ErrorCode
    token_id: Optional[str] = None
    hoarding_id: Optional[str] = None
    winner_user_id: Optional[str] = None
    winner_role: Optional[str] = None
    winner_token_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "token_id": self.token_id,
            "hoarding_id": self.hoarding_id,
            "winner_user_id": self.winner_user_id,
            "winner_role": self.winner_role,
            "winner_token_id": self.winner_token_id,
        }


class BaseAppException(Exception):
    """
    Base exception class for all application exceptions.

    Provides consistent error handling across the application with
    structured error information.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary format"""
        return {
            "error": {
                "message": self.message,
                "code": self.error_code.value,
                "details": self.details,
                "type": self.__class__.__name__
            }
        }

    def __str__(self) -> str:
        return f"{self.error_code.value}: {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message='{self.message}', error_code='{self.error_code.value}')"


class GuardViolation(BaseAppException):
    """Raised when a transition precondition does not hold"""

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        conflict: Optional[Conflict] = None,
    ):
        super().__init__(message, error_code, details, status_code=409)
        self.conflict = conflict


class EntityNotFoundError(BaseAppException):
    """Exception raised when a requested resource is not found"""

    def __init__(self, resource_type: str, resource_id: Optional[str] = None):
        message = f"{resource_type} not found"
        if resource_id:
            message += f" (ID: {resource_id})"
        super().__init__(
            message,
            ErrorCode.NOT_FOUND,
            {"resource_type": resource_type, "resource_id": resource_id},
            status_code=404,
        )


class LockTimeoutError(BaseAppException):
    """Raised when the hoarding critical section could not be entered in time"""

    def __init__(self, hoarding_id: str, waited_seconds: float):
        super().__init__(
            f"Hoarding {hoarding_id} is busy, retry shortly",
            ErrorCode.RETRYABLE_CONFLICT,
            {"hoarding_id": hoarding_id, "waited_seconds": round(waited_seconds, 3)},
            status_code=423,
        )


class DeadlineExceededError(BaseAppException):
    """Raised when the caller-supplied deadline passes before commit"""

    def __init__(self, operation: str):
        super().__init__(
            f"Deadline exceeded during {operation}",
            ErrorCode.TIMEOUT,
            {"operation": operation},
            status_code=504,
        )


class StaleStateError(BaseAppException):
    """Raised when a token changed since the caller last read it"""

    def __init__(self, token_id: str, expected_version: Optional[int], actual_version: Optional[int]):
        super().__init__(
            "Token changed since it was last read",
            ErrorCode.STALE_VERSION,
            {
                "token_id": token_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
            status_code=409,
        )


__all__ = [
    'ErrorCode',
    'CONFLICT_CODES',
    'Conflict',
    'BaseAppException',
    'GuardViolation',
    'EntityNotFoundError',
    'LockTimeoutError',
    'DeadlineExceededError',
    'StaleStateError',
]
