"""Standardized error conventions for proposal creation.

This module provides consistent error handling across the factory core and
its callers. Every failure of ``ProposalFactory.create`` is raised as a
``FactoryError`` subclass; each one can be turned into a structured response
dict with error codes, categories, and retry guidance.

Usage:
    from src.factory.errors import InsufficientAuthorizationError

    try:
        factory.create(params)
    except InsufficientAuthorizationError as exc:
        response = exc.to_response()
        # {"success": False, "code": "insufficient_power", "retriable": True, ...}
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories for error classification.

    Helps callers understand the nature of an error:
    - VALIDATION: Caller provided bad input
    - PERMISSION: Not enough delegated power
    - RESOURCE: Identifier already taken
    - SYSTEM: Internal consistency faults
    """

    VALIDATION = "validation"  # Invalid parameters, bad arguments
    PERMISSION = "permission"  # Authorization gate not met
    RESOURCE = "resource"  # Already exists
    SYSTEM = "system"  # Internal error, unexpected


class ErrorCode(str, Enum):
    """Specific error codes for programmatic handling."""

    # Validation errors
    INVALID_ARGUMENT = "invalid_argument"
    LENGTH_MISMATCH = "length_mismatch"
    EMPTY_ACTIONS = "empty_actions"

    # Permission errors
    INSUFFICIENT_POWER = "insufficient_power"

    # Resource errors
    ALREADY_EXISTS = "already_exists"

    # System errors
    IDENTITY_MISMATCH = "identity_mismatch"
    INTERNAL_ERROR = "internal_error"


@dataclass
class ErrorResponse:
    """Standardized error response.

    All error responses include:
    - success: Always False
    - error: Human-readable message
    - code: Machine-readable error code
    - category: Error category (validation, permission, etc.)
    - retriable: Whether the operation may succeed if retried later
    - details: Optional additional context
    """

    success: bool = False  # Always False for errors
    error: str = ""  # Human-readable message
    code: str = ""  # Machine-readable error code
    category: str = ""  # Error category (validation, permission, etc.)
    retriable: bool = False  # Whether the operation should be retried
    details: dict[str, object] | None = None  # Optional additional context

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for serialization."""
        result: dict[str, object] = {
            "success": self.success,
            "error": self.error,
            "code": self.code,
            "category": self.category,
            "retriable": self.retriable,
        }
        if self.details:
            result["details"] = self.details
        return result


# Exceptions raised by the factory core


class FactoryError(Exception):
    """Base class for every failure surfaced by the factory."""

    category: ErrorCategory = ErrorCategory.SYSTEM
    default_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    retriable: bool = False

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        **details: object,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.details = dict(details)
        super().__init__(message)

    def to_response(self) -> dict[str, object]:
        """Convert to a structured error response dict."""
        return ErrorResponse(
            error=self.message,
            code=self.code.value,
            category=self.category.value,
            retriable=self.retriable,
            details=self.details or None,
        ).to_dict()


class InvalidParametersError(FactoryError):
    """Raised when a parameter bundle is malformed.

    Covers array length mismatches, empty action lists and elements that
    cannot be canonically encoded. Never retried.
    """

    category = ErrorCategory.VALIDATION
    default_code = ErrorCode.INVALID_ARGUMENT


class AlreadyExistsError(FactoryError):
    """Raised when an identifier already has a creation record."""

    category = ErrorCategory.RESOURCE
    default_code = ErrorCode.ALREADY_EXISTS

    def __init__(self, identifier: object, message: str | None = None) -> None:
        self.identifier = identifier
        super().__init__(
            message or f"Proposal '{identifier}' has already been created",
            identifier=str(identifier),
        )


class InsufficientAuthorizationError(FactoryError):
    """Raised when delegated power at the predicted identifier is below threshold."""

    category = ErrorCategory.PERMISSION
    default_code = ErrorCode.INSUFFICIENT_POWER
    retriable = True

    def __init__(self, identifier: object, power: int, threshold: int) -> None:
        self.identifier = identifier
        self.power = power
        self.threshold = threshold
        super().__init__(
            f"Proposal '{identifier}' has power {power}, needs at least {threshold}",
            identifier=str(identifier),
            power=power,
            threshold=threshold,
        )


class InternalConsistencyError(FactoryError):
    """Raised when the allocated artifact reports an unexpected identity.

    This is a fatal fault: the deriver and the allocation mechanism disagree
    about where an artifact lives.
    """

    category = ErrorCategory.SYSTEM
    default_code = ErrorCode.IDENTITY_MISMATCH

    def __init__(self, expected: object, actual: object) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Allocated artifact reports identity '{actual}', expected '{expected}'",
            expected=str(expected),
            actual=str(actual),
        )
