"""Structured application errors."""

from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Standardized error codes for the memory core."""

    VALIDATION_ERROR = "validation_error"
    INVALID_PLAN = "invalid_plan"
    REPOSITORY_ERROR = "repository_error"
    REPOSITORY_CONTRACT_VIOLATION = "repository_contract_violation"


class AppError(Exception):
    """
    Structured application error.

    Attributes:
        code: Error code from ErrorCode enum
        message: Human-readable error message
        status: HTTP-style status code for callers that expose errors over an API
        details: Additional error context
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status: int = 500,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status = status
        self.details = details or {}
        super().__init__(message)


class ValidationError(AppError):
    """Validation error for input data."""

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status=400,
            details=details,
        )
