"""Core utilities for the agentic memory package."""

from .diagnostics import (
    DiagnosticError,
    FailureDiagnostics,
    diagnose_failure,
    failure_message,
)
from .errors import AppError, ErrorCode, ValidationError
from .retry import (
    TRANSIENT_MARKERS,
    RetryOptions,
    is_transient_failure,
    transient_failure_predicate,
    with_retry,
)

__all__ = [
    "AppError",
    "DiagnosticError",
    "ErrorCode",
    "FailureDiagnostics",
    "RetryOptions",
    "TRANSIENT_MARKERS",
    "ValidationError",
    "diagnose_failure",
    "failure_message",
    "is_transient_failure",
    "transient_failure_predicate",
    "with_retry",
]
