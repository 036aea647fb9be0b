"""Memory-specific exceptions."""

from typing import Any, Optional

from agentic_memory.core.diagnostics import DiagnosticError, FailureDiagnostics
from agentic_memory.core.errors import ErrorCode, ValidationError


class MemoryRepositoryError(DiagnosticError):
    """Error when a repository call fails after its retry budget."""

    def __init__(
        self,
        operation: str,
        scope_id: str,
        diagnostics: FailureDiagnostics,
        cause: Optional[BaseException] = None,
        code: ErrorCode = ErrorCode.REPOSITORY_ERROR,
    ) -> None:
        super().__init__(
            message=f"Repository {operation} failed for scope '{scope_id}': {diagnostics.message}",
            diagnostics=diagnostics,
            cause=cause,
            code=code,
            details={"operation": operation, "scope_id": scope_id},
        )
        self.operation = operation
        self.scope_id = scope_id


class ReconsolidationPlanError(ValidationError):
    """Error for a plan payload that fails validation."""

    def __init__(self, reason: str, errors: Optional[list[Any]] = None) -> None:
        super().__init__(
            message=f"Invalid reconsolidation plan: {reason}",
            details={"errors": errors or []},
            code=ErrorCode.INVALID_PLAN,
        )
