"""Tests for structured application errors."""

from agentic_memory.core.errors import AppError, ErrorCode, ValidationError
from agentic_memory.memory.errors import MemoryRepositoryError, ReconsolidationPlanError
from agentic_memory.core.diagnostics import FailureDiagnostics


def test_app_error_attributes():
    error = AppError(
        code=ErrorCode.REPOSITORY_ERROR,
        message="Something failed",
        details={"step": "create"},
    )

    assert error.code == ErrorCode.REPOSITORY_ERROR
    assert error.message == "Something failed"
    assert error.status == 500
    assert error.details == {"step": "create"}
    assert str(error) == "Something failed"


def test_app_error_details_default_to_empty_dict():
    assert AppError(code=ErrorCode.REPOSITORY_ERROR, message="x").details == {}


def test_validation_error_is_client_error():
    error = ValidationError("bad plan", details={"field": "text"})

    assert error.code == ErrorCode.VALIDATION_ERROR
    assert error.status == 400


def test_plan_error_uses_invalid_plan_code():
    error = ReconsolidationPlanError("1 validation error(s)", errors=[{"loc": ["notes"]}])

    assert isinstance(error, ValidationError)
    assert error.code == ErrorCode.INVALID_PLAN
    assert error.message == "Invalid reconsolidation plan: 1 validation error(s)"
    assert error.details == {"errors": [{"loc": ["notes"]}]}


def test_repository_error_message_and_details():
    diagnostics = FailureDiagnostics(message="Unable to connect", code="ECONNREFUSED")

    error = MemoryRepositoryError("bulk_upsert", "test-index", diagnostics)

    assert error.message == "Repository bulk_upsert failed for scope 'test-index': Unable to connect"
    assert error.code == ErrorCode.REPOSITORY_ERROR
    assert error.details == {"operation": "bulk_upsert", "scope_id": "test-index"}
    assert error.backend_code == "ECONNREFUSED"
    assert error.operation == "bulk_upsert"
    assert error.scope_id == "test-index"
