"""Structured failure diagnostics for storage-layer errors.

A failure raised by the repository layer can carry a ``FailureDiagnostics``
payload describing the low-level backend code, a remediation hint and a list
of suggested fixes. ``DiagnosticError`` is the exception that carries it, and
``diagnose_failure`` maps arbitrary backend exceptions onto diagnostics so
callers see actionable context instead of a bare driver error.
"""

import errno
import re
import socket
from typing import Any, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field

from .errors import AppError, ErrorCode

CONNECTION_ERROR_CODES = frozenset({"ECONNREFUSED", "ENOTFOUND", "ETIMEDOUT", "ECONNRESET"})

_DIMENSION_PATTERN = re.compile(r"dimension.*?(\d+).*?(\d+)", re.IGNORECASE)


class FailureDiagnostics(BaseModel):
    """Diagnostic payload attached to a storage failure."""

    model_config = ConfigDict(frozen=True)

    message: str = Field(..., description="Human-readable failure message")
    code: Optional[str] = Field(
        default=None, description="Low-level backend error code (e.g. '57P01', 'ECONNREFUSED')"
    )
    hint: Optional[str] = Field(default=None, description="Actionable remediation text")
    suggested_fixes: Optional[list[str]] = Field(
        default=None, description="Ordered suggestions to resolve the failure"
    )
    details: Optional[dict[str, Any]] = Field(
        default=None, description="Free-form context (connection info, dimensions, ...)"
    )


class DiagnosticError(AppError):
    """Application error carrying ``FailureDiagnostics`` and the failure that caused it.

    Raise with ``raise DiagnosticError(...) from cause`` so the traceback keeps
    both the raise site and the originating failure.
    """

    def __init__(
        self,
        message: str,
        diagnostics: FailureDiagnostics,
        cause: Optional[BaseException] = None,
        *,
        code: ErrorCode = ErrorCode.REPOSITORY_ERROR,
        status: int = 500,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        merged_details = dict(diagnostics.details or {})
        merged_details.update(details or {})
        super().__init__(code=code, message=message, status=status, details=merged_details)
        self.diagnostics = diagnostics
        self.cause = cause

    @property
    def backend_code(self) -> Optional[str]:
        """Backend error code if available."""
        return self.diagnostics.code

    @property
    def hint(self) -> Optional[str]:
        """Troubleshooting hint if available."""
        return self.diagnostics.hint

    @property
    def suggested_fixes(self) -> Optional[list[str]]:
        """Suggested fixes if available."""
        return self.diagnostics.suggested_fixes


def failure_message(error: BaseException) -> str:
    """Return the message used to describe and classify a failure.

    ``AppError`` exposes its own message. An ``OSError`` with a known errno is
    prefixed with the symbolic errno name so driver errors read like
    ``ECONNREFUSED: Connection refused``. An empty message falls back to the
    exception class name.
    """
    if isinstance(error, AppError):
        message = error.message
    else:
        message = str(error)

    if isinstance(error, OSError) and error.errno in errno.errorcode:
        name = errno.errorcode[error.errno]
        if name not in message:
            message = f"{name}: {message}" if message else name

    return message or type(error).__name__


def _connection_error_code(error: BaseException) -> Optional[str]:
    code = getattr(error, "code", None)
    if isinstance(code, str) and code.upper() in CONNECTION_ERROR_CODES:
        return code.upper()
    if isinstance(error, socket.gaierror):
        return "ENOTFOUND"
    if isinstance(error, OSError) and error.errno in errno.errorcode:
        name = errno.errorcode[error.errno]
        if name in CONNECTION_ERROR_CODES:
            return name
    if isinstance(error, ConnectionRefusedError):
        return "ECONNREFUSED"
    if isinstance(error, ConnectionError):
        # Reset, aborted and broken-pipe connections
        return "ECONNRESET"
    if isinstance(error, TimeoutError):
        return "ETIMEDOUT"
    return None


def _connection_details(error_code: str, database_url: Optional[str]) -> dict[str, Any]:
    details: dict[str, Any] = {"error_code": error_code}
    if database_url:
        parts = urlsplit(database_url)
        try:
            port = parts.port or 5432
        except ValueError:
            # Malformed port; keep the connection diagnostics
            port = None
        details.update(
            {
                "host": parts.hostname,
                "port": port,
                "database": parts.path.lstrip("/"),
            }
        )
    return details


def diagnose_failure(
    error: BaseException,
    *,
    database_url: Optional[str] = None,
) -> FailureDiagnostics:
    """Map a backend failure onto structured diagnostics.

    Args:
        error: The failure raised by the storage backend
        database_url: Optional connection URL; host, port and database name are
            added to connection-failure details when given

    Returns:
        FailureDiagnostics describing the failure
    """
    if isinstance(error, DiagnosticError):
        return error.diagnostics

    connection_code = _connection_error_code(error)
    if connection_code is not None:
        return FailureDiagnostics(
            message="Unable to connect to the memory database",
            code=connection_code,
            hint="Database connection failed",
            suggested_fixes=[
                "Check if the database server is running and accessible",
                "Verify MEMORY_DATABASE_URL is correct",
                "Ensure the database server is reachable from this host",
                "Check firewall rules and network connectivity",
            ],
            details=_connection_details(connection_code, database_url),
        )

    sqlstate = getattr(error, "sqlstate", None) or getattr(error, "pgcode", None)
    severity = getattr(error, "severity", None)
    if severity == "FATAL" or (isinstance(sqlstate, str) and sqlstate.startswith("57")):
        return FailureDiagnostics(
            message=f"Database connection error: {failure_message(error)}",
            code=sqlstate,
            hint="Database connection terminated",
            suggested_fixes=[
                "Check database server status",
                "Verify connection credentials",
                "Review database server logs for details",
            ],
            details={"severity": severity, "detail": getattr(error, "detail", None)},
        )

    message = failure_message(error)
    if "dimension" in message.lower():
        match = _DIMENSION_PATTERN.search(message)
        expected = match.group(1) if match else None
        actual = match.group(2) if match else None
        if expected and actual:
            summary = f"Vector dimension mismatch: expected {expected}, got {actual}"
            first_fix = (
                f"Update the embedding dimension to {expected} "
                f"or recreate the schema for {actual} dimensions"
            )
        else:
            summary = f"Vector dimension mismatch: {message}"
            first_fix = "Check the configured embedding dimension matches your embedding model"
        return FailureDiagnostics(
            message=summary,
            code="VECTOR_DIMENSION_MISMATCH",
            hint="Embedding dimensions do not match database schema",
            suggested_fixes=[
                first_fix,
                "Verify embedding model configuration",
                "Run migrations to update vector dimensions if needed",
            ],
            details={"expected_dimension": expected, "actual_dimension": actual},
        )

    return FailureDiagnostics(
        message=message,
        code=sqlstate if isinstance(sqlstate, str) else None,
        hint="An unexpected database error occurred",
        suggested_fixes=[
            "Check database logs for more details",
            "Verify database schema is up to date",
        ],
    )
