"""Repository contracts consumed by the reconsolidation executor.

The storage engine itself (vector search, filtering, persistence) lives
outside this package. ``MemoryRepository`` is the minimal contract the
executor needs; ``RetryingMemoryRepository`` adds transient-failure retry
and diagnostic enrichment on top of any implementation.
"""

import asyncio
from typing import Awaitable, Callable, Optional, Protocol, Sequence, TypeVar

import structlog

from agentic_memory.config import get_settings
from agentic_memory.core.diagnostics import DiagnosticError, diagnose_failure, failure_message
from agentic_memory.core.retry import (
    RetryOptions,
    RetryPredicate,
    SleepFunc,
    is_transient_failure,
    with_retry,
)

from .errors import MemoryRepositoryError
from .models import MemoryToUpsert, Relationship, ResolvedSupersession

logger = structlog.get_logger(__name__)

T = TypeVar("T")

RelationshipLinks = Sequence[tuple[str, list[Relationship]]]


class MemoryRepository(Protocol):
    """Batched write operations on a scoped memory collection.

    Each call is atomic on its own; no transaction spans several calls.
    """

    async def bulk_upsert(self, scope_id: str, records: Sequence[MemoryToUpsert]) -> list[str]:
        """Store records; returns new IDs in input order."""
        ...

    async def mark_superseded(
        self, scope_id: str, pairs: Sequence[ResolvedSupersession]
    ) -> int:
        """Mark each source memory as superseded; returns the count applied."""
        ...

    async def increment_cycles(self, scope_id: str, ids: Sequence[str]) -> int:
        """Increment the sleep-cycle counter of each memory; returns the count."""
        ...


class RelationshipSink(Protocol):
    """Persists relationships declared on derived memories."""

    async def link(self, scope_id: str, links: RelationshipLinks) -> int:
        """Store ``(memory_id, relationships)`` links; returns the count stored."""
        ...


class RetryingMemoryRepository:
    """``MemoryRepository`` decorator adding retry and failure diagnostics.

    Transient failures are retried with ``with_retry``. A failure that is
    permanent or outlives the retry budget is raised as
    ``MemoryRepositoryError`` chained to the original; a failure that already
    carries diagnostics propagates unchanged.
    """

    def __init__(
        self,
        inner: MemoryRepository,
        *,
        options: Optional[RetryOptions] = None,
        is_retryable: RetryPredicate = is_transient_failure,
        database_url: Optional[str] = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """Initialize the wrapper.

        Args:
            inner: Repository performing the actual calls
            options: Backoff settings (default from MEMORY_RETRY_* settings)
            is_retryable: Classifies a failure as transient
            database_url: Connection URL for diagnostics (default MEMORY_DATABASE_URL)
            sleep: Awaitable sleep taking seconds
        """
        settings = get_settings()
        self._inner = inner
        self._options = options or RetryOptions.from_settings(settings)
        self._is_retryable = is_retryable
        self._database_url = database_url if database_url is not None else settings.database_url
        self._sleep = sleep

    async def bulk_upsert(self, scope_id: str, records: Sequence[MemoryToUpsert]) -> list[str]:
        if not records:
            return []
        return await self._call(
            "bulk_upsert", scope_id, lambda: self._inner.bulk_upsert(scope_id, records)
        )

    async def mark_superseded(
        self, scope_id: str, pairs: Sequence[ResolvedSupersession]
    ) -> int:
        if not pairs:
            return 0
        return await self._call(
            "mark_superseded", scope_id, lambda: self._inner.mark_superseded(scope_id, pairs)
        )

    async def increment_cycles(self, scope_id: str, ids: Sequence[str]) -> int:
        if not ids:
            return 0
        return await self._call(
            "increment_cycles", scope_id, lambda: self._inner.increment_cycles(scope_id, ids)
        )

    async def _call(
        self,
        operation: str,
        scope_id: str,
        fn: Callable[[], Awaitable[T]],
    ) -> T:
        try:
            return await with_retry(
                fn,
                self._options,
                is_retryable=self._is_retryable,
                sleep=self._sleep,
            )
        except DiagnosticError:
            raise
        except Exception as exc:
            diagnostics = diagnose_failure(exc, database_url=self._database_url)
            logger.error(
                "repository_call_failed",
                operation=operation,
                scope_id=scope_id,
                error=failure_message(exc),
                backend_code=diagnostics.code,
            )
            raise MemoryRepositoryError(
                operation=operation,
                scope_id=scope_id,
                diagnostics=diagnostics,
                cause=exc,
            ) from exc
