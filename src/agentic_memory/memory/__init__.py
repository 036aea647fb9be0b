"""Memory reconsolidation.

Turns a consolidation plan proposed by the agent reasoning layer into durable
state changes on a scoped memory repository:

- Derived memories are created in one batched upsert
- Superseded memories are linked to their replacements; a plan may refer to a
  replacement by its position in ``derived_memories``
- Sleep-cycle counters are incremented on plan targets and created memories

Execution is fail-soft: callers inspect ``ReconsolidationReport.notes`` (or
``is_partial``) to detect partial failure.

Configuration:
- MEMORY_RECONSOLIDATION_SLOW_MS: Slow-execution note threshold (default: 500)
- MEMORY_RETRY_*: Default backoff settings for ``RetryingMemoryRepository``
- MEMORY_DATABASE_URL: Host/port/database added to connection diagnostics
"""

from .errors import MemoryRepositoryError, ReconsolidationPlanError
from .models import (
    DerivedMemoryDraft,
    MemoryToUpsert,
    ReconsolidationPlan,
    ReconsolidationReport,
    Relationship,
    ResolvedSupersession,
    SupersessionPair,
)
from .reconsolidation import ReconsolidationExecutor, build_derived_record
from .repository import MemoryRepository, RelationshipSink, RetryingMemoryRepository

__all__ = [
    # Errors
    "MemoryRepositoryError",
    "ReconsolidationPlanError",
    # Models
    "DerivedMemoryDraft",
    "MemoryToUpsert",
    "ReconsolidationPlan",
    "ReconsolidationReport",
    "Relationship",
    "ResolvedSupersession",
    "SupersessionPair",
    # Repository contracts
    "MemoryRepository",
    "RelationshipSink",
    "RetryingMemoryRepository",
    # Executor
    "ReconsolidationExecutor",
    "build_derived_record",
]
