"""Reconsolidation plan execution.

Applies a ``ReconsolidationPlan`` produced by the agent reasoning layer to a
memory repository in a fixed sequence of batched calls:

1. Create derived memories (one ``bulk_upsert``)
2. Apply supersessions, resolving positional references to created IDs
   (one ``mark_superseded``)
3. Increment sleep cycles on targets and created memories
   (one ``increment_cycles``)

Execution is fail-soft: a failing step is recorded in the report notes and
every later step is skipped, but ``execute`` always returns a report. There is
no transaction across steps, so a crash between steps can leave created
memories without their supersession links.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Collection, Optional

import structlog

from agentic_memory.config import get_settings
from agentic_memory.core.diagnostics import (
    DiagnosticError,
    FailureDiagnostics,
    diagnose_failure,
    failure_message,
)
from agentic_memory.core.errors import ErrorCode

from .errors import MemoryRepositoryError
from .models import (
    DerivedMemoryDraft,
    MemoryToUpsert,
    ReconsolidationPlan,
    ReconsolidationReport,
    ResolvedSupersession,
)
from .repository import MemoryRepository, RelationshipSink

logger = structlog.get_logger(__name__)

DERIVED_KIND = "derived"
SYSTEM_SOURCE = "system"


def build_derived_record(draft: DerivedMemoryDraft) -> MemoryToUpsert:
    """Build the creation record for a derived memory draft.

    Draft metadata is applied last and may override the generated keys.
    Relationships are not part of the record.
    """
    metadata: dict[str, Any] = {
        "memoryType": draft.memory_type,
        "kind": DERIVED_KIND,
        "derivedFromIds": list(draft.derived_from_ids),
        "source": SYSTEM_SOURCE,
    }
    metadata.update(draft.metadata or {})
    return MemoryToUpsert(text=draft.text, metadata=metadata)


@dataclass
class _ExecutionState:
    """Report accumulator for a single ``execute`` call."""

    created_memory_ids: list[str] = field(default_factory=list)
    superseded_pairs: list[ResolvedSupersession] = field(default_factory=list)
    sleep_cycle_incremented_ids: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    failure: Optional[FailureDiagnostics] = None


class ReconsolidationExecutor:
    """Apply reconsolidation plans against a memory repository.

    The executor performs no retries; wrap the repository in
    ``RetryingMemoryRepository`` for transient-failure resilience. It holds no
    per-call state and can serve concurrent ``execute`` calls.

    Attributes:
        repository: Repository the plan is applied to
        slow_threshold_ms: Executions longer than this add a note to the report
        relationship_sink: Optional sink for relationships declared on drafts
    """

    def __init__(
        self,
        repository: MemoryRepository,
        *,
        slow_threshold_ms: Optional[int] = None,
        relationship_sink: Optional[RelationshipSink] = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        """Initialize the executor.

        Args:
            repository: Repository handle
            slow_threshold_ms: Slow-execution threshold (default from settings, 500ms)
            relationship_sink: Receives ``(created_id, relationships)`` links after
                all steps succeed; without it relationships are not persisted
            clock: Monotonic clock in seconds
        """
        self.repository = repository
        if slow_threshold_ms is None:
            slow_threshold_ms = get_settings().reconsolidation_slow_threshold_ms
        self.slow_threshold_ms = slow_threshold_ms
        self.relationship_sink = relationship_sink
        self._clock = clock

    async def execute(
        self,
        plan: ReconsolidationPlan,
        scope_id: str,
        valid_ids: Optional[Collection[str]] = None,
    ) -> ReconsolidationReport:
        """Execute a plan and report what was applied.

        Args:
            plan: Plan from the agent reasoning layer
            scope_id: Index/collection the plan applies to
            valid_ids: IDs known to exist before execution. Used for diagnostics
                only; unknown references are logged, not rejected.

        Returns:
            ReconsolidationReport; partial failures appear in ``notes`` and
            ``failure``
        """
        start_time = self._clock()
        state = _ExecutionState()

        logger.info(
            "reconsolidation_started",
            scope_id=scope_id,
            derived_memories=len(plan.derived_memories),
            supersession_pairs=len(plan.supersession_pairs or []),
            sleep_cycle_targets=len(plan.sleep_cycle_targets or []),
        )

        if valid_ids is not None:
            self._log_unrecognized_ids(plan, scope_id, valid_ids)

        steps = (
            ("create", self._create_derived_memories),
            ("supersede", self._apply_supersessions),
            ("sleep_cycles", self._increment_sleep_cycles),
            ("relationships", self._link_relationships),
        )
        for step_name, step in steps:
            try:
                await step(plan, scope_id, state)
            except Exception as exc:
                self._record_failure(step_name, scope_id, exc, state)
                break

        duration_ms = round((self._clock() - start_time) * 1000)
        if duration_ms > self.slow_threshold_ms:
            state.notes.append(
                f"Reconsolidation took {duration_ms}ms (threshold: {self.slow_threshold_ms}ms)"
            )
            logger.warning(
                "reconsolidation_slow",
                scope_id=scope_id,
                duration_ms=duration_ms,
                threshold_ms=self.slow_threshold_ms,
            )

        if plan.notes:
            state.notes.append(plan.notes)

        report = ReconsolidationReport(
            created_memory_ids=state.created_memory_ids,
            superseded_pairs=state.superseded_pairs,
            sleep_cycle_incremented_ids=state.sleep_cycle_incremented_ids,
            duration_ms=duration_ms,
            notes=state.notes,
            failure=state.failure,
        )

        logger.info(
            "reconsolidation_complete",
            scope_id=scope_id,
            created=len(report.created_memory_ids),
            superseded=len(report.superseded_pairs),
            sleep_cycles=len(report.sleep_cycle_incremented_ids),
            duration_ms=duration_ms,
            partial=report.is_partial,
        )
        return report

    async def _create_derived_memories(
        self,
        plan: ReconsolidationPlan,
        scope_id: str,
        state: _ExecutionState,
    ) -> None:
        if not plan.derived_memories:
            return

        records = [build_derived_record(draft) for draft in plan.derived_memories]
        new_ids = await self.repository.bulk_upsert(scope_id, records)
        new_ids = list(new_ids)

        if len(new_ids) != len(records):
            raise MemoryRepositoryError(
                operation="bulk_upsert",
                scope_id=scope_id,
                diagnostics=FailureDiagnostics(
                    message=f"expected {len(records)} IDs, got {len(new_ids)}",
                    hint="bulk_upsert must return one ID per record, in input order",
                    details={"expected": len(records), "returned": len(new_ids)},
                ),
                code=ErrorCode.REPOSITORY_CONTRACT_VIOLATION,
            )

        state.created_memory_ids = new_ids
        logger.debug("reconsolidation_memories_created", scope_id=scope_id, ids=new_ids)

    async def _apply_supersessions(
        self,
        plan: ReconsolidationPlan,
        scope_id: str,
        state: _ExecutionState,
    ) -> None:
        if not plan.supersession_pairs:
            return

        created = state.created_memory_ids
        resolved: list[ResolvedSupersession] = []
        for pair in plan.supersession_pairs:
            target = pair.superseded_by_id
            if isinstance(target, int):
                # Positional reference into the drafts, i.e. into the created IDs
                if not 0 <= target < len(created):
                    state.notes.append(f"Rejected supersession with invalid index: {target}")
                    logger.warning(
                        "reconsolidation_supersession_rejected",
                        scope_id=scope_id,
                        source_id=pair.source_id,
                        index=target,
                        created_count=len(created),
                    )
                    continue
                target = created[target]
            resolved.append(
                ResolvedSupersession(source_id=pair.source_id, superseded_by_id=target)
            )

        if not resolved:
            return

        superseded_count = await self.repository.mark_superseded(scope_id, resolved)
        state.superseded_pairs = resolved
        logger.debug(
            "reconsolidation_superseded",
            scope_id=scope_id,
            pairs=len(resolved),
            superseded_count=superseded_count,
        )

    async def _increment_sleep_cycles(
        self,
        plan: ReconsolidationPlan,
        scope_id: str,
        state: _ExecutionState,
    ) -> None:
        targets = list(
            dict.fromkeys([*(plan.sleep_cycle_targets or []), *state.created_memory_ids])
        )
        if not targets:
            return

        incremented_count = await self.repository.increment_cycles(scope_id, targets)
        state.sleep_cycle_incremented_ids = targets
        logger.debug(
            "reconsolidation_sleep_cycles_incremented",
            scope_id=scope_id,
            targets=len(targets),
            incremented_count=incremented_count,
        )

    async def _link_relationships(
        self,
        plan: ReconsolidationPlan,
        scope_id: str,
        state: _ExecutionState,
    ) -> None:
        links = [
            (memory_id, list(draft.relationships))
            for memory_id, draft in zip(state.created_memory_ids, plan.derived_memories)
            if draft.relationships
        ]
        if not links:
            return

        if self.relationship_sink is None:
            logger.debug(
                "reconsolidation_relationships_unpersisted",
                scope_id=scope_id,
                memories=len(links),
            )
            return

        linked_count = await self.relationship_sink.link(scope_id, links)
        logger.debug(
            "reconsolidation_relationships_linked",
            scope_id=scope_id,
            memories=len(links),
            linked_count=linked_count,
        )

    @staticmethod
    def _record_failure(
        step_name: str,
        scope_id: str,
        error: Exception,
        state: _ExecutionState,
    ) -> None:
        message = failure_message(error)
        if isinstance(error, DiagnosticError):
            state.failure = error.diagnostics
        else:
            state.failure = diagnose_failure(error)
        state.notes.append(f"Partial execution: {message}")
        logger.error(
            "reconsolidation_step_failed",
            scope_id=scope_id,
            step=step_name,
            error=message,
            backend_code=state.failure.code,
            hint=state.failure.hint,
        )

    @staticmethod
    def _log_unrecognized_ids(
        plan: ReconsolidationPlan,
        scope_id: str,
        valid_ids: Collection[str],
    ) -> None:
        referenced: list[str] = []
        for draft in plan.derived_memories:
            referenced.extend(draft.derived_from_ids)
        for pair in plan.supersession_pairs or []:
            referenced.append(pair.source_id)
            if isinstance(pair.superseded_by_id, str):
                referenced.append(pair.superseded_by_id)
        referenced.extend(plan.sleep_cycle_targets or [])

        known = set(valid_ids)
        unrecognized = [memory_id for memory_id in dict.fromkeys(referenced) if memory_id not in known]
        if unrecognized:
            logger.warning(
                "reconsolidation_unrecognized_ids",
                scope_id=scope_id,
                ids=unrecognized,
            )
