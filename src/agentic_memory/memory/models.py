"""Pydantic models for memory reconsolidation.

Plans arrive from the agent reasoning layer as camelCase JSON
(``derivedMemories``, ``supersededById``, ...); every model accepts those
aliases as well as the snake_case field names.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from agentic_memory.core.diagnostics import FailureDiagnostics

from .errors import ReconsolidationPlanError

_MODEL_CONFIG = ConfigDict(
    frozen=True,
    populate_by_name=True,
    alias_generator=to_camel,
)


class Relationship(BaseModel):
    """A typed edge from a derived memory to another memory."""

    model_config = _MODEL_CONFIG

    target_id: str = Field(..., description="Memory the relationship points to")
    type: str = Field(..., description="Relationship type (e.g. 'summarizes')")


class DerivedMemoryDraft(BaseModel):
    """A memory to synthesize from one or more existing memories."""

    model_config = _MODEL_CONFIG

    text: str = Field(..., min_length=1, description="Derived memory content")
    memory_type: str = Field(..., description="Memory type (e.g. 'pattern', 'belief')")
    derived_from_ids: list[str] = Field(
        default_factory=list, description="Memories this one was synthesized from"
    )
    relationships: Optional[list[Relationship]] = Field(
        default=None, description="Relationships to other memories"
    )
    metadata: Optional[dict[str, Any]] = Field(
        default=None, description="Additional metadata merged into the stored record"
    )


class SupersessionPair(BaseModel):
    """Marks ``source_id`` as replaced.

    ``superseded_by_id`` is either a memory ID or a 0-based position in the
    plan's ``derived_memories``, meaning the memory created from that draft.
    """

    model_config = _MODEL_CONFIG

    source_id: str = Field(..., description="Memory being superseded")
    superseded_by_id: Union[StrictInt, str] = Field(
        ..., description="Replacing memory ID, or index into derived_memories"
    )


class ReconsolidationPlan(BaseModel):
    """Consolidation plan proposed by the agent reasoning layer."""

    derived_memories: list[DerivedMemoryDraft] = Field(
        default_factory=list, description="Memories to create, in order"
    )
    supersession_pairs: Optional[list[SupersessionPair]] = Field(
        default=None, description="Supersessions to apply after creation"
    )
    sleep_cycle_targets: Optional[list[str]] = Field(
        default=None, description="Memories whose sleep-cycle counter is incremented"
    )
    notes: Optional[str] = Field(default=None, description="Explanation from the plan author")

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        json_schema_extra={
            "examples": [
                {
                    "derivedMemories": [
                        {
                            "text": "User prefers concise answers in the morning",
                            "memoryType": "pattern",
                            "derivedFromIds": ["mem-1", "mem-2"],
                            "relationships": [{"targetId": "mem-1", "type": "summarizes"}],
                            "metadata": {"topic": "preferences"},
                        }
                    ],
                    "supersessionPairs": [{"sourceId": "mem-1", "supersededById": 0}],
                    "sleepCycleTargets": ["mem-2"],
                    "notes": "Merged two morning-preference observations",
                }
            ]
        },
    )

    @classmethod
    def from_payload(cls, payload: Any) -> "ReconsolidationPlan":
        """Validate a raw plan payload.

        Raises:
            ReconsolidationPlanError: If the payload does not describe a valid plan
        """
        try:
            return cls.model_validate(payload)
        except PydanticValidationError as exc:
            raise ReconsolidationPlanError(
                reason=f"{exc.error_count()} validation error(s)",
                errors=exc.errors(include_url=False, include_context=False),
            ) from exc


class MemoryToUpsert(BaseModel):
    """Creation record submitted to the repository's bulk upsert."""

    model_config = ConfigDict(frozen=True)

    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class ResolvedSupersession(BaseModel):
    """Supersession with the replacing memory resolved to a concrete ID."""

    model_config = _MODEL_CONFIG

    source_id: str
    superseded_by_id: str


class ReconsolidationReport(BaseModel):
    """What a plan execution actually changed.

    ``created_memory_ids`` is positionally aligned with the plan's
    ``derived_memories``. A partial execution is signalled through ``notes``
    and ``failure``, never by an exception.
    """

    model_config = _MODEL_CONFIG

    created_memory_ids: list[str] = Field(default_factory=list)
    superseded_pairs: list[ResolvedSupersession] = Field(default_factory=list)
    sleep_cycle_incremented_ids: list[str] = Field(default_factory=list)
    duration_ms: int = Field(default=0, ge=0, description="Wall-clock execution time")
    notes: list[str] = Field(default_factory=list, description="Diagnostics in order of appearance")
    failure: Optional[FailureDiagnostics] = Field(
        default=None, description="Diagnostics of the step failure, if any"
    )

    @property
    def is_partial(self) -> bool:
        return self.failure is not None

    @property
    def notes_text(self) -> Optional[str]:
        """Notes joined into one string, or None when there are none."""
        return "; ".join(self.notes) if self.notes else None

    def to_payload(self) -> dict[str, Any]:
        """Serialize with camelCase keys for the agent reasoning layer."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
