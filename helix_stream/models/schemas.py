from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from helix_stream.models.entities import Entity


class LoadStatus(str, Enum):
    """Status values for a per-domain result store."""

    IDLE = "idle"
    LOADING = "loading"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"
    NO_DATA = "no_data"


class MetadataRecord(BaseModel):
    """Leading feed record announcing the expected item count.

    Attributes:
        total_expected: Number of entity records the server intends to send.
        counters: Summary counters (tier counts, evidence counts, ...).
    """

    type: Literal["metadata"] = "metadata"
    total_expected: int = Field(default=0, ge=0)
    counters: dict[str, int] = Field(default_factory=dict)


class EntityRecord(BaseModel):
    """One unit of the domain collection."""

    type: Literal["entity"] = "entity"
    entity: Entity


class CompleteRecord(BaseModel):
    """Trailing feed record with the count the server actually streamed."""

    type: Literal["complete"] = "complete"
    total_streamed: int = Field(default=0, ge=0)


class ErrorRecord(BaseModel):
    """Explicit server-side failure reported inside the feed."""

    type: Literal["error"] = "error"
    message: str = "Unknown error"


class UnknownRecord(BaseModel):
    """Record with a type discriminator this feed does not route."""

    type: Literal["unknown"] = "unknown"
    record_type: str
    raw: dict[str, Any] = Field(default_factory=dict)


FeedRecord = MetadataRecord | EntityRecord | CompleteRecord | ErrorRecord | UnknownRecord


class ResultSnapshot(BaseModel):
    """Point-in-time copy of a loaded result set.

    Attributes:
        items: Entities received so far, in arrival order.
        summary_counters: Counters seeded by the metadata record. Read-only,
            so copies of a snapshot can share them.
        load_progress_percent: Load progress between 0 and 100.
    """

    model_config = ConfigDict(frozen=True)

    items: tuple[Entity, ...] = ()
    summary_counters: Mapping[str, int] = Field(default_factory=dict, validate_default=True)
    load_progress_percent: int = Field(default=0, ge=0, le=100)

    @field_validator("summary_counters")
    @classmethod
    def freeze_counters(cls, value: Mapping[str, int]) -> Mapping[str, int]:
        return MappingProxyType(dict(value))

    @property
    def is_empty(self) -> bool:
        return not self.items


class ComputeResult(BaseModel):
    """Acknowledgement returned by a compute trigger.

    Attributes:
        items_produced: Number of items the backend persisted, or None when
            the acknowledgement does not say.
        raw: Acknowledgement body as received.
    """

    items_produced: int | None = Field(default=None, ge=0)
    raw: dict[str, Any] = Field(default_factory=dict)


class StoreState(BaseModel):
    """Observable state of a result store, published after every change."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    domain: str
    session_id: str | None = None
    status: LoadStatus = LoadStatus.IDLE
    snapshot: ResultSnapshot = Field(default_factory=ResultSnapshot)
    error: Exception | None = None

    @property
    def is_loading(self) -> bool:
        return self.status in (LoadStatus.LOADING, LoadStatus.PENDING)


class HPOTerm(BaseModel):
    """Patient phenotype term."""

    hpo_id: str
    name: str = ""


class ClinicalPriority(BaseModel):
    """Clinical priority of one gene, taken from phenotype matching."""

    score: float = Field(ge=0.0, le=100.0)
    tier: str = ""
    rank: int = 0


class RankedGroup(BaseModel):
    """Items sharing a group key, scored against clinical priority.

    Attributes:
        group_key: Key shared by every item in the group (a gene symbol).
        items: Items sorted by relevance score, highest first.
        literature_score: Best item relevance score (0-1).
        clinical_score: Normalized clinical priority (0-1), if known.
        clinical_tier: Clinical tier, if known.
        clinical_rank: Phenotype matching rank, if known.
        combined_score: Weighted blend used for ordering (0-1).
        strength_counts: Items per evidence strength bucket.
    """

    model_config = ConfigDict(frozen=True)

    group_key: str
    items: tuple[Entity, ...]
    literature_score: float = Field(ge=0.0, le=1.0)
    clinical_score: float | None = Field(default=None, ge=0.0, le=1.0)
    clinical_tier: str | None = None
    clinical_rank: int | None = None
    combined_score: float = Field(ge=0.0, le=1.0)
    strength_counts: dict[str, int] = Field(default_factory=dict)
