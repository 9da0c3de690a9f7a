"""Pydantic models for feed records, domain entities and chat state.

Provides type safety and validation for everything parsed off the wire.

Models:
    - GeneAggregate / PublicationResult / UnknownEntity: feed entities
    - MetadataRecord / EntityRecord / CompleteRecord / ErrorRecord: feed records
    - ResultSnapshot / StoreState: loaded result sets and store state
    - RankedGroup / ClinicalPriority: combined ranking output
    - ChatEvent variants, TextEntry / ToolResultEntry: chat turn state
"""

from helix_stream.models.chat import (
    ChatEvent,
    ChatRequest,
    Complete,
    ConversationStarted,
    LiteratureResultPayload,
    QueryResultPayload,
    Role,
    RoundComplete,
    StreamError,
    TextEntry,
    Token,
    ToolInvocationStarted,
    ToolKind,
    ToolResult,
    ToolResultEntry,
    TranscriptEntry,
)
from helix_stream.models.entities import (
    Entity,
    EvidenceStrength,
    GeneAggregate,
    LiteratureEvidence,
    PublicationResult,
    UnknownEntity,
    VariantMatch,
)
from helix_stream.models.schemas import (
    ClinicalPriority,
    CompleteRecord,
    ComputeResult,
    EntityRecord,
    ErrorRecord,
    FeedRecord,
    HPOTerm,
    LoadStatus,
    MetadataRecord,
    RankedGroup,
    ResultSnapshot,
    StoreState,
    UnknownRecord,
)

__all__ = [
    "ChatEvent",
    "ChatRequest",
    "ClinicalPriority",
    "Complete",
    "CompleteRecord",
    "ComputeResult",
    "ConversationStarted",
    "Entity",
    "EntityRecord",
    "ErrorRecord",
    "EvidenceStrength",
    "FeedRecord",
    "GeneAggregate",
    "HPOTerm",
    "LiteratureEvidence",
    "LiteratureResultPayload",
    "LoadStatus",
    "MetadataRecord",
    "PublicationResult",
    "QueryResultPayload",
    "RankedGroup",
    "ResultSnapshot",
    "Role",
    "RoundComplete",
    "StoreState",
    "StreamError",
    "TextEntry",
    "Token",
    "ToolInvocationStarted",
    "ToolKind",
    "ToolResult",
    "ToolResultEntry",
    "TranscriptEntry",
    "UnknownEntity",
    "UnknownRecord",
    "VariantMatch",
]
