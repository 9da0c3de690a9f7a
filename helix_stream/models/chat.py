"""Chat stream events and transcript entries."""

from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from helix_stream.models.entities import PublicationResult


class ToolKind(str, Enum):
    """Tools the assistant can invoke mid-turn."""

    QUERY = "query"
    LITERATURE = "literature"


def _freeze(value: Any) -> Any:
    """Read-only copy of nested JSON: mappings become proxies, lists tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


class QueryResultPayload(BaseModel):
    """Result of a database query run by the assistant.

    Rows and the visualization spec are frozen all the way down, so a
    payload stored in a transcript cannot change after insertion.
    """

    model_config = ConfigDict(frozen=True)

    sql: str = ""
    results: tuple[Mapping[str, Any], ...] = ()
    rows_returned: int = 0
    execution_time_ms: float = 0.0
    visualization: Mapping[str, Any] | None = None

    @field_validator("results", "visualization")
    @classmethod
    def freeze_nested(cls, value: Any) -> Any:
        return _freeze(value)


class LiteratureResultPayload(BaseModel):
    """Result of a literature search run by the assistant."""

    model_config = ConfigDict(frozen=True)

    query: str = ""
    publications: tuple[PublicationResult, ...] = ()
    total_results: int = 0


ToolPayload = QueryResultPayload | LiteratureResultPayload


class ConversationStarted(BaseModel):
    type: Literal["conversation_started"] = "conversation_started"
    conversation_id: str


class Token(BaseModel):
    type: Literal["token"] = "token"
    text: str


class ToolInvocationStarted(BaseModel):
    type: Literal["tool_invocation_started"] = "tool_invocation_started"
    kind: ToolKind


class ToolResult(BaseModel):
    type: Literal["tool_result"] = "tool_result"
    kind: ToolKind
    payload: ToolPayload


class RoundComplete(BaseModel):
    type: Literal["round_complete"] = "round_complete"
    round: int = 0


class Complete(BaseModel):
    type: Literal["complete"] = "complete"


class StreamError(BaseModel):
    type: Literal["error"] = "error"
    message: str = "Unknown error"


ChatEvent = (
    ConversationStarted
    | Token
    | ToolInvocationStarted
    | ToolResult
    | RoundComplete
    | Complete
    | StreamError
)


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class TextEntry(BaseModel):
    """Text message in the transcript. Mutable only while streaming.

    Attributes:
        id: Locally assigned identifier, stable across re-renders.
        role: Speaker.
        content: Message text accumulated so far.
        is_streaming: Whether tokens may still be appended.
        is_error: Whether the content is an error notice.
    """

    id: str
    role: Role
    content: str = ""
    is_streaming: bool = False
    is_error: bool = False
    timestamp: datetime = Field(default_factory=datetime.now)


class ToolResultEntry(BaseModel):
    """Structured tool output in the transcript. Never mutated once appended."""

    model_config = ConfigDict(frozen=True)

    id: str
    kind: ToolKind
    payload: ToolPayload
    role: Role = Role.ASSISTANT
    timestamp: datetime = Field(default_factory=datetime.now)


TranscriptEntry = TextEntry | ToolResultEntry


class ChatRequest(BaseModel):
    """Request payload for the chat stream endpoint.

    Attributes:
        message: User's question or prompt.
        session_id: Analysis session the conversation is about.
        conversation_id: Server conversation to continue, if any.
        metadata: Extra context (patient phenotype terms, ...).
    """

    message: str = Field(..., min_length=1)
    session_id: str | None = None
    conversation_id: str | None = None
    metadata: dict[str, Any] | None = None

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v: str) -> str:
        """Strip whitespace from message before validation."""
        if isinstance(v, str):
            return v.strip()
        return v
