"""Decoding of the chat response stream into typed chat events.

The chat service answers with server-sent events. Each ``data:`` line is one
event: named events (``event: query_result``) carry a JSON body, while data
under the default ``message`` event is a raw text token. ``data: [DONE]``
ends the turn and ``data: [ERROR: ...]`` fails it. Lines that are bare JSON
objects with a ``type`` field are accepted too, so the same decoder reads
NDJSON-framed chat streams.
"""

import json
import logging
from typing import Any

from pydantic import ValidationError

from helix_stream.errors import ParseError
from helix_stream.models.chat import (
    ChatEvent,
    Complete,
    ConversationStarted,
    LiteratureResultPayload,
    QueryResultPayload,
    RoundComplete,
    StreamError,
    Token,
    ToolInvocationStarted,
    ToolKind,
    ToolPayload,
    ToolResult,
)
from helix_stream.streaming.framer import LineFramer

logger = logging.getLogger(__name__)

DEFAULT_EVENT = "message"
DONE_SENTINEL = "[DONE]"
ERROR_PREFIX = "[ERROR"

# Event names used by earlier chat service versions
LEGACY_TOOL_STARTED = {
    "querying_started": ToolKind.QUERY,
    "literature_search_started": ToolKind.LITERATURE,
}
LEGACY_TOOL_RESULT = {
    "query_result": ToolKind.QUERY,
    "literature_result": ToolKind.LITERATURE,
}


def _error_message(data: str) -> str:
    # "[ERROR: upstream timeout]" -> "upstream timeout"
    message = data.strip().removeprefix(ERROR_PREFIX).removesuffix("]")
    return message.lstrip(":").strip() or "Unknown error"


def _tool_payload(kind: ToolKind, body: dict[str, Any]) -> ToolPayload:
    if kind == ToolKind.QUERY:
        return QueryResultPayload.model_validate(body)
    return LiteratureResultPayload.model_validate(body)


def event_from_record(record: dict[str, Any]) -> ChatEvent:
    """Build a chat event from a JSON record with a ``type`` field.

    Raises:
        ParseError: If the type is unknown or the body does not validate.
    """
    event_type = record.get("type")
    body = {key: value for key, value in record.items() if key != "type"}
    try:
        if event_type == "token":
            return Token(text=str(body.get("text", body.get("content", body.get("data", "")))))
        if event_type == "conversation_started":
            return ConversationStarted(conversation_id=body["conversation_id"])
        if event_type == "tool_invocation_started":
            return ToolInvocationStarted(kind=body["kind"])
        if event_type in LEGACY_TOOL_STARTED:
            return ToolInvocationStarted(kind=LEGACY_TOOL_STARTED[event_type])
        if event_type == "tool_result":
            kind = ToolKind(body["kind"])
            return ToolResult(kind=kind, payload=_tool_payload(kind, body.get("payload") or {}))
        if event_type in LEGACY_TOOL_RESULT:
            kind = LEGACY_TOOL_RESULT[event_type]
            return ToolResult(kind=kind, payload=_tool_payload(kind, body))
        if event_type == "round_complete":
            return RoundComplete(round=body.get("round", 0))
        if event_type in ("complete", "done"):
            return Complete()
        if event_type == "error":
            message = body.get("message") or body.get("detail") or body.get("error")
            return StreamError(message=str(message or "Unknown error"))
    except (KeyError, ValueError, ValidationError) as e:
        raise ParseError(f"Invalid {event_type!r} event: {e}") from e
    raise ParseError(f"Unknown chat event type: {event_type!r}")


def parse_event(name: str, data: str) -> ChatEvent | None:
    """Turn one SSE ``data:`` value under event ``name`` into a chat event.

    Returns:
        The event, or None for an empty token.

    Raises:
        ParseError: If a named event's body is not a JSON object or is invalid.
    """
    if data == DONE_SENTINEL:
        return Complete()
    if data.startswith(ERROR_PREFIX):
        return StreamError(message=_error_message(data))

    if name == DEFAULT_EVENT:
        if data.startswith("{"):
            try:
                record = json.loads(data)
            except json.JSONDecodeError:
                record = None
            if isinstance(record, dict) and "type" in record:
                return event_from_record(record)
        return Token(text=data) if data else None

    try:
        body = json.loads(data) if data else {}
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON in {name!r} event: {e}") from e
    if not isinstance(body, dict):
        raise ParseError(f"Expected JSON object in {name!r} event")
    return event_from_record({**body, "type": name})


class ChatEventDecoder:
    """Incremental decoder from chat response chunks to chat events.

    Malformed events are logged and skipped; the stream continues.
    """

    def __init__(self) -> None:
        self._framer = LineFramer()
        self._event_name = DEFAULT_EVENT

    def feed(self, chunk: bytes | str) -> list[ChatEvent]:
        """Decode the events completed by ``chunk``, in arrival order."""
        events: list[ChatEvent] = []
        for line in self._framer.feed(chunk):
            try:
                event = self._decode_line(line.rstrip("\r"))
            except ParseError as e:
                logger.warning(f"Skipping malformed chat event: {e}")
                continue
            if event is not None:
                events.append(event)
        return events

    def close(self) -> None:
        self._framer.close()

    def _decode_line(self, line: str) -> ChatEvent | None:
        if not line:
            self._event_name = DEFAULT_EVENT
            return None
        if line.startswith(":"):
            return None
        if line.startswith("event:"):
            self._event_name = line[len("event:"):].strip() or DEFAULT_EVENT
            return None
        if line.startswith("data:"):
            data = line[len("data:"):]
            if data.startswith(" "):
                data = data[1:]
            name, self._event_name = self._event_name, DEFAULT_EVENT
            return parse_event(name, data)
        if line.startswith("{"):
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                raise ParseError(f"Invalid JSON chat record: {e}") from e
            if not isinstance(record, dict):
                raise ParseError("Chat record is not a JSON object")
            return event_from_record(record)

        logger.debug(f"Ignoring chat stream line: {line[:80]!r}")
        return None
