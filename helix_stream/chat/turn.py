"""Turn state machine reconciling streamed chat events into a transcript.

A turn is a sequence of rounds: streamed text, tool invocations and their
results, more text. Tokens go to the entry under the *cursor*. Tool events
and round boundaries move the cursor to a fresh id, so each text segment
becomes its own entry instead of one run-on message.

At most one text entry is streaming at any time.
"""

import itertools
import logging
import uuid
from collections.abc import Iterator
from enum import Enum

from helix_stream.models.chat import (
    ChatEvent,
    Complete,
    ConversationStarted,
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

logger = logging.getLogger(__name__)

ERROR_TEMPLATE = "Error: {message}. Please try again."


class TurnState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    TOOL_PENDING = "tool_pending"
    DONE = "done"
    ERROR = "error"


class Transcript:
    """Ordered chat history. Entries are only ever appended."""

    def __init__(self) -> None:
        self._entries: list[TranscriptEntry] = []
        self._by_id: dict[str, TranscriptEntry] = {}

    def append(self, entry: TranscriptEntry) -> None:
        if entry.id in self._by_id:
            raise ValueError(f"Duplicate transcript entry id: {entry.id}")
        self._entries.append(entry)
        self._by_id[entry.id] = entry

    def get(self, entry_id: str | None) -> TranscriptEntry | None:
        if entry_id is None:
            return None
        return self._by_id.get(entry_id)

    @property
    def entries(self) -> tuple[TranscriptEntry, ...]:
        return tuple(self._entries)

    def text_entries(self) -> list[TextEntry]:
        return [entry for entry in self._entries if isinstance(entry, TextEntry)]

    def streaming_entries(self) -> list[TextEntry]:
        return [entry for entry in self.text_entries() if entry.is_streaming]

    def __iter__(self) -> Iterator[TranscriptEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> TranscriptEntry:
        return self._entries[index]


class TurnStateMachine:
    """Applies chat events of successive turns to one transcript.

    Args:
        transcript: Transcript to write to. A new one is created if omitted.
        id_prefix: Prefix for locally assigned entry ids.
    """

    def __init__(self, transcript: Transcript | None = None, id_prefix: str | None = None) -> None:
        self.transcript = transcript if transcript is not None else Transcript()
        self.state = TurnState.IDLE
        self.conversation_id: str | None = None
        self.busy: set[ToolKind] = set()
        self._cursor: str | None = None
        self._prefix = id_prefix or uuid.uuid4().hex[:8]
        self._counter = itertools.count(1)

    @property
    def cursor(self) -> str | None:
        return self._cursor

    @property
    def is_active(self) -> bool:
        return self.state in (TurnState.STREAMING, TurnState.TOOL_PENDING)

    def _new_id(self) -> str:
        return f"{self._prefix}-{next(self._counter)}"

    def begin_turn(self, user_text: str) -> TextEntry:
        """Record the user's message and open a new assistant turn."""
        entry = TextEntry(id=self._new_id(), role=Role.USER, content=user_text)
        self._freeze_all()
        self.transcript.append(entry)
        self.busy.clear()
        self._cursor = self._new_id()
        self.state = TurnState.STREAMING
        return entry

    def apply(self, event: ChatEvent) -> None:
        """Apply one event of the current turn.

        Events arriving after the turn finished are logged and ignored.
        """
        if self.state in (TurnState.DONE, TurnState.ERROR):
            logger.debug(f"Ignoring {event.type} event after turn ended ({self.state.value})")
            return
        if self.state == TurnState.IDLE:
            self._cursor = self._new_id()
            self.state = TurnState.STREAMING

        if isinstance(event, ConversationStarted):
            self.conversation_id = event.conversation_id
        elif isinstance(event, Token):
            self._append_token(event.text)
        elif isinstance(event, ToolInvocationStarted):
            self._freeze_cursor()
            self.busy.add(event.kind)
            self._cursor = self._new_id()
            self.state = TurnState.TOOL_PENDING
        elif isinstance(event, ToolResult):
            self._freeze_cursor()
            self.transcript.append(
                ToolResultEntry(id=self._new_id(), kind=event.kind, payload=event.payload)
            )
            self.busy.discard(event.kind)
            self._cursor = self._new_id()
            self.state = TurnState.TOOL_PENDING if self.busy else TurnState.STREAMING
        elif isinstance(event, RoundComplete):
            self.busy.clear()
            self._freeze_cursor()
            self._cursor = self._new_id()
            self.state = TurnState.STREAMING
        elif isinstance(event, Complete):
            self._freeze_all()
            self.busy.clear()
            self._cursor = None
            self.state = TurnState.DONE
        elif isinstance(event, StreamError):
            self._fail(event.message)

    def _append_token(self, text: str) -> None:
        if not text:
            return
        if self._cursor is None:
            self._cursor = self._new_id()
        entry = self.transcript.get(self._cursor)
        if isinstance(entry, TextEntry):
            entry.content += text
        else:
            self._freeze_all()
            self.transcript.append(
                TextEntry(id=self._cursor, role=Role.ASSISTANT, content=text, is_streaming=True)
            )
        self.state = TurnState.STREAMING

    def _fail(self, message: str) -> None:
        content = ERROR_TEMPLATE.format(message=message)
        entry = self.transcript.get(self._cursor)
        if isinstance(entry, TextEntry):
            # Partial text is replaced, not kept alongside the error
            entry.content = content
            entry.is_error = True
            entry.is_streaming = False
        else:
            self.transcript.append(
                TextEntry(
                    id=self._cursor or self._new_id(),
                    role=Role.ASSISTANT,
                    content=content,
                    is_error=True,
                )
            )
        logger.error(f"Chat turn failed: {message}")
        self._freeze_all()
        self.busy.clear()
        self._cursor = None
        self.state = TurnState.ERROR

    def _freeze_cursor(self) -> None:
        entry = self.transcript.get(self._cursor)
        if isinstance(entry, TextEntry):
            entry.is_streaming = False

    def _freeze_all(self) -> None:
        for entry in self.transcript.streaming_entries():
            entry.is_streaming = False
