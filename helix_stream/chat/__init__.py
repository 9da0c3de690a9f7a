"""Chat stream decoding and transcript reconciliation.

Responsibilities:
    - SSE / NDJSON chat stream decoding into typed events
    - Turn state machine keeping one streaming text entry at a time
    - Per-session transcripts and conversation continuity
"""

from helix_stream.chat.reader import ChatStreamReader
from helix_stream.chat.sse import ChatEventDecoder, event_from_record, parse_event
from helix_stream.chat.turn import Transcript, TurnState, TurnStateMachine

__all__ = [
    "ChatEventDecoder",
    "ChatStreamReader",
    "Transcript",
    "TurnState",
    "TurnStateMachine",
    "event_from_record",
    "parse_event",
]
