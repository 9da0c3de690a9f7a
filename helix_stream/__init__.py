"""Helix Stream - client-side ingestion of streamed genomic-analysis results.

Consumes server-pushed NDJSON result feeds and the multiplexed AI chat stream,
turning them into consistent, cacheable per-session state.

Components:
    - streaming: line framing and bulk NDJSON feed loading with progress
    - sessions: bounded per-session result cache and result stores
    - ranking: combined literature / clinical priority ranking
    - chat: SSE event decoding and the chat turn state machine
    - models: Pydantic records, entities and snapshots
    - client: httpx transport for compute triggers, feeds and chat
    - workspace: session-scoped facade over all of the above
"""

__version__ = "0.1.0"
