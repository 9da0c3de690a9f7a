"""Per-session result stores and their bounded snapshot cache."""

from helix_stream.sessions.cache import MAX_CACHED_SESSIONS, CacheEntry, SessionResultCache
from helix_stream.sessions.store import SessionResultStore

__all__ = ["MAX_CACHED_SESSIONS", "CacheEntry", "SessionResultCache", "SessionResultStore"]
