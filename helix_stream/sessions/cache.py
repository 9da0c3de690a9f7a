"""Bounded, recency-ordered cache of per-session result snapshots.

Switching back to one of the last few sessions restores its results without
a network round trip. Only touched from the single control flow that drives
session transitions, so it needs no locking.
"""

import logging
from collections import OrderedDict

from pydantic import BaseModel, ConfigDict

from helix_stream.models.schemas import ResultSnapshot

logger = logging.getLogger(__name__)

MAX_CACHED_SESSIONS = 3


class CacheEntry(BaseModel):
    """Last known good result set for one session."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    snapshot: ResultSnapshot


class SessionResultCache:
    """Size-bounded map from session id to cached snapshot.

    Entries are ordered oldest first. A ``get`` hit or a ``put`` moves the
    entry to the most recent position; once the cache holds more than
    ``max_size`` entries the oldest one is evicted.
    """

    def __init__(self, max_size: int = MAX_CACHED_SESSIONS) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._max_size = max_size
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    @property
    def max_size(self) -> int:
        return self._max_size

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._entries

    def session_ids(self) -> list[str]:
        """Cached session ids, oldest first."""
        return list(self._entries)

    def get(self, session_id: str) -> CacheEntry | None:
        """Return the entry for a session and mark it most recently used."""
        entry = self._entries.get(session_id)
        if entry is None:
            logger.debug(f"Cache miss for {session_id}")
            return None
        self._entries.move_to_end(session_id)
        logger.info(f"Cache hit for {session_id}: {len(entry.snapshot.items)} items")
        return entry

    def peek(self, session_id: str) -> CacheEntry | None:
        """Return the entry for a session without changing its recency."""
        return self._entries.get(session_id)

    def put(self, session_id: str, snapshot: ResultSnapshot) -> None:
        """Store a snapshot, evicting the oldest entry when over capacity.

        Empty snapshots are never cached.
        """
        if snapshot.is_empty:
            return
        self._entries[session_id] = CacheEntry(session_id=session_id, snapshot=snapshot)
        self._entries.move_to_end(session_id)
        while len(self._entries) > self._max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted {evicted} from session cache")

    def remove(self, session_id: str) -> None:
        self._entries.pop(session_id, None)

    def clear(self) -> None:
        self._entries.clear()
