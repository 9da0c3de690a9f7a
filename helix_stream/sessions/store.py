"""Per-domain result store reconciling session switches with feed loads.

One store exists per result domain (phenotype matches, literature). It owns
the live result set for the active session and a bounded cache of recently
viewed sessions:

1. **Session change** - the outgoing session's loaded results are cached,
   then the incoming session is restored from cache (no network) or reset to
   empty so the caller can trigger a load.
2. **Compute then load** - ``run_compute`` asks the backend to (re)compute
   out of band; ``load_all`` streams the persisted feed and returns the
   terminal snapshot directly to the caller.
3. **Re-trigger** - once a session has loaded results, a change to its
   inputs re-runs compute and load automatically.

Only one compute or load may be in flight per store. A session change aborts
the in-flight load and closes its feed at once; results of an aborted or superseded request never reach
the live state.
"""

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any

from helix_stream.client import HelixClient
from helix_stream.errors import ConcurrencyError, HelixStreamError
from helix_stream.models.schemas import ComputeResult, LoadStatus, ResultSnapshot, StoreState
from helix_stream.sessions.cache import SessionResultCache
from helix_stream.streaming.bulk_feed import BulkFeedLoader
from helix_stream.streaming.feeds import FeedSpec

logger = logging.getLogger(__name__)

StateCallback = Callable[[StoreState], None]


def _params_key(params: dict[str, Any]) -> str:
    return json.dumps(params, sort_keys=True, default=str)


class SessionResultStore:
    """Live results for one domain, switched and cached per session.

    Args:
        spec: Feed this store loads.
        client: Transport used for compute triggers and feeds.
        cache: Session cache. A new one of default size is created if omitted.
        on_change: Called with the new state after every change.
    """

    def __init__(
        self,
        spec: FeedSpec,
        client: HelixClient,
        cache: SessionResultCache | None = None,
        on_change: StateCallback | None = None,
    ) -> None:
        self.spec = spec
        self._client = client
        self._cache = cache if cache is not None else SessionResultCache()
        self._on_change = on_change

        self._session_id: str | None = None
        self._status = LoadStatus.IDLE
        self._snapshot = ResultSnapshot()
        self._error: Exception | None = None
        # Whether the live snapshot is a finished result set worth caching
        self._terminal = False

        self._loader: BulkFeedLoader | None = None
        self._read_task: asyncio.Task[ResultSnapshot | None] | None = None
        self._flight: int | None = None
        self._epoch = 0
        self._loaded_sessions: set[str] = set()
        self._last_inputs: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def status(self) -> LoadStatus:
        return self._status

    @property
    def snapshot(self) -> ResultSnapshot:
        return self._snapshot

    @property
    def error(self) -> Exception | None:
        return self._error

    @property
    def cache(self) -> SessionResultCache:
        return self._cache

    @property
    def is_busy(self) -> bool:
        return self._flight is not None

    @property
    def state(self) -> StoreState:
        return StoreState(
            domain=self.spec.domain,
            session_id=self._session_id,
            status=self._status,
            snapshot=self._snapshot,
            error=self._error,
        )

    def has_loaded(self, session_id: str) -> bool:
        """Whether a load has completed for the session at least once."""
        return session_id in self._loaded_sessions

    # ------------------------------------------------------------------
    # Session transitions
    # ------------------------------------------------------------------

    def on_session_changed(self, prev: str | None, next_id: str | None) -> None:
        """Save the outgoing session and restore or reset the incoming one.

        Args:
            prev: Session being left, as seen by the caller.
            next_id: Session becoming active, or None when no session is open.
        """
        if prev != self._session_id:
            logger.warning(
                f"[{self.spec.domain}] Session change from {prev} but store holds "
                f"{self._session_id}; caching under {self._session_id}"
            )
        if next_id is not None and next_id == self._session_id:
            return

        self._abort_flight()
        outgoing = self._session_id
        if outgoing is not None and self._terminal and not self._snapshot.is_empty:
            self._cache.put(outgoing, self._snapshot)

        self._session_id = next_id
        if next_id is None:
            logger.info(f"[{self.spec.domain}] Session cleared")
            self._reset()
            self._publish()
            return

        entry = self._cache.get(next_id)
        if entry is not None:
            self._status = LoadStatus.SUCCESS
            self._snapshot = entry.snapshot.model_copy(update={"load_progress_percent": 100})
            self._error = None
            self._terminal = True
        else:
            logger.info(f"[{self.spec.domain}] Cache miss for {next_id}")
            self._reset()
        self._publish()

    def clear(self, session_id: str) -> None:
        """Forget everything known about one session.

        Other sessions' live state and cache entries are left untouched.
        """
        self._cache.remove(session_id)
        self._loaded_sessions.discard(session_id)
        self._last_inputs.pop(session_id, None)
        if session_id == self._session_id:
            self._abort_flight()
            self._reset()
            self._publish()

    def abort(self) -> None:
        """Abort the in-flight load, if any, without raising."""
        self._abort_flight()

    # ------------------------------------------------------------------
    # Compute and load
    # ------------------------------------------------------------------

    async def run_compute(self, session_id: str, params: dict[str, Any]) -> ComputeResult | None:
        """Ask the backend to compute results for a session.

        Does not populate live state; call ``load_all`` afterwards.

        Args:
            session_id: Session to compute for.
            params: Domain compute parameters.

        Returns:
            The compute acknowledgement, or None when required inputs are
            missing (status becomes NO_DATA) or the request was superseded.

        Raises:
            ConcurrencyError: If a compute or load is already in flight.
            TransportError: If the compute request fails.
        """
        missing = [name for name in self.spec.required_params if not params.get(name)]
        if missing:
            logger.info(f"[{self.spec.domain}] Missing {', '.join(missing)}, skipping compute")
            if session_id == self._session_id:
                self._set_status(LoadStatus.NO_DATA)
            return None

        flight = self._begin_flight("compute", session_id)
        self._last_inputs[session_id] = _params_key(params)
        if session_id == self._session_id:
            self._set_status(LoadStatus.PENDING)

        try:
            result = await self._client.trigger_compute(self.spec, session_id, params)
        except HelixStreamError as e:
            logger.error(f"[{self.spec.domain}] Compute failed for {session_id}: {e}")
            if self._flight == flight and session_id == self._session_id:
                self._status = LoadStatus.ERROR
                self._error = e
                self._publish()
            raise
        finally:
            self._end_flight(flight)

        if flight != self._epoch or session_id != self._session_id:
            return None
        return result

    async def load_all(self, session_id: str) -> ResultSnapshot | None:
        """Stream a session's persisted results to completion.

        Intermediate snapshots are published through ``on_change`` while
        loading. The returned snapshot is the complete terminal result; it is
        also made live if the session is still active, or cached otherwise.

        Returns:
            The terminal snapshot, or None if the load was aborted.

        Raises:
            ConcurrencyError: If a compute or load is already in flight.
            TransportError: If the feed cannot be opened or breaks mid-stream.
            ProtocolError: If the feed reports an error.
        """
        flight = self._begin_flight("load", session_id)
        fallback = self._fallback_snapshot(session_id)

        def on_progress(snapshot: ResultSnapshot) -> None:
            if self._flight == flight and session_id == self._session_id:
                self._snapshot = snapshot
                self._publish()

        loader = BulkFeedLoader(self.spec, on_progress=on_progress)
        self._loader = loader
        if session_id == self._session_id:
            self._status = LoadStatus.LOADING
            self._snapshot = ResultSnapshot()
            self._error = None
            self._terminal = False
            self._publish()

        read = asyncio.create_task(self._read_feed(session_id, loader))
        self._read_task = read
        try:
            result = await read
        except asyncio.CancelledError:
            # _abort_flight cancels the read after aborting its loader
            if not loader.aborted:
                raise
            logger.info(f"[{self.spec.domain}] Load for {session_id} aborted")
            result = None
        except HelixStreamError as e:
            logger.error(f"[{self.spec.domain}] Load failed for {session_id}: {e}")
            if self._flight == flight and session_id == self._session_id:
                # Keep the last good results visible
                self._snapshot = fallback
                self._terminal = not fallback.is_empty
                self._status = LoadStatus.ERROR
                self._error = e
                self._publish()
            raise
        finally:
            if self._loader is loader:
                self._loader = None
            if self._read_task is read:
                self._read_task = None
            self._end_flight(flight)

        if result is None:
            return None

        self._loaded_sessions.add(session_id)
        if session_id == self._session_id and flight == self._epoch:
            self._snapshot = result
            self._terminal = True
            self._status = LoadStatus.NO_DATA if result.is_empty else LoadStatus.SUCCESS
            self._error = None
            self._publish()
        else:
            self._cache.put(session_id, result)
        return result

    async def _read_feed(self, session_id: str, loader: BulkFeedLoader) -> ResultSnapshot | None:
        async with self._client.open_feed(self.spec, session_id) as chunks:
            return await loader.run(chunks)

    async def run_and_load(self, session_id: str, params: dict[str, Any]) -> ResultSnapshot | None:
        """Compute results, then stream them in.

        Returns:
            The terminal snapshot, an empty snapshot when the backend produced
            nothing, or None if skipped or superseded.
        """
        result = await self.run_compute(session_id, params)
        if result is None:
            return None
        if result.items_produced == 0:
            logger.info(f"[{self.spec.domain}] Compute produced no items for {session_id}")
            empty = ResultSnapshot(load_progress_percent=100)
            self._loaded_sessions.add(session_id)
            if session_id == self._session_id:
                self._snapshot = empty
                self._terminal = True
                self._status = LoadStatus.NO_DATA
                self._error = None
                self._publish()
            return empty
        return await self.load_all(session_id)

    async def on_inputs_changed(
        self, session_id: str, params: dict[str, Any]
    ) -> ResultSnapshot | None:
        """Record new inputs and re-run if results were loaded before.

        The first inputs seen for a session never trigger a run; nor do
        inputs identical to the last ones computed.

        Returns:
            The new terminal snapshot if a re-run happened, else None.
        """
        key = _params_key(params)
        previous = self._last_inputs.get(session_id)
        self._last_inputs[session_id] = key

        if session_id not in self._loaded_sessions:
            logger.debug(f"[{self.spec.domain}] Inputs recorded for {session_id}, not loaded yet")
            return None
        if previous == key:
            return None

        logger.info(f"[{self.spec.domain}] Inputs changed for {session_id}, re-running")
        return await self.run_and_load(session_id, params)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _begin_flight(self, operation: str, session_id: str) -> int:
        if self._flight is not None:
            logger.warning(
                f"[{self.spec.domain}] {operation} for {session_id} rejected: "
                "another request is in flight"
            )
            raise ConcurrencyError(f"{self.spec.domain} {operation} already in flight")
        self._epoch += 1
        self._flight = self._epoch
        return self._flight

    def _end_flight(self, flight: int) -> None:
        if self._flight == flight:
            self._flight = None

    def _abort_flight(self) -> None:
        if self._loader is not None:
            self._loader.abort()
            self._loader = None
        if self._read_task is not None:
            # From inside the read itself the loader flag is enough
            if self._read_task is not asyncio.current_task():
                self._read_task.cancel()
            self._read_task = None
        self._flight = None

    def _fallback_snapshot(self, session_id: str) -> ResultSnapshot:
        if session_id == self._session_id and self._terminal:
            return self._snapshot
        entry = self._cache.peek(session_id)
        return entry.snapshot if entry is not None else ResultSnapshot()

    def _reset(self) -> None:
        self._status = LoadStatus.IDLE
        self._snapshot = ResultSnapshot()
        self._error = None
        self._terminal = False

    def _set_status(self, status: LoadStatus) -> None:
        self._status = status
        self._error = None
        self._publish()

    def _publish(self) -> None:
        if self._on_change is not None:
            self._on_change(self.state)
