"""Bulk NDJSON feed loader with bounded-cadence progress reporting.

Drives one feed from first chunk to terminal state. The read loop only
suspends while waiting for the next chunk; framing, decoding and accumulator
updates between chunks run without interruption, so progress is monotonic
without any locking.

Intermediate snapshots are published every ``batch_size`` entities for
display only. The snapshot returned by ``run()`` is the authoritative result.
"""

import asyncio
import logging
from collections.abc import AsyncIterable, Callable

from helix_stream.errors import ParseError, ProtocolError
from helix_stream.models.entities import Entity
from helix_stream.models.schemas import (
    CompleteRecord,
    EntityRecord,
    ErrorRecord,
    LoadStatus,
    MetadataRecord,
    ResultSnapshot,
    UnknownRecord,
)
from helix_stream.streaming.feeds import FeedSpec, decode_line
from helix_stream.streaming.framer import LineFramer

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ResultSnapshot], None]


def progress_percent(loaded: int, total: int) -> int:
    """Percentage of ``total`` loaded, rounded half up and capped at 100."""
    if total <= 0:
        return 0
    return min(100, int(loaded * 100 / total + 0.5))


class BulkFeedLoader:
    """Loads a single bulk feed run into an accumulator.

    Attributes:
        spec: The feed being loaded.
        status: LOADING while running, then SUCCESS, ERROR, or IDLE if aborted.
        completed_count: Count reported by the ``complete`` record, if any.
    """

    def __init__(self, spec: FeedSpec, on_progress: ProgressCallback | None = None) -> None:
        self.spec = spec
        self.status = LoadStatus.IDLE
        self.completed_count: int | None = None
        self._on_progress = on_progress
        self._items: list[Entity] = []
        self._counters: dict[str, int] = {}
        self._total_expected = 0
        self._progress = 0
        self._aborted = False

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def aborted(self) -> bool:
        return self._aborted

    def abort(self) -> None:
        """Stop dispatching records. The running ``run()`` returns None.

        Takes effect at the next line. Callers that must not wait for the
        next chunk also cancel the task driving ``run()``.
        """
        self._aborted = True

    async def run(self, chunks: AsyncIterable[bytes | str]) -> ResultSnapshot | None:
        """Consume the feed and return the terminal snapshot.

        Args:
            chunks: Body chunks as delivered by the transport (already
                decompressed).

        Returns:
            The complete accumulated result with progress 100, or None if the
            run was aborted.

        Raises:
            ProtocolError: If the feed contains an ``error`` record.
            TransportError: If the transport fails mid-stream.
        """
        self.status = LoadStatus.LOADING
        framer = LineFramer()

        try:
            async for chunk in chunks:
                for line in framer.feed(chunk):
                    if self._aborted:
                        break
                    self._dispatch(line)
                if self._aborted:
                    break
        except asyncio.CancelledError:
            logger.info(f"{self.spec.domain} feed cancelled after {len(self._items)} items")
            self.status = LoadStatus.IDLE
            raise
        except Exception:
            self.status = LoadStatus.ERROR
            raise

        if self._aborted:
            logger.info(f"{self.spec.domain} feed aborted after {len(self._items)} items")
            self.status = LoadStatus.IDLE
            return None

        framer.close()
        self._progress = 100
        final = self._snapshot()
        self.status = LoadStatus.SUCCESS
        if self.completed_count is not None and self.completed_count != len(self._items):
            logger.warning(
                f"{self.spec.domain} feed reported {self.completed_count} items, "
                f"received {len(self._items)}"
            )
        logger.info(f"{self.spec.domain} feed complete: {len(self._items)} items")
        self._publish(final)
        return final

    def _dispatch(self, line: str) -> None:
        try:
            record = decode_line(line, self.spec)
        except ParseError as e:
            logger.warning(f"Skipping malformed {self.spec.domain} line: {e}")
            return

        if record is None:
            return
        if isinstance(record, MetadataRecord):
            self._total_expected = record.total_expected
            self._counters = dict(record.counters)
            logger.debug(f"{self.spec.domain} feed metadata: {record.total_expected} expected")
        elif isinstance(record, EntityRecord):
            self._items.append(record.entity)
            if len(self._items) % self.spec.batch_size == 0:
                self._advance_progress()
        elif isinstance(record, CompleteRecord):
            self.completed_count = record.total_streamed
        elif isinstance(record, ErrorRecord):
            logger.error(f"{self.spec.domain} feed reported error: {record.message}")
            raise ProtocolError(record.message)
        elif isinstance(record, UnknownRecord):
            logger.debug(f"Ignoring {record.record_type!r} record in {self.spec.domain} feed")

    def _advance_progress(self) -> None:
        self._progress = max(
            self._progress, progress_percent(len(self._items), self._total_expected)
        )
        self._publish(self._snapshot())

    def _snapshot(self) -> ResultSnapshot:
        # Copy so observers never see the accumulator grow under them
        return ResultSnapshot(
            items=tuple(self._items),
            summary_counters=dict(self._counters),
            load_progress_percent=self._progress,
        )

    def _publish(self, snapshot: ResultSnapshot) -> None:
        if self._on_progress is not None:
            self._on_progress(snapshot)
