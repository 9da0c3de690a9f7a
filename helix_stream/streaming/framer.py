"""Newline framing for incrementally received NDJSON and SSE bodies."""

import codecs
import logging

logger = logging.getLogger(__name__)


class LineFramer:
    """Splits a chunked byte or text stream into complete lines.

    Bytes after the last newline seen so far are held back until more data
    arrives. Multi-byte characters split across chunks are decoded correctly.

    A stream that ends without a trailing newline loses its final fragment:
    ``close()`` discards it and the stream is treated as aborted mid-record.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._remainder = ""

    @property
    def remainder(self) -> str:
        """Text received after the last newline."""
        return self._remainder

    def feed(self, chunk: bytes | str) -> list[str]:
        """Add a chunk and return every line it completes.

        Args:
            chunk: Raw bytes or already-decoded text.

        Returns:
            Complete lines without their terminating newline, in order.
        """
        text = chunk if isinstance(chunk, str) else self._decoder.decode(chunk)
        if not text:
            return []
        *lines, self._remainder = (self._remainder + text).split("\n")
        return lines

    def close(self) -> list[str]:
        """Signal end of stream. Always returns no lines.

        Returns:
            An empty list; any unterminated remainder is dropped.
        """
        tail = self._remainder + self._decoder.decode(b"", final=True)
        self._remainder = ""
        if tail.strip():
            logger.warning(f"Discarding unterminated final line ({len(tail)} chars)")
        return []
