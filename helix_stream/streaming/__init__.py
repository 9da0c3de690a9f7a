"""Framing and loading of server-pushed NDJSON bulk feeds.

Responsibilities:
    - Line framing across arbitrary chunk boundaries
    - Typed decoding of feed records by their type discriminator
    - Progressive accumulation with bounded-cadence progress snapshots
"""

from helix_stream.streaming.bulk_feed import BulkFeedLoader, progress_percent
from helix_stream.streaming.feeds import (
    GENE_FEED,
    PUBLICATION_FEED,
    FeedSpec,
    decode_line,
    decode_record,
)
from helix_stream.streaming.framer import LineFramer

__all__ = [
    "GENE_FEED",
    "PUBLICATION_FEED",
    "BulkFeedLoader",
    "FeedSpec",
    "LineFramer",
    "decode_line",
    "decode_record",
    "progress_percent",
]
