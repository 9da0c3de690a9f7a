"""Feed descriptors and record decoding for NDJSON bulk feeds.

Each feed line is one JSON object with a ``type`` discriminator:
``metadata`` first, then one record per entity (``gene``, ``publication``,
...), then ``complete``. Servers may also send ``error``.
"""

import dataclasses
import json
import re
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from helix_stream.errors import ParseError
from helix_stream.models.entities import GeneAggregate, PublicationResult, UnknownEntity
from helix_stream.models.schemas import (
    CompleteRecord,
    EntityRecord,
    ErrorRecord,
    FeedRecord,
    MetadataRecord,
    UnknownRecord,
)

# Metadata keys that announce the expected entity count, in priority order
TOTAL_KEYS = ("total_expected", "total", "total_genes", "total_results", "total_publications")
COMPLETE_KEYS = ("total_streamed", "total", "total_genes", "total_results", "total_publications")
TIER_COUNT_PATTERN = re.compile(r"^tier_?\d+_count$")


@dataclass(frozen=True)
class FeedSpec:
    """Describes one bulk feed and the compute call that produces it.

    Attributes:
        domain: Store name ("phenotype", "literature", ...).
        entity_types: Record types carrying entities.
        entity_model: Model entities are validated into, or None to keep
            them as UnknownEntity.
        batch_size: Entities between progress updates.
        service: Config service key ("api", "literature").
        compute_path: POST path template for the compute trigger.
        stream_path: GET path template for the NDJSON feed.
        required_params: Compute parameters that must be non-empty.
    """

    domain: str
    entity_types: tuple[str, ...]
    entity_model: type[BaseModel] | None
    batch_size: int
    service: str
    compute_path: str
    stream_path: str
    required_params: tuple[str, ...] = ()

    def with_batch_size(self, batch_size: int) -> "FeedSpec":
        return dataclasses.replace(self, batch_size=batch_size)


GENE_FEED = FeedSpec(
    domain="phenotype",
    entity_types=("gene",),
    entity_model=GeneAggregate,
    batch_size=50,
    service="api",
    compute_path="/sessions/{session_id}/phenotype/match",
    stream_path="/sessions/{session_id}/phenotype/results/stream",
    required_params=("patient_hpo_ids",),
)

PUBLICATION_FEED = FeedSpec(
    domain="literature",
    entity_types=("publication",),
    entity_model=PublicationResult,
    batch_size=10,
    service="literature",
    compute_path="/api/v1/sessions/{session_id}/search",
    stream_path="/api/v1/sessions/{session_id}/results/stream",
    required_params=("genes", "patient_hpo_terms"),
)


def _int_counters(raw: dict[str, Any]) -> dict[str, int]:
    return {
        k: v for k, v in raw.items() if isinstance(v, int) and not isinstance(v, bool)
    }


def _first_int(raw: dict[str, Any], keys: tuple[str, ...]) -> int | None:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def _decode_metadata(raw: dict[str, Any]) -> MetadataRecord:
    counters = _int_counters(raw)
    summary = raw.get("summary")
    if isinstance(summary, dict):
        counters.update(_int_counters(summary))

    total = _first_int(counters, TOTAL_KEYS)
    if total is None:
        total = sum(v for k, v in counters.items() if TIER_COUNT_PATTERN.match(k))
    return MetadataRecord(total_expected=max(total, 0), counters=counters)


def _decode_entity(raw: dict[str, Any], record_type: str, spec: FeedSpec) -> EntityRecord:
    payload = raw.get("data")
    if payload is None:
        payload = {k: v for k, v in raw.items() if k != "type"}
    if not isinstance(payload, dict):
        raise ParseError(f"{record_type} record payload is not an object")

    if spec.entity_model is None:
        return EntityRecord(entity=UnknownEntity(kind=record_type, payload=payload))
    return EntityRecord(entity=spec.entity_model.model_validate(payload))


def decode_record(raw: Any, spec: FeedSpec) -> FeedRecord:
    """Turn one parsed JSON value into a typed feed record.

    Args:
        raw: Value parsed from a single feed line.
        spec: Feed the line belongs to.

    Returns:
        The typed record. Types the feed does not route become UnknownRecord.

    Raises:
        ParseError: If the value is not a record or fails validation.
    """
    if not isinstance(raw, dict):
        raise ParseError(f"Expected a JSON object, got {type(raw).__name__}")

    record_type = raw.get("type")
    if not isinstance(record_type, str) or not record_type:
        raise ParseError("Record has no type discriminator")

    try:
        if record_type == "metadata":
            return _decode_metadata(raw)
        if record_type in spec.entity_types:
            return _decode_entity(raw, record_type, spec)
        if record_type == "complete":
            return CompleteRecord(total_streamed=max(_first_int(raw, COMPLETE_KEYS) or 0, 0))
        if record_type == "error":
            message = raw.get("message") or raw.get("detail") or raw.get("error")
            return ErrorRecord(message=str(message) if message else "Unknown error")
    except ValidationError as e:
        raise ParseError(f"Invalid {record_type} record: {e.error_count()} validation error(s)") from e

    return UnknownRecord(record_type=record_type, raw=raw)


def decode_line(line: str, spec: FeedSpec) -> FeedRecord | None:
    """Parse and decode one framed line. Blank lines yield None.

    Raises:
        ParseError: If the line is not valid JSON or not a valid record.
    """
    line = line.strip()
    if not line:
        return None
    try:
        raw = json.loads(line)
    except json.JSONDecodeError as e:
        raise ParseError(f"Malformed JSON at column {e.colno}: {line[:80]!r}") from e
    return decode_record(raw, spec)
