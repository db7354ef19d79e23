"""Canonical block serialization and digest.

A block hash covers exactly these fields, in this order:
indexNumber, timestamp, batchId, eventType, eventData, previousHash.

eventData is normalized through its canonical JSON text (sorted keys,
compact separators, no NaN/Infinity) so a hash recomputed from a stored
row always matches the hash computed at append time.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from .errors import SerializationError

GENESIS_PREVIOUS_HASH = "0"

HASHED_FIELDS = (
    "indexNumber",
    "timestamp",
    "batchId",
    "eventType",
    "eventData",
    "previousHash",
)


def canonical_event_data(event_data: Any) -> str:
    """Serialize event data to its canonical JSON text.

    Raises:
        SerializationError: if the value is not plain JSON data.
    """
    try:
        return json.dumps(
            event_data,
            sort_keys=True,
            separators=(",", ":"),
            allow_nan=False,
        )
    except (TypeError, ValueError) as e:
        raise SerializationError(f"event data is not canonically serializable: {e}") from e


def normalize_event_data(event_data: Any) -> Any:
    """Return event data exactly as it will read back from storage."""
    return json.loads(canonical_event_data(event_data))


def canonical_block_payload(
    index_number: int,
    timestamp: str,
    batch_id: str,
    event_type: str,
    event_data: Any,
    previous_hash: str,
) -> str:
    values = (
        index_number,
        timestamp,
        batch_id,
        event_type,
        normalize_event_data(event_data),
        previous_hash,
    )
    payload = dict(zip(HASHED_FIELDS, values))
    return json.dumps(payload, separators=(",", ":"), allow_nan=False)


def compute_block_hash(
    index_number: int,
    timestamp: str,
    batch_id: str,
    event_type: str,
    event_data: Any,
    previous_hash: str,
) -> str:
    """SHA-256 hex digest over the canonical block payload."""
    payload = canonical_block_payload(
        index_number, timestamp, batch_id, event_type, event_data, previous_hash,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


__all__ = [
    "GENESIS_PREVIOUS_HASH",
    "HASHED_FIELDS",
    "canonical_block_payload",
    "canonical_event_data",
    "compute_block_hash",
    "normalize_event_data",
]
