"""Pydantic models for ledger blocks, batch events and event payloads.

Wire shape is camelCase (indexNumber, batchId, ...); Python attributes
are snake_case. Both names are accepted on input.
"""

from __future__ import annotations

import copy
from enum import Enum
from typing import Annotated, Any, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from .hashing import compute_block_hash


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------


class EventType(str, Enum):
    """Custody events understood by the scoring engine."""

    BATCH_CREATED = "BATCH_CREATED"
    IOT_UPDATE = "IOT_UPDATE"
    DISPATCHED = "DISPATCHED"
    RECEIVED = "RECEIVED"
    RATING = "RATING"
    QUALITY_INSPECTION = "QUALITY_INSPECTION"
    FINALIZED = "FINALIZED"


def coerce_event_type(value: EventType | str) -> EventType | None:
    """Map a raw event type to the enum, or None if unrecognized."""
    if isinstance(value, EventType):
        return value
    try:
        return EventType(value)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Event payloads (tagged by event type)
# ---------------------------------------------------------------------------


class _EventData(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )


_READING_ADAPTER = TypeAdapter(float)


def _lenient_reading(value: Any) -> float | None:
    # A reading that is not numeric is dropped on its own; the other
    # fields of the payload still validate.
    if value is None:
        return None
    try:
        return _READING_ADAPTER.validate_python(value)
    except ValidationError:
        return None


# Numeric fields consumed by scoring. Descriptive fields stay untyped so a
# malformed value there never hides a reading.
Reading = Annotated[float | None, BeforeValidator(_lenient_reading)]


class BatchCreatedData(_EventData):
    pass


class IotUpdateData(_EventData):
    temperature: Reading = None
    humidity: Reading = None
    lat: Any = None
    lng: Any = None


class TransitData(_EventData):
    """Payload of DISPATCHED and RECEIVED events."""

    location: Any = None
    lat: Any = None
    lng: Any = None


class RatingData(_EventData):
    rating: Reading = None
    lat: Any = None
    lng: Any = None


class QualityInspectionData(_EventData):
    rating: Reading = None
    inspector: Any = None
    notes: Any = None
    location: Any = None
    lat: Any = None
    lng: Any = None


class FinalizedData(_EventData):
    finalized_by: Any = None
    location: Any = None
    notes: Any = None
    lat: Any = None
    lng: Any = None


class GenericEventData(BaseModel):
    """Fallback for unrecognized event types or non-object payloads."""

    model_config = ConfigDict(frozen=True)

    raw: Any = None


EventData = Union[
    BatchCreatedData,
    IotUpdateData,
    TransitData,
    RatingData,
    QualityInspectionData,
    FinalizedData,
    GenericEventData,
]

_PAYLOAD_MODELS: dict[EventType, type[_EventData]] = {
    EventType.BATCH_CREATED: BatchCreatedData,
    EventType.IOT_UPDATE: IotUpdateData,
    EventType.DISPATCHED: TransitData,
    EventType.RECEIVED: TransitData,
    EventType.RATING: RatingData,
    EventType.QUALITY_INSPECTION: QualityInspectionData,
    EventType.FINALIZED: FinalizedData,
}


def parse_event_data(event_type: EventType | str, event_data: Any) -> EventData:
    """Build the typed payload for an event.

    Never raises. Unknown event types and non-object payloads come back as
    GenericEventData. A known type always gets its model; a reading that
    is not numeric is left as None without affecting the other fields.
    """
    kind = coerce_event_type(event_type)
    model = _PAYLOAD_MODELS.get(kind) if kind is not None else None
    if model is None or not isinstance(event_data, dict):
        return GenericEventData(raw=event_data)
    try:
        return model.model_validate(event_data)
    except ValidationError:
        return GenericEventData(raw=event_data)


# ---------------------------------------------------------------------------
# Blocks and read-side projections
# ---------------------------------------------------------------------------


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class BatchEvent(_WireModel):
    """A block reduced to what the scoring engine consumes."""

    event_type: str
    event_data: Any = Field(default_factory=dict)
    timestamp: str | None = None

    @property
    def kind(self) -> EventType | None:
        return coerce_event_type(self.event_type)

    @property
    def payload(self) -> EventData:
        return parse_event_data(self.event_type, self.event_data)


class Block(_WireModel):
    """One immutable ledger entry.

    sequence_id is assigned by storage and is not part of the wire shape
    or the hash. event_data is read-only: mutating it in place makes the
    block disagree with its hash. Projections built from a block get
    their own copy of the payload.
    """

    sequence_id: int | None = None
    index_number: int = Field(ge=0)
    timestamp: str
    batch_id: str
    event_type: str
    event_data: Any = Field(default_factory=dict)
    previous_hash: str
    hash: str

    def compute_hash(self) -> str:
        """Recompute the digest from this block's own fields."""
        return compute_block_hash(
            self.index_number,
            self.timestamp,
            self.batch_id,
            self.event_type,
            self.event_data,
            self.previous_hash,
        )

    def to_event(self) -> BatchEvent:
        return BatchEvent(
            event_type=self.event_type,
            event_data=copy.deepcopy(self.event_data),
            timestamp=self.timestamp,
        )

    def to_wire(self) -> dict[str, Any]:
        """Serialized shape exposed to callers."""
        return self.model_dump(mode="json", by_alias=True, exclude={"sequence_id"})


class BatchSummary(_WireModel):
    """Per-batch aggregate over the ledger."""

    batch_id: str
    first_event: str
    last_event: str
    event_count: int


__all__ = [
    "BatchCreatedData",
    "BatchEvent",
    "BatchSummary",
    "Block",
    "EventData",
    "EventType",
    "FinalizedData",
    "GenericEventData",
    "IotUpdateData",
    "QualityInspectionData",
    "RatingData",
    "TransitData",
    "coerce_event_type",
    "parse_event_data",
]
