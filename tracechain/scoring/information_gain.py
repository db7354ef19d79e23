"""Information gain scoring.

Single forward pass over a batch's ordered events. Each event applies
its own rule to a running score; delivery legs and flags accumulate
alongside and are settled by a reconciliation step:

- INLINE mode (default): reconciliation runs every time a FINALIZED
  event is read, against the state accumulated so far. Events after
  FINALIZED are not reflected in it, and a second FINALIZED reconciles
  again. Kept for compatibility with existing certificates.
- FINAL mode: per-event rules are streamed, then reconciliation runs
  exactly once over the complete history, if it contains a FINALIZED
  event.

Legs: the Nth DISPATCHED event opens leg N; a RECEIVED event marks the
most recently opened leg as received.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel

from tracechain.ledger.models import (
    BatchEvent,
    EventType,
    IotUpdateData,
    QualityInspectionData,
    RatingData,
)


class ReconcileMode(str, Enum):
    INLINE = "inline"
    FINAL = "final"


class InformationGainParams(BaseModel):
    """Scoring constants. Defaults define the published certificate scale."""

    created_bonus: int = 2
    iot_update_bonus: int = 1
    temperature_limit: float = 24
    temperature_penalty: int = 5
    humidity_limit: float = 90
    humidity_penalty: int = 3
    dispatched_bonus: int = 3
    received_bonus: int = 3

    # Ratings: the n-th rating moves the score by step * n
    rating_high: float = 4
    rating_neutral: float = 3
    rating_low: float = 2
    rating_high_step: int = 1
    rating_low_step: int = 2

    inspection_high_bonus: int = 5
    inspection_neutral_bonus: int = 2
    inspection_low_penalty: int = 6

    # Reconciliation
    open_leg_penalty: int = 4
    full_completion_bonus: int = 10
    high_completion_ratio: float = 0.75
    high_completion_bonus: int = 6
    partial_completion_ratio: float = 0.5
    partial_completion_bonus: int = 2
    low_completion_penalty: int = 5
    missing_iot_penalty: int = 3
    missing_created_penalty: int = 5


DEFAULT_PARAMS = InformationGainParams()


@dataclass
class _Leg:
    dispatched: bool = False
    received: bool = False


@dataclass
class _ScoringState:
    score: int = 0
    created: bool = False
    any_iot_update: bool = False
    ratings_seen: int = 0
    finalized: bool = False
    legs: list[_Leg] = field(default_factory=list)


def _coerce_event(event: BatchEvent | Mapping[str, Any]) -> BatchEvent:
    if isinstance(event, BatchEvent):
        return event
    return BatchEvent.model_validate(event)


def _apply_event(state: _ScoringState, event: BatchEvent, params: InformationGainParams) -> None:
    kind = event.kind
    if kind is None:
        return

    if kind is EventType.BATCH_CREATED:
        state.score += params.created_bonus
        state.created = True

    elif kind is EventType.IOT_UPDATE:
        state.score += params.iot_update_bonus
        state.any_iot_update = True
        payload = event.payload
        if isinstance(payload, IotUpdateData):
            if payload.temperature is not None and payload.temperature > params.temperature_limit:
                state.score -= params.temperature_penalty
            if payload.humidity is not None and payload.humidity > params.humidity_limit:
                state.score -= params.humidity_penalty

    elif kind is EventType.DISPATCHED:
        state.legs.append(_Leg(dispatched=True))
        state.score += params.dispatched_bonus

    elif kind is EventType.RECEIVED:
        if state.legs:
            state.legs[-1].received = True
        state.score += params.received_bonus

    elif kind is EventType.RATING:
        state.ratings_seen += 1
        payload = event.payload
        rating = payload.rating if isinstance(payload, RatingData) else None
        if rating is None:
            return
        if rating >= params.rating_high:
            state.score += params.rating_high_step * state.ratings_seen
        elif rating <= params.rating_low:
            state.score -= params.rating_low_step * state.ratings_seen

    elif kind is EventType.QUALITY_INSPECTION:
        payload = event.payload
        rating = payload.rating if isinstance(payload, QualityInspectionData) else None
        if rating is None:
            return
        if rating >= params.rating_high:
            state.score += params.inspection_high_bonus
        elif rating == params.rating_neutral:
            state.score += params.inspection_neutral_bonus
        elif rating <= params.rating_low:
            state.score -= params.inspection_low_penalty

    elif kind is EventType.FINALIZED:
        state.finalized = True


def _reconcile(state: _ScoringState, params: InformationGainParams) -> None:
    completed = 0
    for leg in state.legs:
        if leg.dispatched and leg.received:
            completed += 1
        elif leg.dispatched:
            state.score -= params.open_leg_penalty

    ratio = completed / len(state.legs) if state.legs else 0.0
    if ratio == 1:
        state.score += params.full_completion_bonus
    elif ratio >= params.high_completion_ratio:
        state.score += params.high_completion_bonus
    elif ratio >= params.partial_completion_ratio:
        state.score += params.partial_completion_bonus
    else:
        state.score -= params.low_completion_penalty

    if not state.any_iot_update:
        state.score -= params.missing_iot_penalty
    if not state.created:
        state.score -= params.missing_created_penalty


def compute_information_gain(
    events: Iterable[BatchEvent | Mapping[str, Any]],
    params: InformationGainParams | None = None,
    mode: ReconcileMode | str = ReconcileMode.INLINE,
) -> int:
    """Score a batch's ordered event history.

    Pure and deterministic: no state is kept between calls. Unrecognized
    event types contribute nothing. The result is unbounded and may be
    negative.

    Args:
        events: Events in insertion order (BatchEvent or wire-shaped dicts).
        params: Scoring constants (default: DEFAULT_PARAMS).
        mode: When reconciliation runs; see module docstring.
    """
    params = params or DEFAULT_PARAMS
    mode = ReconcileMode(mode)
    state = _ScoringState()

    for raw in events:
        event = _coerce_event(raw)
        _apply_event(state, event, params)
        if mode is ReconcileMode.INLINE and event.kind is EventType.FINALIZED:
            _reconcile(state, params)

    if mode is ReconcileMode.FINAL and state.finalized:
        _reconcile(state, params)

    return state.score


__all__ = [
    "DEFAULT_PARAMS",
    "InformationGainParams",
    "ReconcileMode",
    "compute_information_gain",
]
