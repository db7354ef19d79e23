"""Read-side reports combining ledger history with scoring.

build_certificate_report is the reader path: fetch a batch's events,
score them, classify the score.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tracechain.ledger.models import BatchEvent
from tracechain.ledger.service import LedgerService
from tracechain.scoring import (
    CertificateTier,
    InformationGainParams,
    ReconcileMode,
    classify,
    compute_information_gain,
)


class _Report(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CertificateReport(_Report):
    batch_id: str
    score: int
    tier: CertificateTier
    events: list[BatchEvent] = Field(default_factory=list)


class BatchCertificateSummary(_Report):
    batch_id: str
    first_event: str
    last_event: str
    event_count: int
    score: int
    tier: CertificateTier


async def build_certificate_report(
    ledger: LedgerService,
    batch_id: str,
    params: InformationGainParams | None = None,
    mode: ReconcileMode | str = ReconcileMode.INLINE,
) -> CertificateReport:
    """Score one batch. An unknown batch yields score 0 and tier None."""
    events = await ledger.get_events_by_batch(batch_id)
    score = compute_information_gain(events, params=params, mode=mode)
    return CertificateReport(
        batch_id=batch_id,
        score=score,
        tier=classify(score),
        events=events,
    )


async def summarize_batches(
    ledger: LedgerService,
    params: InformationGainParams | None = None,
    mode: ReconcileMode | str = ReconcileMode.INLINE,
) -> list[BatchCertificateSummary]:
    """Every batch with its current score and tier, most recent first."""
    summaries = []
    for batch in await ledger.list_batches():
        events = await ledger.get_events_by_batch(batch.batch_id)
        score = compute_information_gain(events, params=params, mode=mode)
        summaries.append(
            BatchCertificateSummary(
                batch_id=batch.batch_id,
                first_event=batch.first_event,
                last_event=batch.last_event,
                event_count=batch.event_count,
                score=score,
                tier=classify(score),
            )
        )
    return summaries


__all__ = [
    "BatchCertificateSummary",
    "CertificateReport",
    "build_certificate_report",
    "summarize_batches",
]
