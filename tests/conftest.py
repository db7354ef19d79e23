"""Shared fixtures: a started LedgerService on a throwaway SQLite file."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from tracechain.ledger import LedgerService


class StepClock:
    """Deterministic clock advancing one millisecond per call."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(milliseconds=1)
        return current


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'chain.db'}"


@pytest_asyncio.fixture
async def ledger(database_url):
    service = LedgerService(database_url, clock=StepClock())
    await service.start()
    try:
        yield service
    finally:
        await service.close()
