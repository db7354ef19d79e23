"""Hash chain ledger service.

An explicitly constructed, explicitly started service owning the
database engine. Dependents receive the instance; nothing is held in
module globals.

Append is the only write path. The read-last -> compute -> insert ->
commit sequence runs under a single asyncio.Lock so no two appends can
observe the same predecessor. Reads never take the lock.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tracechain.config import LedgerSettings
from tracechain.database.schema import Base, BlockRow

from .errors import StorageError
from .hashing import GENESIS_PREVIOUS_HASH, canonical_event_data, compute_block_hash
from .models import BatchEvent, BatchSummary, Block, EventType, coerce_event_type
from .verifier import ChainVerificationResult, verify_blocks

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a Z suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _decode_event_data(text: str) -> Any:
    # A row whose payload is not JSON is surfaced raw; verification then
    # reports it as a hash mismatch.
    try:
        return json.loads(text)
    except ValueError:
        return text


def _row_to_block(row: BlockRow) -> Block:
    return Block(
        sequence_id=row.sequence_id,
        index_number=row.index_number,
        timestamp=row.timestamp,
        batch_id=row.batch_id,
        event_type=row.event_type,
        event_data=_decode_event_data(row.event_data),
        previous_hash=row.previous_hash,
        hash=row.hash,
    )


class LedgerService:
    """Append-only, hash-linked ledger of custody events."""

    def __init__(
        self,
        database_url: str,
        *,
        echo: bool = False,
        clock: Callable[[], datetime] | None = None,
    ):
        self.database_url = database_url
        self.echo = echo
        self._clock = clock or _utcnow
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None
        self._append_lock = asyncio.Lock()
        self._last_batch_ms = 0

    @classmethod
    def from_settings(cls, settings: LedgerSettings) -> LedgerService:
        return cls(settings.database_url, echo=settings.echo_sql)

    # -- Lifecycle --

    async def start(self) -> None:
        """Open the engine and create the blocks table if missing."""
        if self._engine is not None:
            return
        engine = create_async_engine(self.database_url, echo=self.echo)
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            await engine.dispose()
            raise StorageError(f"failed to initialize ledger storage: {e}") from e

        self._engine = engine
        self._sessionmaker = async_sessionmaker(engine, expire_on_commit=False)
        logger.info({"ledger_service": {"status": "started", "url": engine.url.render_as_string()}})

    async def close(self) -> None:
        """Dispose of the engine. Safe to call more than once."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info({"ledger_service": {"status": "closed"}})

    async def __aenter__(self) -> LedgerService:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise StorageError("ledger service is not started")
        return self._engine

    def _session(self) -> AsyncSession:
        if self._sessionmaker is None:
            raise StorageError("ledger service is not started")
        return self._sessionmaker()

    # -- Writes --

    async def append(
        self,
        batch_id: str,
        event_type: EventType | str,
        event_data: Any = None,
    ) -> Block:
        """Record one event as a new block at the end of the global chain.

        Args:
            batch_id: Batch the event belongs to. Does not affect linkage.
            event_type: An EventType or any string; unknown types are stored as-is.
            event_data: JSON-compatible payload (None means an empty object).

        Returns:
            The fully populated, persisted Block.

        Raises:
            SerializationError: event_data is not canonically serializable.
                Raised before any storage access.
            StorageError: the write failed; nothing was persisted.
        """
        if not isinstance(batch_id, str) or not batch_id:
            raise ValueError("batch_id must be a non-empty string")
        type_value = event_type.value if isinstance(event_type, EventType) else str(event_type)
        if coerce_event_type(type_value) is None:
            logger.warning({"ledger_append": {"unknown_event_type": type_value, "batch_id": batch_id}})
        data_text = canonical_event_data({} if event_data is None else event_data)

        async with self._append_lock:
            return await self._append_locked(batch_id, type_value, data_text)

    async def create_batch(self) -> tuple[str, Block]:
        """Allocate a new batch id and record its BATCH_CREATED event."""
        data_text = canonical_event_data({})
        async with self._append_lock:
            batch_id = self._next_batch_id()
            block = await self._append_locked(batch_id, EventType.BATCH_CREATED.value, data_text)
        return batch_id, block

    def _next_batch_id(self) -> str:
        # Must be called with the append lock held.
        now_ms = int(self._clock().timestamp() * 1000)
        self._last_batch_ms = max(now_ms, self._last_batch_ms + 1)
        return f"B{self._last_batch_ms}"

    async def _append_locked(self, batch_id: str, event_type: str, data_text: str) -> Block:
        event_data = json.loads(data_text)

        try:
            async with self._session() as session:
                async with session.begin():
                    last = (
                        await session.execute(
                            select(BlockRow).order_by(BlockRow.sequence_id.desc()).limit(1)
                        )
                    ).scalar_one_or_none()

                    if last is None:
                        index_number = 0
                        previous_hash = GENESIS_PREVIOUS_HASH
                    else:
                        index_number = last.index_number + 1
                        previous_hash = last.hash

                    timestamp = format_timestamp(self._clock())
                    block_hash = compute_block_hash(
                        index_number, timestamp, batch_id, event_type, event_data, previous_hash,
                    )
                    row = BlockRow(
                        index_number=index_number,
                        timestamp=timestamp,
                        batch_id=batch_id,
                        event_type=event_type,
                        event_data=data_text,
                        previous_hash=previous_hash,
                        hash=block_hash,
                    )
                    session.add(row)
                    await session.flush()
                    sequence_id = row.sequence_id
        except SQLAlchemyError as e:
            logger.error({"ledger_append_error": {"batch_id": batch_id, "event_type": event_type, "error": str(e)}})
            raise StorageError(f"failed to append block: {e}") from e

        block = Block(
            sequence_id=sequence_id,
            index_number=index_number,
            timestamp=timestamp,
            batch_id=batch_id,
            event_type=event_type,
            event_data=event_data,
            previous_hash=previous_hash,
            hash=block_hash,
        )
        logger.info({
            "ledger_append": {
                "sequence_id": sequence_id,
                "index_number": index_number,
                "batch_id": batch_id,
                "event_type": event_type,
                "hash": block_hash[:16],
            }
        })
        return block

    # -- Reads --

    async def get_events_by_batch(self, batch_id: str) -> list[BatchEvent]:
        """All events of a batch in insertion order. Unknown batch -> []."""
        stmt = (
            select(BlockRow)
            .where(BlockRow.batch_id == batch_id)
            .order_by(BlockRow.sequence_id)
        )
        rows = await self._fetch_rows(stmt)
        return [_row_to_block(r).to_event() for r in rows]

    async def get_chain(self) -> list[Block]:
        """Every block in global sequence order."""
        rows = await self._fetch_rows(select(BlockRow).order_by(BlockRow.sequence_id))
        return [_row_to_block(r) for r in rows]

    async def get_block(self, sequence_id: int) -> Block | None:
        rows = await self._fetch_rows(
            select(BlockRow).where(BlockRow.sequence_id == sequence_id)
        )
        return _row_to_block(rows[0]) if rows else None

    async def count(self) -> int:
        try:
            async with self._session() as session:
                return int(await session.scalar(select(func.count()).select_from(BlockRow)) or 0)
        except SQLAlchemyError as e:
            raise StorageError(f"failed to count blocks: {e}") from e

    async def list_batches(self) -> list[BatchSummary]:
        """One summary per batch, most recently active first."""
        last_event = func.max(BlockRow.timestamp).label("last_event")
        stmt = (
            select(
                BlockRow.batch_id,
                func.min(BlockRow.timestamp).label("first_event"),
                last_event,
                func.count().label("event_count"),
            )
            .group_by(BlockRow.batch_id)
            .order_by(last_event.desc(), BlockRow.batch_id)
        )
        try:
            async with self._session() as session:
                result = await session.execute(stmt)
                mappings = result.mappings().all()
        except SQLAlchemyError as e:
            raise StorageError(f"failed to list batches: {e}") from e
        return [BatchSummary(**m) for m in mappings]

    async def verify_chain(self) -> ChainVerificationResult:
        """Walk the whole ledger and report the first inconsistent block."""
        result = verify_blocks(await self.get_chain())
        if result:
            logger.info({"ledger_verify": {"valid": True, "blocks": result.blocks_checked}})
        else:
            logger.error({
                "ledger_verify": {
                    "valid": False,
                    "sequence_id": result.error.sequence_id,
                    "reason": result.error.reason,
                }
            })
        return result

    async def _fetch_rows(self, stmt) -> list[BlockRow]:
        try:
            async with self._session() as session:
                return list((await session.scalars(stmt)).all())
        except SQLAlchemyError as e:
            raise StorageError(f"failed to read blocks: {e}") from e


__all__ = ["LedgerService", "format_timestamp"]
