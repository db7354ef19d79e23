"""Append-only block table backing the hash chain ledger."""

from __future__ import annotations

from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class BlockRow(Base):
    """One persisted block. Rows are inserted once and never updated.

    sequence_id defines global order; the unique constraints on
    index_number and previous_hash reject a second block claiming the
    same predecessor.
    """

    __tablename__ = "blocks"
    __table_args__ = (
        Index("ix_blocks_batch_id_sequence_id", "batch_id", "sequence_id"),
        {"sqlite_autoincrement": True},
    )

    sequence_id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment="Storage-assigned global order",
    )
    index_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        unique=True,
        comment="Chain position, 0 for the first block",
    )
    timestamp: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="ISO-8601 UTC creation time, exactly as hashed",
    )
    batch_id: Mapped[str] = mapped_column(
        String,
        nullable=False,
        comment="Batch this event belongs to",
    )
    event_type: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    event_data: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Canonical JSON text of the event payload",
    )
    previous_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        comment="Hash of the preceding block, '0' for the first",
    )
    hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="SHA-256 over the canonical block payload",
    )


__all__ = ["BlockRow"]
