"""Tamper-evident custody ledger.

A single global hash chain: every block links to the block appended
immediately before it, whatever batch either belongs to. Batches are a
filter over that chain, not separate chains.
"""

from .errors import ChainIntegrityError, LedgerError, SerializationError, StorageError
from .hashing import GENESIS_PREVIOUS_HASH, compute_block_hash
from .models import (
    BatchEvent,
    BatchSummary,
    Block,
    EventType,
    parse_event_data,
)
from .service import LedgerService
from .verifier import ChainVerificationResult, verify_blocks

__all__ = [
    "GENESIS_PREVIOUS_HASH",
    "BatchEvent",
    "BatchSummary",
    "Block",
    "ChainIntegrityError",
    "ChainVerificationResult",
    "EventType",
    "LedgerError",
    "LedgerService",
    "SerializationError",
    "StorageError",
    "compute_block_hash",
    "parse_event_data",
    "verify_blocks",
]
