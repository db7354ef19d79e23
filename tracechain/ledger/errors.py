"""Errors raised by the ledger service."""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for ledger failures."""


class StorageError(LedgerError):
    """A durable read or write failed. The ledger is left unchanged."""


class SerializationError(LedgerError):
    """Event data could not be canonically serialized for hashing."""


class ChainIntegrityError(LedgerError):
    """First block at which the hash chain does not verify.

    Reporting only: the ledger is never repaired.
    """

    def __init__(self, sequence_id: int, reason: str = ""):
        self.sequence_id = sequence_id
        self.reason = reason
        message = f"chain integrity broken at sequence_id={sequence_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


__all__ = [
    "ChainIntegrityError",
    "LedgerError",
    "SerializationError",
    "StorageError",
]
