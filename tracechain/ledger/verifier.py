"""Hash chain verification.

Walks blocks in sequence order and reports the first block whose stored
hash does not match its recomputed hash, or whose hash is not the
successor's previous_hash. Never mutates or repairs anything.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .errors import ChainIntegrityError, SerializationError
from .hashing import GENESIS_PREVIOUS_HASH
from .models import Block


@dataclass
class ChainVerificationResult:
    """Outcome of a chain walk."""

    blocks_checked: int
    error: ChainIntegrityError | None = None

    @property
    def valid(self) -> bool:
        return self.error is None

    def __bool__(self) -> bool:
        return self.valid

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


def verify_blocks(blocks: Iterable[Block]) -> ChainVerificationResult:
    """Verify a sequence of blocks given in ascending sequence_id order."""
    checked = 0
    previous: Block | None = None
    previous_hash: str | None = None

    for block in blocks:
        if previous is None:
            if block.previous_hash != GENESIS_PREVIOUS_HASH:
                return _fail(checked, block, "first block does not start the chain")
            expected_index = 0
        else:
            if block.previous_hash != previous_hash:
                return _fail(
                    checked, previous,
                    "hash does not match successor's previous_hash",
                )
            expected_index = previous.index_number + 1

        if block.index_number != expected_index:
            return _fail(
                checked, block,
                f"index_number {block.index_number}, expected {expected_index}",
            )

        try:
            recomputed = block.compute_hash()
        except SerializationError as e:
            return _fail(checked, block, str(e))
        if recomputed != block.hash:
            return _fail(checked, block, "stored hash does not match recomputed hash")

        checked += 1
        previous = block
        previous_hash = recomputed

    return ChainVerificationResult(blocks_checked=checked)


def _fail(checked: int, block: Block, reason: str) -> ChainVerificationResult:
    sequence_id = block.sequence_id if block.sequence_id is not None else block.index_number
    return ChainVerificationResult(
        blocks_checked=checked,
        error=ChainIntegrityError(sequence_id, reason),
    )


__all__ = ["ChainVerificationResult", "verify_blocks"]
