"""
ledger_batch -- Stock batch lifecycle (create / settle / cancel).

Groups stock movements into batches that are created atomically and
settled atomically, with the batch row tracking status, counts and the
error message of the last failure.

Architecture:
    ledger_batch/ is a top-level package.  Nothing in ledger_kernel/ or
    ledger_engines/ imports from ledger_batch.
"""

from ledger_batch.domain.types import (
    BatchCancellationResult,
    BatchCreationResult,
    BatchSettlementResult,
)
from ledger_batch.services.coordinator import BatchCoordinator

__all__ = [
    "BatchCancellationResult",
    "BatchCoordinator",
    "BatchCreationResult",
    "BatchSettlementResult",
]
