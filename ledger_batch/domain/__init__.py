"""Batch domain types."""

from ledger_batch.domain.types import (
    BatchCancellationResult,
    BatchCreationResult,
    BatchSettlementResult,
)
from ledger_kernel.domain.dtos import StockBatchInfo

__all__ = [
    "BatchCancellationResult",
    "BatchCreationResult",
    "BatchSettlementResult",
    "StockBatchInfo",
]
