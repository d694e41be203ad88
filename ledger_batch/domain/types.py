"""
ledger_batch.domain.types -- Pure frozen dataclasses for batch results.

ZERO I/O.  Returned by BatchCoordinator; callers never receive ORM rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from ledger_kernel.domain.dtos import StockBatchInfo, StockMovementInfo
from ledger_kernel.domain.types import BatchStatus


@dataclass(frozen=True)
class BatchCreationResult:
    """Outcome of a successful ``create_batch``."""

    batch: StockBatchInfo
    movements: tuple[StockMovementInfo, ...] = field(default_factory=tuple)

    @property
    def batch_id(self) -> UUID:
        return self.batch.batch_id


@dataclass(frozen=True)
class BatchSettlementResult:
    """Outcome of a successful ``settle_batch``.

    ``affected_count`` is 0 when the batch had no ``created`` movements
    left (re-invocation after a prior full settlement).
    """

    batch_id: UUID
    status: BatchStatus
    affected_count: int
    movements: tuple[StockMovementInfo, ...] = field(default_factory=tuple)
    duration_ms: int = 0


@dataclass(frozen=True)
class BatchCancellationResult:
    """Outcome of a successful ``cancel_batch``."""

    batch_id: UUID
    status: BatchStatus
    affected_count: int
