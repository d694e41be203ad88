"""
Pure domain layer.

Status enums, request and read-side DTOs, reference-data contracts, the
commission calculator contract and the clock.  No dependencies on ORM,
database or I/O (other than SystemClock).
"""

from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.commission import (
    CommissionBreakdown,
    CommissionPolicy,
    CommissionShare,
)
from ledger_kernel.domain.dtos import (
    CommissionRecordInfo,
    StockBatchInfo,
    StockMovementInfo,
)
from ledger_kernel.domain.reference import (
    PERCENTAGE_KEYS,
    PercentageSource,
    PercentageTable,
    PriceQuote,
    PriceSource,
    StaticPercentageSource,
)
from ledger_kernel.domain.types import (
    CANCELABLE_BATCH_STATUSES,
    DEFAULT_BATCH_TYPE,
    BatchStatus,
    CommissionKind,
    MovementEvent,
    MovementRequest,
    MovementStatus,
    SellerKind,
    SellerRef,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "CommissionBreakdown",
    "CommissionPolicy",
    "CommissionShare",
    "CommissionRecordInfo",
    "StockBatchInfo",
    "StockMovementInfo",
    "PERCENTAGE_KEYS",
    "PercentageSource",
    "PercentageTable",
    "PriceQuote",
    "PriceSource",
    "StaticPercentageSource",
    "CANCELABLE_BATCH_STATUSES",
    "DEFAULT_BATCH_TYPE",
    "BatchStatus",
    "CommissionKind",
    "MovementEvent",
    "MovementRequest",
    "MovementStatus",
    "SellerKind",
    "SellerRef",
]
