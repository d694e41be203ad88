"""Selectors for the ledger kernel (read side)."""

from ledger_kernel.selectors.batch_selector import BatchSelector
from ledger_kernel.selectors.commission_selector import CommissionSelector
from ledger_kernel.selectors.movement_selector import (
    MetricStockTotals,
    MovementSelector,
    MovementSummary,
)

__all__ = [
    "BatchSelector",
    "CommissionSelector",
    "MetricStockTotals",
    "MovementSelector",
    "MovementSummary",
]
