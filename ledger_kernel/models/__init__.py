"""ORM models for the ledger kernel."""

from ledger_kernel.models.commission import CommissionRecord
from ledger_kernel.models.reference import CommissionPercentage, PriceRecord
from ledger_kernel.models.stock_batch import StockBatch
from ledger_kernel.models.stock_movement import StockMovement
from ledger_kernel.models.sequence import SequenceCounter

__all__ = [
    "CommissionPercentage",
    "CommissionRecord",
    "PriceRecord",
    "SequenceCounter",
    "StockBatch",
    "StockMovement",
]
