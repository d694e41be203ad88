"""Services for the ledger kernel (write side)."""

from ledger_kernel.services.direct_settlement_service import DirectSettlementService
from ledger_kernel.services.reference_data_service import (
    ReferenceDataService,
    SqlPercentageSource,
    SqlPriceSource,
)
from ledger_kernel.services.sequence_service import SequenceService, stock_chain_sequence
from ledger_kernel.services.stock_ledger_service import StockLedgerService

__all__ = [
    "DirectSettlementService",
    "ReferenceDataService",
    "SequenceService",
    "SqlPercentageSource",
    "SqlPriceSource",
    "StockLedgerService",
    "stock_chain_sequence",
]
