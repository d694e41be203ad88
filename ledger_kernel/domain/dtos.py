"""
Read-side DTOs for stock movements, batches and commission records.

Frozen snapshots returned by selectors and services so that callers never
hold live ORM rows outside the session that loaded them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from ledger_kernel.domain.types import (
    BatchStatus,
    CommissionKind,
    MovementEvent,
    MovementStatus,
    SellerKind,
)


@dataclass(frozen=True)
class StockMovementInfo:
    """Immutable snapshot of a stock movement."""

    movement_id: UUID
    metric_id: UUID
    stock_event: MovementEvent
    amount: Decimal
    status: MovementStatus
    seller_kind: SellerKind
    seller_id: UUID | None
    shop_id: UUID | None
    batch_id: UUID | None
    # Price snapshot (captured at creation)
    total_price: Decimal
    total_net_price: Decimal
    salesman_price: Decimal
    sub_agent_price: Decimal
    agent_price: Decimal
    # Settlement (None until settled)
    initial_amount: Decimal | None = None
    update_amount: Decimal | None = None
    total_distributor_share: Decimal | None = None
    total_sales_share: Decimal | None = None
    total_sub_agent_share: Decimal | None = None
    total_agent_share: Decimal | None = None
    total_shop_share: Decimal | None = None
    chain_seq: int | None = None
    # Audit
    created_by: str | None = None
    settled_by: str | None = None
    canceled_by: str | None = None
    created_at: datetime | None = None
    settled_at: datetime | None = None
    description: str | None = None

    @property
    def is_settled(self) -> bool:
        return self.status == MovementStatus.SETTLED


@dataclass(frozen=True)
class StockBatchInfo:
    """Immutable snapshot of a stock batch."""

    batch_id: UUID
    batch_type: str
    status: BatchStatus
    item_count: int
    success_count: int
    failure_count: int
    error_message: str | None
    created_by: str
    created_at: datetime | None = None
    settled_by: str | None = None
    settled_at: datetime | None = None
    canceled_by: str | None = None
    canceled_at: datetime | None = None


@dataclass(frozen=True)
class CommissionRecordInfo:
    """Immutable snapshot of one commission record."""

    record_id: UUID
    stock_id: UUID
    kind: CommissionKind
    party_id: UUID | None
    percentage: Decimal
    total_net_price: Decimal
    amount: Decimal
    created_by: str
    created_at: datetime | None = None
