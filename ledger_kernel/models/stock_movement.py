"""
StockMovement ORM model -- one row of the stock ledger.

Contract:
    A movement is created with a price snapshot and status ``created``.
    Settlement fills in the running balance, the per-tier share totals and
    the chain position, then flips the status to ``settled``.

Invariants enforced:
    - ``update_amount``, ``initial_amount`` and ``chain_seq`` are populated
      iff the movement is settled (enforced by StockLedgerService; settled
      rows are frozen by db/immutability.py).
    - UNIQUE (metric_id, chain_seq): two settled movements can never claim
      the same position in a metric's running-balance chain.
    - At most one of salesman_id / sub_agent_id / agent_id is set.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.dtos import StockMovementInfo
from ledger_kernel.domain.types import MovementEvent, MovementStatus, SellerKind


class StockMovement(TrackedBase):
    """Persistent stock movement."""

    __tablename__ = "stock_movements"

    __table_args__ = (
        UniqueConstraint("metric_id", "chain_seq", name="uq_stock_movements_metric_chain"),
        Index("ix_stock_movements_metric_status", "metric_id", "status"),
        Index("ix_stock_movements_batch", "batch_id"),
        Index("ix_stock_movements_created_at", "created_at"),
    )

    batch_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("stock_batches.id"), nullable=True,
    )
    # Position of the request within its batch (settlement order)
    batch_line: Mapped[int | None] = mapped_column(Integer, nullable=True)

    metric_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    stock_event: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    # Seller / shop references
    salesman_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    sub_agent_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    agent_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    shop_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Price snapshot
    total_price: Mapped[Decimal] = mapped_column(nullable=False)
    total_net_price: Mapped[Decimal] = mapped_column(nullable=False)
    salesman_price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    sub_agent_price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    agent_price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    # Settlement
    initial_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    update_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_distributor_share: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_sales_share: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_sub_agent_share: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_agent_share: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_shop_share: Mapped[Decimal | None] = mapped_column(nullable=True)
    chain_seq: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MovementStatus.CREATED.value,
    )

    settled_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    settled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    canceled_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    removed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    batch: Mapped["StockBatch"] = relationship(  # noqa: F821
        "StockBatch", back_populates="movements",
    )

    @property
    def seller_kind(self) -> SellerKind:
        if self.salesman_id is not None:
            return SellerKind.SALESMAN
        if self.sub_agent_id is not None:
            return SellerKind.SUB_AGENT
        if self.agent_id is not None:
            return SellerKind.AGENT
        return SellerKind.NONE

    @property
    def seller_id(self) -> UUID | None:
        return self.salesman_id or self.sub_agent_id or self.agent_id

    def to_dto(self) -> StockMovementInfo:
        return StockMovementInfo(
            movement_id=self.id,
            metric_id=self.metric_id,
            stock_event=MovementEvent(self.stock_event),
            amount=self.amount,
            status=MovementStatus(self.status),
            seller_kind=self.seller_kind,
            seller_id=self.seller_id,
            shop_id=self.shop_id,
            batch_id=self.batch_id,
            total_price=self.total_price,
            total_net_price=self.total_net_price,
            salesman_price=self.salesman_price,
            sub_agent_price=self.sub_agent_price,
            agent_price=self.agent_price,
            initial_amount=self.initial_amount,
            update_amount=self.update_amount,
            total_distributor_share=self.total_distributor_share,
            total_sales_share=self.total_sales_share,
            total_sub_agent_share=self.total_sub_agent_share,
            total_agent_share=self.total_agent_share,
            total_shop_share=self.total_shop_share,
            chain_seq=self.chain_seq,
            created_by=self.created_by,
            settled_by=self.settled_by,
            canceled_by=self.canceled_by,
            created_at=self.created_at,
            settled_at=self.settled_at,
            description=self.description,
        )

    def __repr__(self) -> str:
        return (
            f"<StockMovement {self.id} {self.stock_event} {self.amount} "
            f"metric={self.metric_id} {self.status}>"
        )
