"""
CommissionRecord ORM model -- the append-only commission ledger.

One tagged table replaces per-tier tables: ``kind`` says which tier the
share belongs to (salesman, sub_agent, agent, distributor or shop).

Invariants enforced:
    - UNIQUE (stock_id, kind): at most one record per tier per settled
      movement.
    - Records are never updated or deleted (db/immutability.py).
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.dtos import CommissionRecordInfo
from ledger_kernel.domain.types import CommissionKind


class CommissionRecord(TrackedBase):
    """One computed commission share for one settled movement."""

    __tablename__ = "commission_records"

    __table_args__ = (
        UniqueConstraint("stock_id", "kind", name="uq_commission_records_stock_kind"),
        Index("ix_commission_records_kind_party", "kind", "party_id"),
        Index("ix_commission_records_created_at", "created_at"),
    )

    stock_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stock_movements.id"), nullable=False,
    )
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    # Seller id for tier rows, shop id for shop rows, None for distributor
    party_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    percentage: Mapped[Decimal] = mapped_column(nullable=False)
    total_net_price: Mapped[Decimal] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    def to_dto(self) -> CommissionRecordInfo:
        return CommissionRecordInfo(
            record_id=self.id,
            stock_id=self.stock_id,
            kind=CommissionKind(self.kind),
            party_id=self.party_id,
            percentage=self.percentage,
            total_net_price=self.total_net_price,
            amount=self.amount,
            created_by=self.created_by,
            created_at=self.created_at,
        )
