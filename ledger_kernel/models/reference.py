"""
Reference data ORM models: metric prices and commission percentages.

Prices are append-only history; the latest row by ``effective_at`` wins.
Percentages are one row per key and may be edited between settlements;
already-settled movements keep the values they were computed with.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.reference import PriceQuote


class PriceRecord(TrackedBase):
    """A price list entry for one metric."""

    __tablename__ = "prices"

    __table_args__ = (
        Index("ix_prices_metric_effective", "metric_id", "effective_at"),
    )

    metric_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    price: Mapped[Decimal] = mapped_column(nullable=False)
    net_price: Mapped[Decimal] = mapped_column(nullable=False)
    salesman_price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    sub_agent_price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    agent_price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    effective_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )

    def to_quote(self) -> PriceQuote:
        return PriceQuote(
            metric_id=self.metric_id,
            price=self.price,
            net_price=self.net_price,
            salesman_price=self.salesman_price,
            sub_agent_price=self.sub_agent_price,
            agent_price=self.agent_price,
            effective_at=self.effective_at,
        )


class CommissionPercentage(TrackedBase):
    """One named commission percentage (supplier, shop, salesman, ...)."""

    __tablename__ = "commission_percentages"

    key: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    value: Mapped[Decimal] = mapped_column(nullable=False)
