"""
Commission breakdown DTOs and the calculator contract.

The kernel's stock ledger consumes a ``CommissionPolicy``; the concrete
calculator lives in ``ledger_engines.commission``.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, runtime_checkable

from ledger_kernel.domain.reference import PercentageTable
from ledger_kernel.domain.types import CommissionKind, MovementEvent, SellerKind


@dataclass(frozen=True)
class CommissionShare:
    """One tier's cut of a movement's net price."""

    kind: CommissionKind
    percentage: Decimal
    amount: Decimal


@dataclass(frozen=True)
class CommissionBreakdown:
    """Result of one commission calculation."""

    total_net_price: Decimal
    seller_kind: SellerKind
    stock_event: MovementEvent
    supplier_percentage: Decimal
    distributor: CommissionShare
    tier: CommissionShare | None = None
    shop: CommissionShare | None = None
    # Agent sale: shop share paid although shop% was not ceded by the distributor
    shop_overlap: bool = False

    def _tier_amount(self, kind: CommissionKind) -> Decimal | None:
        if self.tier is not None and self.tier.kind == kind:
            return self.tier.amount
        return None

    @property
    def total_distributor_share(self) -> Decimal:
        return self.distributor.amount

    @property
    def total_sales_share(self) -> Decimal | None:
        return self._tier_amount(CommissionKind.SALESMAN)

    @property
    def total_sub_agent_share(self) -> Decimal | None:
        return self._tier_amount(CommissionKind.SUB_AGENT)

    @property
    def total_agent_share(self) -> Decimal | None:
        return self._tier_amount(CommissionKind.AGENT)

    @property
    def total_shop_share(self) -> Decimal | None:
        return self.shop.amount if self.shop is not None else None

    def allocated_percentage(self) -> Decimal:
        """supplier + distributor + tier + shop.

        Exactly 100 for a non-agent stock_out; stock_in leaves the shop
        percentage unallocated and an agent stock_out overshoots by it.
        """
        total = self.supplier_percentage + self.distributor.percentage
        if self.tier is not None:
            total += self.tier.percentage
        if self.shop is not None:
            total += self.shop.percentage
        return total

    def recordable_shares(self) -> tuple[CommissionShare, ...]:
        """Shares that get a commission record.

        The tier share is always recorded when present; distributor and
        shop shares only when they are positive.
        """
        shares: list[CommissionShare] = []
        if self.tier is not None:
            shares.append(self.tier)
        if self.distributor.amount > 0:
            shares.append(self.distributor)
        if self.shop is not None and self.shop.amount != 0:
            shares.append(self.shop)
        return tuple(shares)


@runtime_checkable
class CommissionPolicy(Protocol):
    """Computes a CommissionBreakdown; implemented by CommissionCalculator."""

    def calculate(
        self,
        *,
        total_net_price: Decimal,
        seller_kind: SellerKind,
        percentages: PercentageTable,
        stock_event: MovementEvent,
    ) -> CommissionBreakdown: ...
