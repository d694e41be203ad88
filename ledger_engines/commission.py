"""
Module: ledger_engines.commission
Responsibility:
    Split a settled movement's net price across the commission hierarchy:
    distributor, the selling tier (salesman, sub-agent or agent) and, for
    sales, the shop.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel.domain and ledger_kernel.logging_config.

Rules:
    - distributor % = 100 - supplier - shop - tier
        * seller = agent: 100 - supplier - agent (shop is not subtracted)
        * no seller:      100 - supplier - shop
    - distributor amount = net * distributor% / 100
    - tier amount = net * tier% / 100, on the matching tier only
    - shop amount = net * shop% / 100, only for stock_out

    The agent rule combined with the stock_out shop share means an agent
    sale pays out supplier + agent + distributor + shop = 100 + shop.  This
    is kept as-is and surfaced via ``CommissionBreakdown.shop_overlap`` and
    an ``agent_shop_share_overlap`` warning.

Invariants enforced:
    - Decimal-only arithmetic.
    - Determinism: identical inputs always produce identical outputs.
    - Percentages come from the caller on every call; nothing is cached.

Failure modes:
    - ValueError on a negative net price.

Usage:
    calculator = CommissionCalculator()
    breakdown = calculator.calculate(
        total_net_price=Decimal("1000"),
        seller_kind=SellerKind.SALESMAN,
        percentages=table,
        stock_event=MovementEvent.STOCK_OUT,
    )
"""

from __future__ import annotations

from decimal import Decimal

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.commission import CommissionBreakdown, CommissionShare
from ledger_kernel.domain.reference import HUNDRED, PercentageTable
from ledger_kernel.domain.types import CommissionKind, MovementEvent, SellerKind
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.commission")

_TIER_KINDS: dict[SellerKind, CommissionKind] = {
    SellerKind.SALESMAN: CommissionKind.SALESMAN,
    SellerKind.SUB_AGENT: CommissionKind.SUB_AGENT,
    SellerKind.AGENT: CommissionKind.AGENT,
}


class CommissionCalculator:
    """
    Compute per-tier commission shares for a settled movement.

    Contract:
        Pure function of (total_net_price, seller_kind, percentages,
        stock_event).  No I/O, no database access.
    Non-goals:
        - Does not decide which records to persist beyond
          ``recordable_shares()``; the stock ledger writes them.
        - Does not look up percentages; the caller passes a fresh table.
    """

    @traced_engine(
        "commission", "1.0",
        fingerprint_fields=("total_net_price", "seller_kind", "percentages", "stock_event"),
    )
    def calculate(
        self,
        *,
        total_net_price: Decimal,
        seller_kind: SellerKind,
        percentages: PercentageTable,
        stock_event: MovementEvent,
    ) -> CommissionBreakdown:
        if total_net_price < 0:
            raise ValueError(f"Net price must be non-negative, got {total_net_price}")

        tier_pct = percentages.tier(seller_kind)

        if seller_kind == SellerKind.AGENT:
            distributor_pct = HUNDRED - percentages.supplier - percentages.agent
        else:
            distributor_pct = HUNDRED - percentages.supplier - percentages.shop
            if tier_pct is not None:
                distributor_pct -= tier_pct

        distributor = CommissionShare(
            kind=CommissionKind.DISTRIBUTOR,
            percentage=distributor_pct,
            amount=_share(total_net_price, distributor_pct),
        )

        tier = None
        if tier_pct is not None:
            tier = CommissionShare(
                kind=_TIER_KINDS[seller_kind],
                percentage=tier_pct,
                amount=_share(total_net_price, tier_pct),
            )

        shop = None
        if stock_event == MovementEvent.STOCK_OUT:
            shop = CommissionShare(
                kind=CommissionKind.SHOP,
                percentage=percentages.shop,
                amount=_share(total_net_price, percentages.shop),
            )

        shop_overlap = (
            seller_kind == SellerKind.AGENT
            and shop is not None
            and percentages.shop > 0
        )
        if shop_overlap:
            logger.warning(
                "agent_shop_share_overlap",
                extra={
                    "total_net_price": total_net_price,
                    "shop_percentage": percentages.shop,
                    "allocated_percentage": (
                        percentages.supplier + distributor_pct
                        + percentages.agent + percentages.shop
                    ),
                },
            )

        return CommissionBreakdown(
            total_net_price=total_net_price,
            seller_kind=seller_kind,
            stock_event=stock_event,
            supplier_percentage=percentages.supplier,
            distributor=distributor,
            tier=tier,
            shop=shop,
            shop_overlap=shop_overlap,
        )


def _share(total_net_price: Decimal, percentage: Decimal) -> Decimal:
    return total_net_price * percentage / HUNDRED
