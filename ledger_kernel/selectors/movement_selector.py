"""
Module: ledger_kernel.selectors.movement_selector
Responsibility: Read-only query access to stock movements: filtered
    listings, on-hand quantity, the settlement chain of a metric, and
    aggregate summaries for reporting.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only: No mutations performed on any queried data.
    - On-hand quantity is the ``update_amount`` of the metric's last
      settled movement in chain order (the same predecessor settlement
      reads), never a recomputed sum.
    - Aggregates treat an empty result as zero, never None.

Failure modes:
    - Returns None / empty list / zero totals when nothing matches (never
      raises on absence of data).

Audit relevance:
    ``chain()`` exposes the full running-balance chain of a metric so that
    each link (initial_amount == predecessor's update_amount) can be
    verified independently.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.dtos import StockMovementInfo
from ledger_kernel.domain.types import MovementEvent, MovementStatus
from ledger_kernel.models.stock_movement import StockMovement
from ledger_kernel.selectors.base import BaseSelector

_ZERO = Decimal("0")


@dataclass(frozen=True)
class MovementSummary:
    """Sums over a set of movements."""

    movement_count: int
    total_amount: Decimal
    total_net_price: Decimal
    total_salesman_price: Decimal
    total_sub_agent_price: Decimal
    total_agent_price: Decimal
    total_distributor_share: Decimal
    total_sales_share: Decimal
    total_sub_agent_share: Decimal
    total_agent_share: Decimal
    total_shop_share: Decimal


@dataclass(frozen=True)
class MetricStockTotals:
    """Per-metric stock in/out totals and the current on-hand quantity."""

    metric_id: UUID
    total_stock_in: Decimal
    total_stock_out: Decimal
    on_hand: Decimal
    last_movement_at: datetime | None


class MovementSelector(BaseSelector[StockMovement]):
    """
    Selector for stock movement queries.

    Guarantees:
        - Listings ordered by created_at, then id (oldest first).
        - ``chain()`` ordered by chain position.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def get(self, movement_id: UUID) -> StockMovementInfo | None:
        movement = self.session.get(StockMovement, movement_id)
        return movement.to_dto() if movement is not None else None

    def list_movements(
        self,
        status: MovementStatus | None = None,
        metric_id: UUID | None = None,
        batch_id: UUID | None = None,
        stock_event: MovementEvent | None = None,
        created_by: str | None = None,
        salesman_id: UUID | None = None,
        sub_agent_id: UUID | None = None,
        agent_id: UUID | None = None,
        shop_id: UUID | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> list[StockMovementInfo]:
        """
        List movements matching every given filter.

        Date bounds apply to created_at and are inclusive.
        """
        query = select(StockMovement).order_by(
            StockMovement.created_at, StockMovement.id,
        )
        if status is not None:
            query = query.where(StockMovement.status == MovementStatus(status).value)
        if stock_event is not None:
            query = query.where(
                StockMovement.stock_event == MovementEvent(stock_event).value
            )
        for column, value in (
            (StockMovement.metric_id, metric_id),
            (StockMovement.batch_id, batch_id),
            (StockMovement.created_by, created_by),
        ):
            if value is not None:
                query = query.where(column == value)
        query = self._apply_party_filters(
            query, salesman_id, sub_agent_id, agent_id, shop_id,
        )
        query = self._apply_date_range(query, date_from, date_to)

        return [m.to_dto() for m in self.session.execute(query).scalars()]

    def on_hand(self, metric_id: UUID) -> Decimal:
        """Current quantity of a metric; 0 if nothing has settled yet."""
        value = self.session.execute(
            select(StockMovement.update_amount)
            .where(
                StockMovement.metric_id == metric_id,
                StockMovement.status == MovementStatus.SETTLED.value,
            )
            .order_by(
                StockMovement.chain_seq.desc().nulls_last(),
                StockMovement.settled_at.desc().nulls_last(),
                StockMovement.updated_at.desc(),
                StockMovement.id.desc(),
            )
            .limit(1)
        ).scalar_one_or_none()
        return value if value is not None else _ZERO

    def chain(self, metric_id: UUID) -> list[StockMovementInfo]:
        """Settled movements of a metric in running-balance order."""
        movements = self.session.execute(
            select(StockMovement)
            .where(
                StockMovement.metric_id == metric_id,
                StockMovement.status == MovementStatus.SETTLED.value,
            )
            .order_by(StockMovement.chain_seq, StockMovement.id)
        ).scalars()
        return [m.to_dto() for m in movements]

    def summarize(
        self,
        date_from: datetime,
        date_to: datetime,
        salesman_id: UUID | None = None,
        sub_agent_id: UUID | None = None,
        agent_id: UUID | None = None,
        shop_id: UUID | None = None,
        status: MovementStatus | None = None,
    ) -> MovementSummary:
        """
        Sum amounts, prices and commission shares over movements created
        in ``[date_from, date_to]``.

        Unsettled movements contribute zero to the share totals.
        """
        def _sum(column):
            return func.coalesce(func.sum(column), _ZERO)

        query = select(
            func.count(StockMovement.id),
            _sum(StockMovement.amount),
            _sum(StockMovement.total_net_price),
            _sum(StockMovement.salesman_price),
            _sum(StockMovement.sub_agent_price),
            _sum(StockMovement.agent_price),
            _sum(StockMovement.total_distributor_share),
            _sum(StockMovement.total_sales_share),
            _sum(StockMovement.total_sub_agent_share),
            _sum(StockMovement.total_agent_share),
            _sum(StockMovement.total_shop_share),
        )
        if status is not None:
            query = query.where(StockMovement.status == MovementStatus(status).value)
        query = self._apply_party_filters(
            query, salesman_id, sub_agent_id, agent_id, shop_id,
        )
        query = self._apply_date_range(query, date_from, date_to)

        row = self.session.execute(query).one()
        count, *totals = row
        return MovementSummary(count, *(Decimal(total) for total in totals))

    def metric_totals(
        self,
        status: MovementStatus = MovementStatus.SETTLED,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        salesman_id: UUID | None = None,
        sub_agent_id: UUID | None = None,
        agent_id: UUID | None = None,
    ) -> list[MetricStockTotals]:
        """
        Stock table: per-metric stock_in and stock_out totals over the
        matching movements, with each metric's current on-hand quantity.
        """
        stock_in = case(
            (StockMovement.stock_event == MovementEvent.STOCK_IN.value, StockMovement.amount),
            else_=_ZERO,
        )
        stock_out = case(
            (StockMovement.stock_event == MovementEvent.STOCK_OUT.value, StockMovement.amount),
            else_=_ZERO,
        )
        query = (
            select(
                StockMovement.metric_id,
                func.coalesce(func.sum(stock_in), _ZERO),
                func.coalesce(func.sum(stock_out), _ZERO),
                func.max(StockMovement.created_at),
            )
            .where(StockMovement.status == MovementStatus(status).value)
            .group_by(StockMovement.metric_id)
            .order_by(func.max(StockMovement.created_at).desc())
        )
        query = self._apply_party_filters(query, salesman_id, sub_agent_id, agent_id, None)
        query = self._apply_date_range(query, date_from, date_to)

        return [
            MetricStockTotals(
                metric_id=metric_id,
                total_stock_in=Decimal(total_in),
                total_stock_out=Decimal(total_out),
                on_hand=self.on_hand(metric_id),
                last_movement_at=last_at,
            )
            for metric_id, total_in, total_out, last_at in self.session.execute(query)
        ]

    @staticmethod
    def _apply_party_filters(query, salesman_id, sub_agent_id, agent_id, shop_id):
        for column, value in (
            (StockMovement.salesman_id, salesman_id),
            (StockMovement.sub_agent_id, sub_agent_id),
            (StockMovement.agent_id, agent_id),
            (StockMovement.shop_id, shop_id),
        ):
            if value is not None:
                query = query.where(column == value)
        return query

    @staticmethod
    def _apply_date_range(query, date_from, date_to):
        if date_from is not None:
            query = query.where(StockMovement.created_at >= date_from)
        if date_to is not None:
            query = query.where(StockMovement.created_at <= date_to)
        return query
