"""
StockLedgerService -- create, settle and cancel individual stock movements.

Responsibility:
    The single implementation of the movement contracts.  Both the batch
    coordinator and the single-movement fast path go through this service,
    so there is exactly one place where prices are captured, running
    balances are chained and commissions are computed.

Architecture position:
    Kernel > Services -- imperative shell.  Flush-only; the caller owns
    the transaction.  The commission calculator is injected
    (``CommissionPolicy``); the kernel never imports the engines package.

Invariants enforced:
    - Price snapshot at creation: total_price = amount x price,
      total_net_price = amount x net_price, and only the tier matching the
      seller gets a non-zero tier price total.
    - Single-shot settlement: only ``created`` movements settle; anything
      else raises InvalidMovementStateError (never a silent skip).
    - Running balance chain: initial_amount = update_amount of the metric's
      most recently settled movement (or 0).  The metric's chain counter
      row is locked before the previous movement is read, and every settled
      movement takes the next chain position, so two settlements of one
      metric can never read the same predecessor.
    - Lock order: a transaction settling several metrics takes their chain
      locks up front in ascending metric id order (``lock_chains``).
    - stock_out never settles below zero (InsufficientStockError).
    - settle_movement runs inside a SAVEPOINT: a failed settlement leaves
      no trace in the caller's transaction.

Failure modes:
    - InvalidMovementRequestError: malformed request (before any write).
    - NoPriceAvailableError: metric has no price.
    - MovementNotFoundError / InvalidMovementStateError.
    - InsufficientStockError.
    - MissingPercentageError / InvalidPercentageTableError from the
      percentage source.

Audit relevance:
    Every created, settled and canceled movement is logged with its metric,
    amounts and acting user.  Settlement writes one CommissionRecord per
    recordable share.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.commission import CommissionBreakdown, CommissionPolicy
from ledger_kernel.domain.reference import PercentageSource, PriceSource
from ledger_kernel.domain.types import (
    CommissionKind,
    MovementEvent,
    MovementRequest,
    MovementStatus,
    SellerKind,
)
from ledger_kernel.exceptions import (
    InsufficientStockError,
    InvalidMovementStateError,
    MovementNotFoundError,
    NoPriceAvailableError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.commission import CommissionRecord
from ledger_kernel.models.stock_movement import StockMovement
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.reference_data_service import (
    SqlPercentageSource,
    SqlPriceSource,
)
from ledger_kernel.services.sequence_service import (
    SequenceService,
    stock_chain_sequence,
)

logger = get_logger("services.stock_ledger")

_ZERO = Decimal("0")

_TIER_COMMISSIONS = frozenset(
    {CommissionKind.SALESMAN, CommissionKind.SUB_AGENT, CommissionKind.AGENT}
)


class StockLedgerService(BaseService[StockMovement]):
    """
    Stock movement lifecycle: created -> settled | canceled.

    Contract:
        - ``create_movement()`` appends a ``created`` movement with a price
          snapshot.  It never touches other movements.
        - ``settle_movement()`` computes the running balance and commission
          shares and flips the movement to ``settled``.
        - ``cancel_movement()`` withdraws a ``created`` movement.
        - ``lock_chains()`` takes several metrics' chain locks in a fixed order.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT decide batch status; see ledger_batch.
    """

    def __init__(
        self,
        session: Session,
        calculator: CommissionPolicy,
        price_source: PriceSource | None = None,
        percentage_source: PercentageSource | None = None,
        clock: Clock | None = None,
        sequence_service: SequenceService | None = None,
    ):
        super().__init__(session)
        self._calculator = calculator
        self._price_source = price_source or SqlPriceSource(session)
        self._percentage_source = percentage_source or SqlPercentageSource(session)
        self._clock = clock or SystemClock()
        self._sequence = sequence_service or SequenceService(session)

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    def create_movement(
        self,
        request: MovementRequest,
        actor: str,
        batch_id: UUID | None = None,
        batch_line: int | None = None,
    ) -> StockMovement:
        """Append a ``created`` movement with the metric's latest price.

        Raises:
            InvalidMovementRequestError: If the request is malformed.
            NoPriceAvailableError: If the metric has no price.
        """
        request.validate(batch_line)

        quote = self._price_source.latest_price(request.metric_id)
        if quote is None:
            logger.warning(
                "movement_price_missing",
                extra={"metric_id": str(request.metric_id)},
            )
            raise NoPriceAvailableError(str(request.metric_id))

        amount = Decimal(request.amount)
        kind = request.seller.kind
        party_id = request.seller.party_id

        def _tier_total(tier: SellerKind) -> Decimal:
            return amount * quote.tier_price(tier) if kind == tier else _ZERO

        movement = StockMovement(
            batch_id=batch_id,
            batch_line=batch_line,
            metric_id=request.metric_id,
            stock_event=request.stock_event.value,
            amount=amount,
            salesman_id=party_id if kind == SellerKind.SALESMAN else None,
            sub_agent_id=party_id if kind == SellerKind.SUB_AGENT else None,
            agent_id=party_id if kind == SellerKind.AGENT else None,
            shop_id=request.shop_id,
            total_price=amount * quote.price,
            total_net_price=amount * quote.net_price,
            salesman_price=_tier_total(SellerKind.SALESMAN),
            sub_agent_price=_tier_total(SellerKind.SUB_AGENT),
            agent_price=_tier_total(SellerKind.AGENT),
            status=MovementStatus.CREATED.value,
            description=request.description,
            created_by=actor,
        )
        movement.created_at = self._clock.now()
        self.session.add(movement)
        self.session.flush()

        logger.info(
            "movement_created",
            extra={
                "movement_id": str(movement.id),
                "metric_id": str(request.metric_id),
                "stock_event": request.stock_event.value,
                "amount": amount,
                "seller_kind": kind.value,
                "total_net_price": movement.total_net_price,
                "batch_id": str(batch_id) if batch_id else None,
            },
        )
        return movement

    # -------------------------------------------------------------------------
    # Settle
    # -------------------------------------------------------------------------

    def settle_movement(
        self,
        movement_id: UUID,
        actor: str,
        percentages: PercentageSource | None = None,
    ) -> StockMovement:
        """Settle one ``created`` movement.

        ``percentages`` is read once for this movement; it defaults to the
        source given at construction.

        Raises:
            MovementNotFoundError: If the movement does not exist.
            InvalidMovementStateError: If the movement is not ``created``.
            InsufficientStockError: If a stock_out would go negative.
        """
        source = percentages or self._percentage_source
        with LogContext.bind(movement_id=str(movement_id)):
            savepoint = self.session.begin_nested()
            try:
                movement = self._settle(movement_id, actor, source)
            except Exception:
                savepoint.rollback()
                raise
            savepoint.commit()
        return movement

    def lock_chains(self, metric_ids: Iterable[UUID]) -> list[UUID]:
        """Lock the chain counters of several metrics in ascending id order.

        Every caller that settles more than one metric in a transaction
        takes its chain locks through here first, so two such transactions
        always wait on each other in the same order.
        """
        ordered = sorted(set(metric_ids), key=str)
        for metric_id in ordered:
            self._sequence.lock(stock_chain_sequence(metric_id))
        logger.debug(
            "metric_chains_locked",
            extra={"metric_ids": [str(m) for m in ordered]},
        )
        return ordered

    def _settle(
        self,
        movement_id: UUID,
        actor: str,
        source: PercentageSource,
    ) -> StockMovement:
        movement = self._lock_movement(movement_id)
        self._require_created(movement)

        metric_id = movement.metric_id
        # Locks the metric's chain for the rest of the transaction
        chain_seq = self._sequence.next_value(stock_chain_sequence(metric_id))

        previous = self._last_settled(metric_id)
        initial_amount = previous.update_amount if previous is not None else _ZERO
        event = MovementEvent(movement.stock_event)

        if event == MovementEvent.STOCK_IN:
            update_amount = initial_amount + movement.amount
        else:
            update_amount = initial_amount - movement.amount
            if update_amount < 0:
                logger.warning(
                    "movement_insufficient_stock",
                    extra={
                        "metric_id": str(metric_id),
                        "available": initial_amount,
                        "requested": movement.amount,
                    },
                )
                raise InsufficientStockError(
                    str(metric_id),
                    available=initial_amount,
                    requested=movement.amount,
                    movement_id=str(movement.id),
                )

        breakdown = self._calculator.calculate(
            total_net_price=movement.total_net_price,
            seller_kind=movement.seller_kind,
            percentages=source.all_percentages(),
            stock_event=event,
        )

        now = self._clock.now()
        movement.initial_amount = initial_amount
        movement.update_amount = update_amount
        movement.total_distributor_share = breakdown.total_distributor_share
        movement.total_sales_share = breakdown.total_sales_share
        movement.total_sub_agent_share = breakdown.total_sub_agent_share
        movement.total_agent_share = breakdown.total_agent_share
        movement.total_shop_share = breakdown.total_shop_share
        movement.chain_seq = chain_seq
        movement.status = MovementStatus.SETTLED.value
        movement.settled_by = actor
        movement.settled_at = now
        movement.updated_by = actor
        self.session.flush()

        records = self._write_commission_records(movement, breakdown, actor, now)

        logger.info(
            "movement_settled",
            extra={
                "movement_id": str(movement.id),
                "metric_id": str(metric_id),
                "stock_event": event.value,
                "initial_amount": initial_amount,
                "update_amount": update_amount,
                "chain_seq": chain_seq,
                "commission_records": len(records),
                "shop_overlap": breakdown.shop_overlap,
            },
        )
        return movement

    def _last_settled(self, metric_id: UUID) -> StockMovement | None:
        return self.session.execute(
            select(StockMovement)
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

    def _write_commission_records(
        self,
        movement: StockMovement,
        breakdown: CommissionBreakdown,
        actor: str,
        now: datetime,
    ) -> list[CommissionRecord]:
        records: list[CommissionRecord] = []
        for share in breakdown.recordable_shares():
            if share.kind in _TIER_COMMISSIONS:
                party_id = movement.seller_id
            elif share.kind == CommissionKind.SHOP:
                party_id = movement.shop_id
            else:
                party_id = None
            record = CommissionRecord(
                stock_id=movement.id,
                kind=share.kind.value,
                party_id=party_id,
                percentage=share.percentage,
                total_net_price=breakdown.total_net_price,
                amount=share.amount,
                created_by=actor,
            )
            record.created_at = now
            self.session.add(record)
            records.append(record)
        self.session.flush()
        return records

    # -------------------------------------------------------------------------
    # Cancel
    # -------------------------------------------------------------------------

    def cancel_movement(
        self,
        movement_id: UUID,
        actor: str,
        description: str | None = None,
    ) -> StockMovement:
        """Withdraw a ``created`` movement.

        Raises:
            MovementNotFoundError: If the movement does not exist.
            InvalidMovementStateError: If the movement is not ``created``.
        """
        movement = self._lock_movement(movement_id)
        self._require_created(movement)

        movement.status = MovementStatus.CANCELED.value
        movement.canceled_by = actor
        movement.updated_by = actor
        if description is not None:
            movement.description = description
        self.session.flush()

        logger.info(
            "movement_canceled",
            extra={
                "movement_id": str(movement.id),
                "metric_id": str(movement.metric_id),
                "actor": actor,
            },
        )
        return movement

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _lock_movement(self, movement_id: UUID) -> StockMovement:
        movement = self.session.execute(
            select(StockMovement)
            .where(StockMovement.id == movement_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if movement is None:
            raise MovementNotFoundError(str(movement_id))
        return movement

    @staticmethod
    def _require_created(movement: StockMovement) -> None:
        if movement.status != MovementStatus.CREATED.value:
            raise InvalidMovementStateError(
                str(movement.id),
                current_status=movement.status,
                required_status=MovementStatus.CREATED.value,
            )
