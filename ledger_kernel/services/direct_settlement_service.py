"""
DirectSettlementService -- single-movement fast path (no batch).

Responsibility:
    Immediate one-off transactions: record a movement, record and settle it
    in one call, settle an existing movement by id, or cancel it.  Each call
    is one transaction.

Architecture position:
    Kernel > Services -- orchestrator.  Unlike the flush-only services it
    owns commit/rollback (when ``auto_commit=True``).  All calculation is
    delegated to StockLedgerService and the injected CommissionPolicy, the
    same contracts the batch coordinator uses.

Invariants enforced:
    - Atomicity: a failed create-and-settle leaves neither the movement nor
      any commission record behind.
    - No divergent calculation: movements are created, settled and
      canceled only through StockLedgerService.
    - Batch movements are left to the batch coordinator: settle() and
      cancel() raise MovementOwnedByBatchError for them.

Failure modes:
    Everything StockLedgerService raises, re-raised after rollback.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.commission import CommissionPolicy
from ledger_kernel.domain.dtos import StockMovementInfo
from ledger_kernel.domain.reference import PercentageSource, PriceSource
from ledger_kernel.domain.types import MovementRequest
from ledger_kernel.exceptions import MovementOwnedByBatchError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.stock_movement import StockMovement
from ledger_kernel.services.stock_ledger_service import StockLedgerService

logger = get_logger("services.direct_settlement")

T = TypeVar("T")


class DirectSettlementService:
    """
    One transaction per call over StockLedgerService.

    Contract:
        - ``record_movement()``: create a ``created`` movement.
        - ``record_and_settle()``: create then settle, atomically.
        - ``settle()``: settle an existing unbatched ``created`` movement.
        - ``cancel()``: cancel an existing unbatched ``created`` movement.

    Guarantees:
        - Commit on success, rollback and re-raise on failure
          (when auto_commit=True).
        - Returns frozen StockMovementInfo snapshots.
    """

    def __init__(
        self,
        session: Session,
        calculator: CommissionPolicy,
        price_source: PriceSource | None = None,
        percentage_source: PercentageSource | None = None,
        clock: Clock | None = None,
        auto_commit: bool = True,
        ledger: StockLedgerService | None = None,
    ):
        self._session = session
        self._auto_commit = auto_commit
        self._ledger = ledger or StockLedgerService(
            session,
            calculator=calculator,
            price_source=price_source,
            percentage_source=percentage_source,
            clock=clock,
        )

    def record_movement(self, request: MovementRequest, actor: str) -> StockMovementInfo:
        return self._run(
            "record_movement", actor,
            lambda: self._ledger.create_movement(request, actor).to_dto(),
        )

    def record_and_settle(
        self,
        request: MovementRequest,
        actor: str,
    ) -> StockMovementInfo:
        def _op() -> StockMovementInfo:
            movement = self._ledger.create_movement(request, actor)
            return self._ledger.settle_movement(movement.id, actor).to_dto()

        return self._run("record_and_settle", actor, _op)

    def settle(self, movement_id: UUID, actor: str) -> StockMovementInfo:
        def _op() -> StockMovementInfo:
            self._require_unbatched(movement_id)
            return self._ledger.settle_movement(movement_id, actor).to_dto()

        return self._run("settle", actor, _op)

    def cancel(
        self,
        movement_id: UUID,
        actor: str,
        description: str | None = None,
    ) -> StockMovementInfo:
        def _op() -> StockMovementInfo:
            self._require_unbatched(movement_id)
            return self._ledger.cancel_movement(movement_id, actor, description).to_dto()

        return self._run("cancel", actor, _op)

    def _require_unbatched(self, movement_id: UUID) -> None:
        # batch_id is written once at creation
        movement = self._session.get(StockMovement, movement_id)
        if movement is not None and movement.batch_id is not None:
            raise MovementOwnedByBatchError(str(movement_id), str(movement.batch_id))

    def _run(self, operation: str, actor: str, op: Callable[[], T]) -> T:
        with LogContext.bind(correlation_id=str(uuid4()), actor=actor):
            t0 = time.monotonic()
            try:
                result = op()
                if self._auto_commit:
                    self._session.commit()
            except Exception:
                if self._auto_commit:
                    self._session.rollback()
                logger.error(
                    "direct_settlement_failed",
                    extra={
                        "operation": operation,
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                    exc_info=True,
                )
                raise

            logger.info(
                "direct_settlement_completed",
                extra={
                    "operation": operation,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return result
