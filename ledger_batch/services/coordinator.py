"""
BatchCoordinator -- atomic batch creation, settlement and cancellation.

Contract:
    Orchestrates the stock batch lifecycle:
    processing -> completed -> settled | canceled, with ``failed`` reachable
    from creation and settlement.  Owns every commit/rollback; movement-level
    work is delegated to StockLedgerService, the same service the
    single-movement fast path uses.

Architecture: ledger_batch/services.  Imports from ledger_batch.domain,
    kernel services, models and the default engines calculator.

Invariants enforced:
    - All-or-nothing creation: one failing request leaves zero movements.
      The batch row itself is committed first so the failure is recorded.
    - All-or-nothing settlement: movements settle sequentially in batch
      order; the first failure rolls the whole settlement back and every
      movement stays ``created``.
    - ``failed`` is written after rollback in its own transaction and
      never overwrites a ``settled`` batch.
    - Settlement and cancellation of one batch are mutually exclusive
      (SELECT ... FOR UPDATE on the batch row).
    - Lock order: batch row, then every metric chain counter of the batch
      in ascending metric id order, before the first movement settles.
      Two batches sharing metrics queue instead of deadlocking.
    - One percentage table per settlement: percentages are read once and
      applied to every movement of the batch.
    - All timestamps from the injected Clock.

Failure modes:
    - EmptyBatchError / InvalidMovementRequestError: rejected before any
      write.
    - BatchNotFoundError, BatchWrongStateError, BatchNotCancelableError:
      no mutation.
    - Anything raised while creating or settling movements is re-raised
      after the batch has been marked ``failed``.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ledger_batch.domain.types import (
    BatchCancellationResult,
    BatchCreationResult,
    BatchSettlementResult,
)
from ledger_engines.commission import CommissionCalculator
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.commission import CommissionPolicy
from ledger_kernel.domain.dtos import StockBatchInfo
from ledger_kernel.domain.reference import (
    PercentageSource,
    PriceSource,
    StaticPercentageSource,
)
from ledger_kernel.domain.types import (
    CANCELABLE_BATCH_STATUSES,
    DEFAULT_BATCH_TYPE,
    BatchStatus,
    MovementRequest,
    MovementStatus,
)
from ledger_kernel.exceptions import (
    BatchNotCancelableError,
    BatchNotFoundError,
    BatchWrongStateError,
    EmptyBatchError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.stock_batch import StockBatch
from ledger_kernel.models.stock_movement import StockMovement
from ledger_kernel.services.reference_data_service import SqlPercentageSource
from ledger_kernel.services.stock_ledger_service import StockLedgerService

logger = get_logger("batch.coordinator")


class BatchCoordinator:
    """Stock batch lifecycle orchestrator.

    Contract:
        - ``create_batch()`` records every request as a ``created`` movement
          or none of them.
        - ``settle_batch()`` settles every ``created`` movement of a
          ``completed`` batch or none of them.
        - ``cancel_batch()`` withdraws a ``processing``/``completed`` batch.
        - ``get_batch()`` returns a snapshot.

    Non-goals:
        - Does NOT compute prices, balances or commissions itself.
    """

    def __init__(
        self,
        session: Session,
        calculator: CommissionPolicy | None = None,
        price_source: PriceSource | None = None,
        percentage_source: PercentageSource | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._percentage_source = percentage_source or SqlPercentageSource(session)
        self._ledger = StockLedgerService(
            session,
            calculator=calculator or CommissionCalculator(),
            price_source=price_source,
            percentage_source=self._percentage_source,
            clock=self._clock,
        )

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    def create_batch(
        self,
        requests: Sequence[MovementRequest],
        actor: str,
        batch_type: str = DEFAULT_BATCH_TYPE,
    ) -> BatchCreationResult:
        """Create a batch and one ``created`` movement per request.

        Raises:
            EmptyBatchError: If ``requests`` is empty.
            InvalidMovementRequestError: If any request is malformed.
            NoPriceAvailableError: If any metric has no price (batch is
                left ``failed``, no movements exist).
        """
        if not requests:
            raise EmptyBatchError(batch_type)
        for index, request in enumerate(requests):
            request.validate(index)

        item_count = len(requests)
        batch = StockBatch(
            batch_type=batch_type,
            status=BatchStatus.PROCESSING.value,
            item_count=item_count,
            success_count=0,
            failure_count=0,
            created_by=actor,
        )
        batch.created_at = self._clock.now()
        self._session.add(batch)
        # The batch row outlives a failed creation transaction
        self._session.commit()
        batch_id = batch.id

        with LogContext.bind(
            correlation_id=str(uuid4()), batch_id=str(batch_id), actor=actor,
        ):
            logger.info(
                "batch_created",
                extra={"batch_type": batch_type, "item_count": item_count},
            )
            t0 = time.monotonic()
            try:
                movements = [
                    self._ledger.create_movement(
                        request, actor, batch_id=batch_id, batch_line=index,
                    )
                    for index, request in enumerate(requests)
                ]
                batch.status = BatchStatus.COMPLETED.value
                batch.success_count = item_count
                batch.failure_count = 0
                batch.updated_by = actor
                self._session.flush()
                result = BatchCreationResult(
                    batch=batch.to_dto(),
                    movements=tuple(m.to_dto() for m in movements),
                )
                self._session.commit()
            except Exception as exc:
                self._session.rollback()
                logger.error(
                    "batch_creation_failed",
                    extra={
                        "item_count": item_count,
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                    exc_info=True,
                )
                self._mark_failed(
                    batch_id,
                    actor,
                    error_message=str(exc),
                    values={"success_count": 0, "failure_count": item_count},
                )
                raise

            logger.info(
                "batch_completed",
                extra={
                    "success_count": item_count,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
        return result

    # -------------------------------------------------------------------------
    # Settle
    # -------------------------------------------------------------------------

    def settle_batch(self, batch_id: UUID, actor: str) -> BatchSettlementResult:
        """Settle every ``created`` movement of a ``completed`` batch.

        Raises:
            BatchNotFoundError: If the batch does not exist.
            BatchWrongStateError: If the batch is not ``completed``.
            InsufficientStockError, MissingPercentageError, ...: whatever
                the first failing movement raises (batch left ``failed``).
        """
        with LogContext.bind(
            correlation_id=str(uuid4()), batch_id=str(batch_id), actor=actor,
        ):
            t0 = time.monotonic()
            try:
                batch = self._lock_batch(batch_id)
                if batch.status != BatchStatus.COMPLETED.value:
                    raise BatchWrongStateError(
                        str(batch_id),
                        current_status=batch.status,
                        required_status=BatchStatus.COMPLETED.value,
                    )
            except (BatchNotFoundError, BatchWrongStateError):
                self._session.rollback()
                raise

            try:
                pending = self._created_movement_ids(batch_id)
                settled = []
                if pending:
                    self._ledger.lock_chains(self._created_metric_ids(batch_id))
                    percentages = StaticPercentageSource(
                        self._percentage_source.all_percentages()
                    )
                    for movement_id in pending:
                        settled.append(
                            self._ledger.settle_movement(
                                movement_id, actor, percentages=percentages,
                            )
                        )
                else:
                    logger.warning("batch_settlement_nothing_to_settle")

                batch.status = BatchStatus.SETTLED.value
                batch.success_count = len(settled)
                batch.failure_count = 0
                batch.settled_by = actor
                batch.settled_at = self._clock.now()
                batch.updated_by = actor
                self._session.flush()
                movements = tuple(m.to_dto() for m in settled)
                self._session.commit()
            except Exception as exc:
                self._session.rollback()
                logger.error(
                    "batch_settlement_failed",
                    extra={
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                    exc_info=True,
                )
                self._mark_failed(
                    batch_id, actor, error_message=f"Settlement failed: {exc}",
                )
                raise

            duration_ms = int((time.monotonic() - t0) * 1000)
            logger.info(
                "batch_settled",
                extra={"affected_count": len(movements), "duration_ms": duration_ms},
            )
        return BatchSettlementResult(
            batch_id=batch_id,
            status=BatchStatus.SETTLED,
            affected_count=len(movements),
            movements=movements,
            duration_ms=duration_ms,
        )

    # -------------------------------------------------------------------------
    # Cancel
    # -------------------------------------------------------------------------

    def cancel_batch(self, batch_id: UUID, actor: str) -> BatchCancellationResult:
        """Cancel a ``processing`` or ``completed`` batch and its ``created``
        movements.

        Raises:
            BatchNotFoundError: If the batch does not exist.
            BatchNotCancelableError: If the batch is in any other status.
        """
        with LogContext.bind(
            correlation_id=str(uuid4()), batch_id=str(batch_id), actor=actor,
        ):
            try:
                batch = self._lock_batch(batch_id)
                if BatchStatus(batch.status) not in CANCELABLE_BATCH_STATUSES:
                    raise BatchNotCancelableError(
                        str(batch_id), current_status=batch.status,
                    )
            except (BatchNotFoundError, BatchNotCancelableError):
                self._session.rollback()
                raise

            try:
                pending = self._created_movement_ids(batch_id)
                for movement_id in pending:
                    self._ledger.cancel_movement(movement_id, actor)

                batch.status = BatchStatus.CANCELED.value
                batch.canceled_by = actor
                batch.canceled_at = self._clock.now()
                batch.updated_by = actor
                self._session.flush()
                self._session.commit()
            except Exception as exc:
                self._session.rollback()
                logger.error("batch_cancellation_failed", exc_info=True)
                self._mark_failed(
                    batch_id, actor, error_message=f"Cancellation failed: {exc}",
                )
                raise

            logger.info("batch_canceled", extra={"affected_count": len(pending)})
        return BatchCancellationResult(
            batch_id=batch_id,
            status=BatchStatus.CANCELED,
            affected_count=len(pending),
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_batch(self, batch_id: UUID) -> StockBatchInfo:
        """Get a batch snapshot.

        Raises:
            BatchNotFoundError: If batch_id does not exist.
        """
        batch = self._session.get(StockBatch, batch_id, populate_existing=True)
        if batch is None:
            raise BatchNotFoundError(str(batch_id))
        return batch.to_dto()

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _lock_batch(self, batch_id: UUID) -> StockBatch:
        batch = self._session.execute(
            select(StockBatch)
            .where(StockBatch.id == batch_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if batch is None:
            raise BatchNotFoundError(str(batch_id))
        return batch

    def _created_movement_ids(self, batch_id: UUID) -> list[UUID]:
        return list(
            self._session.execute(
                select(StockMovement.id)
                .where(
                    StockMovement.batch_id == batch_id,
                    StockMovement.status == MovementStatus.CREATED.value,
                )
                .order_by(
                    StockMovement.batch_line,
                    StockMovement.created_at,
                    StockMovement.id,
                )
            ).scalars()
        )

    def _created_metric_ids(self, batch_id: UUID) -> list[UUID]:
        return list(
            self._session.execute(
                select(StockMovement.metric_id)
                .where(
                    StockMovement.batch_id == batch_id,
                    StockMovement.status == MovementStatus.CREATED.value,
                )
                .distinct()
            ).scalars()
        )

    def _mark_failed(
        self,
        batch_id: UUID,
        actor: str,
        error_message: str,
        values: dict | None = None,
    ) -> None:
        """Record the failure after rollback, in a transaction of its own."""
        try:
            self._session.execute(
                update(StockBatch)
                .where(
                    StockBatch.id == batch_id,
                    StockBatch.status != BatchStatus.SETTLED.value,
                )
                .values(
                    status=BatchStatus.FAILED.value,
                    error_message=error_message,
                    updated_by=actor,
                    **(values or {}),
                )
                .execution_options(synchronize_session=False)
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            logger.error("batch_mark_failed_error", exc_info=True)
            return
        logger.warning("batch_marked_failed", extra={"error_message": error_message})
