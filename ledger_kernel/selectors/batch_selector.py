"""
Module: ledger_kernel.selectors.batch_selector
Responsibility: Read-only query access to stock batches.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only: No mutations performed on any queried data.
    - DTO convention: returns StockBatchInfo snapshots, never ORM rows.

Failure modes:
    - ``get()`` returns None for an unknown batch; listing returns an empty
      list when nothing matches.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.dtos import StockBatchInfo
from ledger_kernel.domain.types import BatchStatus
from ledger_kernel.models.stock_batch import StockBatch
from ledger_kernel.selectors.base import BaseSelector


class BatchSelector(BaseSelector[StockBatch]):
    """
    Selector for batch listings.

    Guarantees:
        - Results ordered newest first (created_at DESC, id DESC).
        - ``list_batches()`` defaults to ``completed`` batches, the ones
          awaiting settlement.  Pass ``status=None`` explicitly for all.
    """

    _DEFAULT_STATUS = BatchStatus.COMPLETED

    def __init__(self, session: Session):
        super().__init__(session)

    def get(self, batch_id: UUID) -> StockBatchInfo | None:
        batch = self.session.get(StockBatch, batch_id)
        return batch.to_dto() if batch is not None else None

    def list_batches(
        self,
        status: BatchStatus | None = _DEFAULT_STATUS,
        created_by: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        limit: int | None = None,
    ) -> list[StockBatchInfo]:
        """
        List batches matching every given filter.

        Args:
            status: Batch status; None for any status.
            created_by: Creating actor.
            date_from: Inclusive lower bound on created_at.
            date_to: Inclusive upper bound on created_at.
            limit: Maximum number of rows.

        Returns:
            List of StockBatchInfo, newest first.
        """
        query = select(StockBatch).order_by(
            StockBatch.created_at.desc(), StockBatch.id.desc(),
        )
        if status is not None:
            query = query.where(StockBatch.status == BatchStatus(status).value)
        if created_by is not None:
            query = query.where(StockBatch.created_by == created_by)
        if date_from is not None:
            query = query.where(StockBatch.created_at >= date_from)
        if date_to is not None:
            query = query.where(StockBatch.created_at <= date_to)
        if limit is not None:
            query = query.limit(limit)

        return [batch.to_dto() for batch in self.session.execute(query).scalars()]
