"""
StockBatch ORM model.

A batch groups the movements created together and carries the batch-level
lifecycle: processing -> completed -> settled | canceled | failed.  The
batch row is committed before its movements so that a failed creation
still leaves an audit record.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase
from ledger_kernel.domain.dtos import StockBatchInfo
from ledger_kernel.domain.types import DEFAULT_BATCH_TYPE, BatchStatus


class StockBatch(TrackedBase):
    """Persistent stock batch record."""

    __tablename__ = "stock_batches"

    __table_args__ = (
        Index("ix_stock_batches_status", "status"),
        Index("ix_stock_batches_created_by", "created_by"),
        Index("ix_stock_batches_created_at", "created_at"),
    )

    batch_type: Mapped[str] = mapped_column(
        String(50), nullable=False, default=DEFAULT_BATCH_TYPE,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BatchStatus.PROCESSING.value,
    )
    item_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failure_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    settled_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    settled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    canceled_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    canceled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    movements: Mapped[list["StockMovement"]] = relationship(  # noqa: F821
        "StockMovement",
        back_populates="batch",
        order_by="StockMovement.batch_line",
    )

    def to_dto(self) -> StockBatchInfo:
        return StockBatchInfo(
            batch_id=self.id,
            batch_type=self.batch_type,
            status=BatchStatus(self.status),
            item_count=self.item_count,
            success_count=self.success_count,
            failure_count=self.failure_count,
            error_message=self.error_message,
            created_by=self.created_by,
            created_at=self.created_at,
            settled_by=self.settled_by,
            settled_at=self.settled_at,
            canceled_by=self.canceled_by,
            canceled_at=self.canceled_at,
        )

    def __repr__(self) -> str:
        return f"<StockBatch {self.id} {self.batch_type} {self.status}>"
