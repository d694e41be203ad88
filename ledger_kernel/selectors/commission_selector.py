"""
Module: ledger_kernel.selectors.commission_selector
Responsibility: Read-only access to the commission ledger.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only: No mutations performed on any queried data.
    - Totals cover every CommissionKind; kinds with no records report 0.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.dtos import CommissionRecordInfo
from ledger_kernel.domain.types import CommissionKind
from ledger_kernel.models.commission import CommissionRecord
from ledger_kernel.selectors.base import BaseSelector


class CommissionSelector(BaseSelector[CommissionRecord]):
    """Selector for commission records."""

    def __init__(self, session: Session):
        super().__init__(session)

    def for_movement(self, stock_id: UUID) -> list[CommissionRecordInfo]:
        """All commission records written when a movement settled."""
        records = self.session.execute(
            select(CommissionRecord)
            .where(CommissionRecord.stock_id == stock_id)
            .order_by(CommissionRecord.kind)
        ).scalars()
        return [record.to_dto() for record in records]

    def totals_by_kind(
        self,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        party_id: UUID | None = None,
    ) -> dict[CommissionKind, Decimal]:
        """Sum commission amounts per kind, optionally for one party."""
        query = select(
            CommissionRecord.kind,
            func.coalesce(func.sum(CommissionRecord.amount), Decimal("0")),
        ).group_by(CommissionRecord.kind)
        if party_id is not None:
            query = query.where(CommissionRecord.party_id == party_id)
        if date_from is not None:
            query = query.where(CommissionRecord.created_at >= date_from)
        if date_to is not None:
            query = query.where(CommissionRecord.created_at <= date_to)

        totals = {kind: Decimal("0") for kind in CommissionKind}
        for kind, amount in self.session.execute(query):
            totals[CommissionKind(kind)] = Decimal(amount)
        return totals
