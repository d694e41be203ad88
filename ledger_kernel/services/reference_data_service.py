"""
Reference data -- SQL-backed price and percentage sources, plus writers.

Responsibility:
    ``SqlPriceSource`` and ``SqlPercentageSource`` implement the domain
    ``PriceSource`` / ``PercentageSource`` contracts over the ``prices`` and
    ``commission_percentages`` tables.  ``ReferenceDataService`` records
    new prices and sets percentages (operator tooling, seeding, tests).

Architecture position:
    Kernel > Services.  Sources are read-through: every call hits the
    session, nothing is cached between settlements.

Invariants enforced:
    - Latest price = newest ``effective_at``, ties broken by ``created_at``
      then ``id`` (all descending).
    - A missing percentage key raises MissingPercentageError; it never
      defaults to 0.
    - Percentages written through ReferenceDataService are validated as a
      complete table before flush.

Failure modes:
    - MissingPercentageError / InvalidPercentageTableError from
      ``all_percentages()`` when the stored table is incomplete or invalid.
    - ValueError from ``record_price`` on negative prices.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.reference import (
    PERCENTAGE_KEYS,
    PercentageTable,
    PriceQuote,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.reference import CommissionPercentage, PriceRecord
from ledger_kernel.services.base import BaseService

logger = get_logger("services.reference_data")


class SqlPriceSource:
    """PriceSource reading the ``prices`` table."""

    def __init__(self, session: Session):
        self._session = session

    def latest_price(self, metric_id: UUID) -> PriceQuote | None:
        record = self._session.execute(
            select(PriceRecord)
            .where(PriceRecord.metric_id == metric_id)
            .order_by(
                PriceRecord.effective_at.desc(),
                PriceRecord.created_at.desc(),
                PriceRecord.id.desc(),
            )
            .limit(1)
        ).scalar_one_or_none()
        return record.to_quote() if record is not None else None


class SqlPercentageSource:
    """PercentageSource reading the ``commission_percentages`` table."""

    def __init__(self, session: Session):
        self._session = session

    def all_percentages(self) -> PercentageTable:
        rows = self._session.execute(
            select(CommissionPercentage.key, CommissionPercentage.value)
        ).all()
        return PercentageTable.from_mapping({key: value for key, value in rows})


class ReferenceDataService(BaseService[PriceRecord]):
    """
    Writes price list entries and commission percentages.

    Contract:
        Flush-only; the caller commits.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def record_price(
        self,
        metric_id: UUID,
        price: Decimal,
        net_price: Decimal,
        actor: str,
        salesman_price: Decimal = Decimal("0"),
        sub_agent_price: Decimal = Decimal("0"),
        agent_price: Decimal = Decimal("0"),
        effective_at: datetime | None = None,
    ) -> PriceQuote:
        """Append a price for a metric; it becomes the latest if newest."""
        for name, value in (
            ("price", price),
            ("net_price", net_price),
            ("salesman_price", salesman_price),
            ("sub_agent_price", sub_agent_price),
            ("agent_price", agent_price),
        ):
            if value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")

        now = self._clock.now()
        record = PriceRecord(
            metric_id=metric_id,
            price=price,
            net_price=net_price,
            salesman_price=salesman_price,
            sub_agent_price=sub_agent_price,
            agent_price=agent_price,
            effective_at=effective_at or now,
            created_by=actor,
        )
        record.created_at = now
        self.session.add(record)
        self.session.flush()

        logger.info(
            "price_recorded",
            extra={
                "metric_id": str(metric_id),
                "price": price,
                "net_price": net_price,
                "actor": actor,
            },
        )
        return record.to_quote()

    def set_percentages(self, values: Mapping[str, Any], actor: str) -> PercentageTable:
        """Upsert percentage keys; the resulting full table must validate.

        Keys not named in ``values`` keep their stored value.
        """
        existing = {
            row.key: row
            for row in self.session.execute(select(CommissionPercentage)).scalars()
        }
        merged: dict[str, Any] = {key: row.value for key, row in existing.items()}
        merged.update(values)
        table = PercentageTable.from_mapping(merged)

        for key in PERCENTAGE_KEYS:
            value = getattr(table, key)
            row = existing.get(key)
            if row is None:
                self.session.add(
                    CommissionPercentage(key=key, value=value, created_by=actor)
                )
            elif row.value != value:
                row.value = value
                row.updated_by = actor
        self.session.flush()

        logger.info(
            "percentages_updated",
            extra={"percentages": table.as_dict(), "actor": actor},
        )
        return table
