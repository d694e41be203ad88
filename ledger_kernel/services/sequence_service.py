"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing sequence numbers per named counter.  The
    stock ledger keeps one counter per metric (``stock_chain:<metric_id>``);
    allocating the next chain position locks that counter row, which
    serializes settlement of the metric's movements across transactions.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by StockLedgerService during settlement.

Invariants enforced:
    - Sequences are strictly monotonic.  The aggregate-max-plus-one
      anti-pattern is FORBIDDEN -- the locked counter row is the sole
      source of truth for the next value.
    - Transactional: the increment is only visible after the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: Concurrent counter creation race (handled via
      savepoint rollback and retry).

Audit relevance:
    Allocation is logged at DEBUG level with sequence_name and value.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


def stock_chain_sequence(metric_id: UUID) -> str:
    """Counter name for a metric's settlement chain."""
    return f"stock_chain:{metric_id}"


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly-monotonic
        integer value.  The counter row stays locked until the caller's
        transaction ends.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.

    Usage:
        seq = sequence_service.next_value(stock_chain_sequence(metric_id))
        sequence_service.lock(stock_chain_sequence(metric_id))  # no increment
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def lock(self, sequence_name: str) -> SequenceCounter:
        """
        Lock the named counter without incrementing it, creating it at 0 on
        first use.

        The lock is held until the caller's transaction ends.  Callers that
        need several counters take them in a fixed order.
        """
        self._session.flush()

        counter = self._locked_counter(sequence_name)
        if counter is not None:
            return counter

        # First use of this sequence; another transaction may create it
        # concurrently, so insert inside a savepoint.
        savepoint = self._session.begin_nested()
        try:
            counter = SequenceCounter(name=sequence_name, current_value=0)
            self._session.add(counter)
            self._session.flush()
            savepoint.commit()
            return counter
        except IntegrityError:
            logger.debug(
                "sequence_counter_race_retry",
                extra={"sequence_name": sequence_name},
            )
            savepoint.rollback()
            counter = self._locked_counter(sequence_name)
            if counter is None:
                raise
            return counter

    def next_value(self, sequence_name: str) -> int:
        """
        Lock the named counter (creating it on first use), increment it and
        return the new value.

        Pending changes in the session are flushed first; the counter is
        re-read from the database, never from the identity map.

        Returns:
            The next sequence value (always > 0).
        """
        counter = self.lock(sequence_name)
        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """
        Get the current value of a sequence without incrementing.

        Returns:
            Current value, or None if the sequence doesn't exist.
        """
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return counter.current_value if counter else None
