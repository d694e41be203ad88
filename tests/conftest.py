"""
Pytest fixtures for the stock ledger test suite.

Provides:
- In-memory SQLite engine and session per test (shared StaticPool
  connection, SAVEPOINT support enabled by build_engine)
- Deterministic clock
- Seeded commission percentages and metric prices
- Service / coordinator / selector fixtures
- Log capture

Environment Variables:
- LEDGER_TEST_DATABASE_URL: run against another database (e.g. PostgreSQL).
  Tables are dropped and recreated around every test.
"""

import json
import logging
import os
from collections.abc import Callable
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session, sessionmaker

from ledger_batch.services.coordinator import BatchCoordinator
from ledger_engines.commission import CommissionCalculator
from ledger_kernel.db.engine import build_engine, create_tables, drop_tables
from ledger_kernel.db.immutability import register_immutability_listeners
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.reference import PercentageTable
from ledger_kernel.domain.types import MovementEvent, MovementRequest, SellerRef
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.selectors.batch_selector import BatchSelector
from ledger_kernel.selectors.commission_selector import CommissionSelector
from ledger_kernel.selectors.movement_selector import MovementSelector
from ledger_kernel.services.direct_settlement_service import DirectSettlementService
from ledger_kernel.services.reference_data_service import ReferenceDataService
from ledger_kernel.services.stock_ledger_service import StockLedgerService

TEST_ACTOR = "tester"

# supplier 60, shop 5, salesman 10, sub_agent 15, agent 20
DEFAULT_PERCENTAGES = {
    "supplier": Decimal("60"),
    "shop": Decimal("5"),
    "salesman": Decimal("10"),
    "sub_agent": Decimal("15"),
    "agent": Decimal("20"),
}

# Unit prices seeded for every metric created through the ``metric`` fixture
PRICE = Decimal("12")
NET_PRICE = Decimal("10")
SALESMAN_PRICE = Decimal("11")
SUB_AGENT_PRICE = Decimal("10.5")
AGENT_PRICE = Decimal("10.25")


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, coordinator):
            coordinator.create_batch(...)
            logs = captured_logs()
            assert any(r["message"] == "batch_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


def get_database_url() -> str:
    return os.environ.get("LEDGER_TEST_DATABASE_URL", "sqlite://")


@pytest.fixture
def engine():
    eng = build_engine(get_database_url())
    drop_tables(eng)
    create_tables(eng)
    register_immutability_listeners()
    yield eng
    drop_tables(eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory) -> Session:
    s = session_factory()
    yield s
    s.rollback()
    s.close()


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


# =============================================================================
# Reference data
# =============================================================================


@pytest.fixture
def percentages(session) -> PercentageTable:
    """Seed the default commission percentages (committed)."""
    table = ReferenceDataService(session).set_percentages(
        DEFAULT_PERCENTAGES, actor=TEST_ACTOR,
    )
    session.commit()
    return table


@pytest.fixture
def make_metric(session, clock) -> Callable[..., UUID]:
    """Factory: create a metric id with a committed price."""

    def _make(
        price: Decimal = PRICE,
        net_price: Decimal = NET_PRICE,
    ) -> UUID:
        metric_id = uuid4()
        ReferenceDataService(session, clock=clock).record_price(
            metric_id,
            price=price,
            net_price=net_price,
            actor=TEST_ACTOR,
            salesman_price=SALESMAN_PRICE,
            sub_agent_price=SUB_AGENT_PRICE,
            agent_price=AGENT_PRICE,
        )
        session.commit()
        return metric_id

    return _make


@pytest.fixture
def metric(make_metric, percentages) -> UUID:
    """A priced metric, with percentages seeded."""
    return make_metric()


@pytest.fixture
def make_request() -> Callable[..., MovementRequest]:
    """Factory for MovementRequest with sensible defaults."""

    def _make(
        metric_id: UUID,
        amount: Decimal | int = Decimal("100"),
        stock_event: MovementEvent = MovementEvent.STOCK_IN,
        seller: SellerRef | None = None,
        shop_id: UUID | None = None,
        description: str | None = None,
    ) -> MovementRequest:
        return MovementRequest(
            metric_id=metric_id,
            stock_event=stock_event,
            amount=Decimal(amount),
            seller=seller or SellerRef(),
            shop_id=shop_id,
            description=description,
        )

    return _make


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def calculator() -> CommissionCalculator:
    return CommissionCalculator()


@pytest.fixture
def ledger(session, calculator, clock) -> StockLedgerService:
    return StockLedgerService(session, calculator=calculator, clock=clock)


@pytest.fixture
def coordinator(session, calculator, clock) -> BatchCoordinator:
    return BatchCoordinator(session, calculator=calculator, clock=clock)


@pytest.fixture
def direct(session, calculator, clock) -> DirectSettlementService:
    return DirectSettlementService(session, calculator=calculator, clock=clock)


@pytest.fixture
def movement_selector(session) -> MovementSelector:
    return MovementSelector(session)


@pytest.fixture
def batch_selector(session) -> BatchSelector:
    return BatchSelector(session)


@pytest.fixture
def commission_selector(session) -> CommissionSelector:
    return CommissionSelector(session)
