"""
Tests for BatchCoordinator -- atomic batch creation, settlement, cancellation.

Covers:
- All-or-nothing creation (one missing price -> zero movements, batch failed)
- Validation before any write
- Sequential settlement in batch order and the running balance chain
- All-or-nothing settlement (insufficient stock -> every movement stays created)
- Cancellation and the state machine around it
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from ledger_batch.services.coordinator import BatchCoordinator
from ledger_kernel.domain.types import (
    BatchStatus,
    CommissionKind,
    MovementEvent,
    MovementStatus,
    SellerRef,
)
from ledger_kernel.exceptions import (
    BatchNotCancelableError,
    BatchNotFoundError,
    BatchWrongStateError,
    EmptyBatchError,
    InsufficientStockError,
    InvalidMovementRequestError,
    NoPriceAvailableError,
    StateConflictError,
)
from ledger_kernel.models.commission import CommissionRecord
from ledger_kernel.models.stock_batch import StockBatch
from ledger_kernel.models.stock_movement import StockMovement
from ledger_kernel.services.reference_data_service import SqlPercentageSource
from ledger_kernel.services.sequence_service import (
    SequenceService,
    stock_chain_sequence,
)
from tests.conftest import TEST_ACTOR


def _count(session_factory, model) -> int:
    with session_factory() as s:
        return s.execute(select(func.count(model.id))).scalar_one()


def _statuses(session_factory, batch_id) -> list[str]:
    with session_factory() as s:
        return list(
            s.execute(
                select(StockMovement.status)
                .where(StockMovement.batch_id == batch_id)
                .order_by(StockMovement.batch_line)
            ).scalars()
        )


# =============================================================================
# Creation
# =============================================================================


class TestCreateBatch:

    def test_creates_one_movement_per_request(self, coordinator, metric, make_request):
        requests = [make_request(metric, amount=n) for n in (1, 2, 3)]

        result = coordinator.create_batch(requests, TEST_ACTOR)

        assert result.batch.status == BatchStatus.COMPLETED
        assert result.batch.item_count == 3
        assert result.batch.success_count == 3
        assert result.batch.failure_count == 0
        assert [m.amount for m in result.movements] == [
            Decimal("1"), Decimal("2"), Decimal("3"),
        ]
        assert all(m.status == MovementStatus.CREATED for m in result.movements)
        assert all(m.batch_id == result.batch_id for m in result.movements)

    def test_price_snapshot_per_movement(self, coordinator, metric, make_request):
        result = coordinator.create_batch(
            [make_request(metric, amount=4, seller=SellerRef.agent(uuid4()))],
            TEST_ACTOR,
        )

        movement = result.movements[0]
        assert movement.total_price == Decimal("48")
        assert movement.total_net_price == Decimal("40")
        assert movement.agent_price == Decimal("41")
        assert movement.salesman_price == Decimal("0")
        assert movement.sub_agent_price == Decimal("0")

    def test_custom_batch_type(self, coordinator, metric, make_request):
        result = coordinator.create_batch(
            [make_request(metric)], TEST_ACTOR, batch_type="stock_return",
        )
        assert result.batch.batch_type == "stock_return"

    def test_committed(self, coordinator, metric, make_request, session_factory):
        result = coordinator.create_batch([make_request(metric)], TEST_ACTOR)

        with session_factory() as other:
            batch = other.get(StockBatch, result.batch_id)
            assert batch.status == BatchStatus.COMPLETED.value
        assert _count(session_factory, StockMovement) == 1

    def test_logs_lifecycle(self, coordinator, metric, make_request, captured_logs):
        result = coordinator.create_batch([make_request(metric)], TEST_ACTOR)

        messages = [r["message"] for r in captured_logs()]
        assert "batch_created" in messages
        assert "batch_completed" in messages
        completed = next(r for r in captured_logs() if r["message"] == "batch_completed")
        assert completed["batch_id"] == str(result.batch_id)
        assert completed["actor"] == TEST_ACTOR


class TestCreateBatchAtomicity:

    def test_missing_price_leaves_no_movements(
        self, coordinator, metric, percentages, make_request, session_factory,
    ):
        unpriced = uuid4()
        requests = [
            make_request(metric),
            make_request(unpriced),
            make_request(metric),
        ]

        with pytest.raises(NoPriceAvailableError):
            coordinator.create_batch(requests, TEST_ACTOR)

        assert _count(session_factory, StockMovement) == 0
        with session_factory() as other:
            batch = other.execute(select(StockBatch)).scalar_one()
            assert batch.status == BatchStatus.FAILED.value
            assert batch.item_count == 3
            assert batch.success_count == 0
            assert batch.failure_count == 3
            assert str(unpriced) in batch.error_message

    def test_failure_logged(
        self, coordinator, percentages, make_request, captured_logs,
    ):
        with pytest.raises(NoPriceAvailableError):
            coordinator.create_batch([make_request(uuid4())], TEST_ACTOR)

        records = captured_logs()
        failure = next(r for r in records if r["message"] == "batch_creation_failed")
        assert failure["level"] == "ERROR"
        assert failure["exc_code"] == "NO_PRICE_AVAILABLE"
        assert any(r["message"] == "batch_marked_failed" for r in records)

    def test_empty_batch_rejected_without_write(self, coordinator, session_factory):
        with pytest.raises(EmptyBatchError):
            coordinator.create_batch([], TEST_ACTOR)

        assert _count(session_factory, StockBatch) == 0

    def test_invalid_request_rejected_without_write(
        self, coordinator, metric, make_request, session_factory,
    ):
        requests = [make_request(metric), make_request(metric, amount=0)]

        with pytest.raises(InvalidMovementRequestError) as exc_info:
            coordinator.create_batch(requests, TEST_ACTOR)

        assert exc_info.value.index == 1
        assert _count(session_factory, StockBatch) == 0
        assert _count(session_factory, StockMovement) == 0


# =============================================================================
# Settlement
# =============================================================================


class TestSettleBatch:

    def test_stock_in_without_seller(
        self, coordinator, metric, make_request, commission_selector,
    ):
        created = coordinator.create_batch([make_request(metric, amount=100)], TEST_ACTOR)

        result = coordinator.settle_batch(created.batch_id, TEST_ACTOR)

        assert result.status == BatchStatus.SETTLED
        assert result.affected_count == 1
        movement = result.movements[0]
        assert movement.initial_amount == Decimal("0")
        assert movement.update_amount == Decimal("100")
        assert movement.total_net_price == Decimal("1000")
        # 100 - 60 supplier - 5 shop
        assert movement.total_distributor_share == Decimal("350")
        assert movement.total_shop_share is None

        kinds = [r.kind for r in commission_selector.for_movement(movement.movement_id)]
        assert kinds == [CommissionKind.DISTRIBUTOR]

    def test_batch_marked_settled(
        self, coordinator, metric, make_request, session_factory,
    ):
        created = coordinator.create_batch(
            [make_request(metric), make_request(metric)], TEST_ACTOR,
        )

        coordinator.settle_batch(created.batch_id, "settler")

        with session_factory() as other:
            batch = other.get(StockBatch, created.batch_id)
            assert batch.status == BatchStatus.SETTLED.value
            assert batch.success_count == 2
            assert batch.settled_by == "settler"
            assert batch.settled_at is not None
        assert _statuses(session_factory, created.batch_id) == [
            MovementStatus.SETTLED.value,
        ] * 2

    def test_settles_in_batch_order(self, coordinator, metric, make_request):
        requests = [
            make_request(metric, amount=10),
            make_request(metric, amount=4, stock_event=MovementEvent.STOCK_OUT),
            make_request(metric, amount=6, stock_event=MovementEvent.STOCK_OUT),
        ]
        created = coordinator.create_batch(requests, TEST_ACTOR)

        result = coordinator.settle_batch(created.batch_id, TEST_ACTOR)

        balances = [(m.initial_amount, m.update_amount) for m in result.movements]
        assert balances == [
            (Decimal("0"), Decimal("10")),
            (Decimal("10"), Decimal("6")),
            (Decimal("6"), Decimal("0")),
        ]
        assert [m.chain_seq for m in result.movements] == [1, 2, 3]

    def test_continues_chain_across_batches(self, coordinator, metric, make_request):
        first = coordinator.create_batch([make_request(metric, amount=25)], TEST_ACTOR)
        coordinator.settle_batch(first.batch_id, TEST_ACTOR)
        second = coordinator.create_batch(
            [make_request(metric, amount=5, stock_event=MovementEvent.STOCK_OUT)],
            TEST_ACTOR,
        )

        result = coordinator.settle_batch(second.batch_id, TEST_ACTOR)

        assert result.movements[0].initial_amount == Decimal("25")
        assert result.movements[0].update_amount == Decimal("20")

    def test_seller_commissions_recorded(
        self, coordinator, metric, make_request, commission_selector,
    ):
        salesman_id, shop_id = uuid4(), uuid4()
        stock = coordinator.create_batch([make_request(metric, amount=50)], TEST_ACTOR)
        coordinator.settle_batch(stock.batch_id, TEST_ACTOR)
        sale = coordinator.create_batch(
            [
                make_request(
                    metric,
                    amount=10,
                    stock_event=MovementEvent.STOCK_OUT,
                    seller=SellerRef.salesman(salesman_id),
                    shop_id=shop_id,
                )
            ],
            TEST_ACTOR,
        )

        result = coordinator.settle_batch(sale.batch_id, TEST_ACTOR)

        movement = result.movements[0]
        # net 100: salesman 10%, shop 5%, distributor 100-60-5-10 = 25%
        assert movement.total_sales_share == Decimal("10")
        assert movement.total_shop_share == Decimal("5")
        assert movement.total_distributor_share == Decimal("25")
        records = {
            r.kind: r for r in commission_selector.for_movement(movement.movement_id)
        }
        assert set(records) == {
            CommissionKind.SALESMAN, CommissionKind.DISTRIBUTOR, CommissionKind.SHOP,
        }
        assert records[CommissionKind.SALESMAN].party_id == salesman_id
        assert records[CommissionKind.SHOP].party_id == shop_id
        assert records[CommissionKind.DISTRIBUTOR].party_id is None

    def test_percentages_read_once(
        self, session, calculator, clock, metric, make_request,
    ):
        class CountingSource(SqlPercentageSource):
            calls = 0

            def all_percentages(self):
                CountingSource.calls += 1
                return super().all_percentages()

        coordinator = BatchCoordinator(
            session,
            calculator=calculator,
            percentage_source=CountingSource(session),
            clock=clock,
        )
        created = coordinator.create_batch(
            [make_request(metric) for _ in range(3)], TEST_ACTOR,
        )

        coordinator.settle_batch(created.batch_id, TEST_ACTOR)

        assert CountingSource.calls == 1

    def test_nothing_to_settle(
        self, coordinator, metric, make_request, ledger, session, captured_logs,
    ):
        created = coordinator.create_batch([make_request(metric)], TEST_ACTOR)
        ledger.cancel_movement(created.movements[0].movement_id, TEST_ACTOR)
        session.commit()

        result = coordinator.settle_batch(created.batch_id, TEST_ACTOR)

        assert result.status == BatchStatus.SETTLED
        assert result.affected_count == 0
        assert result.movements == ()
        assert any(
            r["message"] == "batch_settlement_nothing_to_settle" for r in captured_logs()
        )


class TestSettleBatchLockOrder:

    @pytest.fixture
    def lock_log(self, monkeypatch) -> list[str]:
        """Chain counters in the order each was first locked."""
        acquired: list[str] = []
        original = SequenceService.lock

        def _recording_lock(service, sequence_name):
            if sequence_name not in acquired:
                acquired.append(sequence_name)
            return original(service, sequence_name)

        monkeypatch.setattr(SequenceService, "lock", _recording_lock)
        return acquired

    def test_chains_locked_in_metric_order(
        self, coordinator, make_metric, percentages, make_request, lock_log,
    ):
        first, second = make_metric(), make_metric()
        expected = sorted(stock_chain_sequence(m) for m in (first, second))

        for ordering in ((first, second), (second, first)):
            lock_log.clear()
            created = coordinator.create_batch(
                [make_request(m, amount=5) for m in ordering], TEST_ACTOR,
            )

            coordinator.settle_batch(created.batch_id, TEST_ACTOR)

            assert lock_log == expected

    def test_lock_order_keeps_batch_order(
        self, coordinator, make_metric, percentages, make_request,
    ):
        first, second = sorted((make_metric(), make_metric()), key=str)
        created = coordinator.create_batch(
            [make_request(second, amount=5), make_request(first, amount=7)],
            TEST_ACTOR,
        )

        result = coordinator.settle_batch(created.batch_id, TEST_ACTOR)

        assert [m.metric_id for m in result.movements] == [second, first]
        assert [m.chain_seq for m in result.movements] == [1, 1]


class TestSettleBatchAtomicity:

    def test_insufficient_stock_rolls_back_whole_batch(
        self, coordinator, metric, make_request, session_factory,
    ):
        requests = [
            make_request(metric, amount=10),
            make_request(metric, amount=50, stock_event=MovementEvent.STOCK_OUT),
            make_request(metric, amount=5),
        ]
        created = coordinator.create_batch(requests, TEST_ACTOR)

        with pytest.raises(InsufficientStockError) as exc_info:
            coordinator.settle_batch(created.batch_id, TEST_ACTOR)

        assert exc_info.value.available == Decimal("10")
        assert exc_info.value.requested == Decimal("50")
        assert _statuses(session_factory, created.batch_id) == [
            MovementStatus.CREATED.value,
        ] * 3
        assert _count(session_factory, CommissionRecord) == 0
        with session_factory() as other:
            batch = other.get(StockBatch, created.batch_id)
            assert batch.status == BatchStatus.FAILED.value
            assert batch.error_message.startswith("Settlement failed:")
            assert batch.settled_at is None

    def test_failed_batch_does_not_advance_chain(
        self, coordinator, metric, make_request, movement_selector,
    ):
        bad = coordinator.create_batch(
            [
                make_request(metric, amount=3),
                make_request(metric, amount=9, stock_event=MovementEvent.STOCK_OUT),
            ],
            TEST_ACTOR,
        )
        with pytest.raises(InsufficientStockError):
            coordinator.settle_batch(bad.batch_id, TEST_ACTOR)

        good = coordinator.create_batch([make_request(metric, amount=7)], TEST_ACTOR)
        result = coordinator.settle_batch(good.batch_id, TEST_ACTOR)

        assert result.movements[0].initial_amount == Decimal("0")
        assert result.movements[0].chain_seq == 1
        assert movement_selector.on_hand(metric) == Decimal("7")

    def test_failed_batch_cannot_be_settled_again(
        self, coordinator, metric, make_request,
    ):
        created = coordinator.create_batch(
            [make_request(metric, amount=1, stock_event=MovementEvent.STOCK_OUT)],
            TEST_ACTOR,
        )
        with pytest.raises(InsufficientStockError):
            coordinator.settle_batch(created.batch_id, TEST_ACTOR)

        with pytest.raises(BatchWrongStateError) as exc_info:
            coordinator.settle_batch(created.batch_id, TEST_ACTOR)
        assert exc_info.value.current_status == BatchStatus.FAILED.value


class TestSettleBatchState:

    def test_unknown_batch(self, coordinator):
        with pytest.raises(BatchNotFoundError):
            coordinator.settle_batch(uuid4(), TEST_ACTOR)

    def test_settled_batch_rejected(self, coordinator, metric, make_request):
        created = coordinator.create_batch([make_request(metric)], TEST_ACTOR)
        coordinator.settle_batch(created.batch_id, TEST_ACTOR)

        with pytest.raises(BatchWrongStateError) as exc_info:
            coordinator.settle_batch(created.batch_id, TEST_ACTOR)

        assert exc_info.value.current_status == BatchStatus.SETTLED.value
        assert exc_info.value.required_status == BatchStatus.COMPLETED.value

    def test_wrong_state_leaves_batch_untouched(
        self, coordinator, metric, make_request, session_factory,
    ):
        created = coordinator.create_batch([make_request(metric)], TEST_ACTOR)
        coordinator.cancel_batch(created.batch_id, TEST_ACTOR)

        with pytest.raises(BatchWrongStateError):
            coordinator.settle_batch(created.batch_id, TEST_ACTOR)

        with session_factory() as other:
            batch = other.get(StockBatch, created.batch_id)
            assert batch.status == BatchStatus.CANCELED.value
            assert batch.error_message is None


# =============================================================================
# Cancellation
# =============================================================================


class TestCancelBatch:

    def test_cancels_created_movements(
        self, coordinator, metric, make_request, session_factory,
    ):
        created = coordinator.create_batch(
            [make_request(metric) for _ in range(3)], TEST_ACTOR,
        )

        result = coordinator.cancel_batch(created.batch_id, "supervisor")

        assert result.status == BatchStatus.CANCELED
        assert result.affected_count == 3
        assert _statuses(session_factory, created.batch_id) == [
            MovementStatus.CANCELED.value,
        ] * 3
        batch = coordinator.get_batch(created.batch_id)
        assert batch.status == BatchStatus.CANCELED
        assert batch.canceled_by == "supervisor"

    def test_canceled_batch_cannot_be_settled(self, coordinator, metric, make_request):
        created = coordinator.create_batch(
            [make_request(metric) for _ in range(3)], TEST_ACTOR,
        )
        coordinator.cancel_batch(created.batch_id, TEST_ACTOR)

        with pytest.raises(StateConflictError):
            coordinator.settle_batch(created.batch_id, TEST_ACTOR)

    def test_settled_batch_not_cancelable(self, coordinator, metric, make_request):
        created = coordinator.create_batch([make_request(metric)], TEST_ACTOR)
        coordinator.settle_batch(created.batch_id, TEST_ACTOR)

        with pytest.raises(BatchNotCancelableError) as exc_info:
            coordinator.cancel_batch(created.batch_id, TEST_ACTOR)

        assert exc_info.value.current_status == BatchStatus.SETTLED.value

    def test_failed_batch_not_cancelable(
        self, coordinator, percentages, make_request, session,
    ):
        with pytest.raises(NoPriceAvailableError):
            coordinator.create_batch([make_request(uuid4())], TEST_ACTOR)
        batch_id = session.execute(select(StockBatch.id)).scalar_one()

        with pytest.raises(BatchNotCancelableError):
            coordinator.cancel_batch(batch_id, TEST_ACTOR)

    def test_canceled_twice_rejected(self, coordinator, metric, make_request):
        created = coordinator.create_batch([make_request(metric)], TEST_ACTOR)
        coordinator.cancel_batch(created.batch_id, TEST_ACTOR)

        with pytest.raises(BatchNotCancelableError):
            coordinator.cancel_batch(created.batch_id, TEST_ACTOR)

    def test_unknown_batch(self, coordinator):
        with pytest.raises(BatchNotFoundError):
            coordinator.cancel_batch(uuid4(), TEST_ACTOR)


def test_get_batch_unknown(coordinator):
    with pytest.raises(BatchNotFoundError):
        coordinator.get_batch(uuid4())
