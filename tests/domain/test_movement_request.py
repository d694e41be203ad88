"""Tests for MovementRequest / SellerRef validation and parsing."""

from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.types import (
    MovementEvent,
    MovementRequest,
    SellerKind,
    SellerRef,
)
from ledger_kernel.exceptions import InvalidMovementRequestError


class TestSellerRef:

    def test_default_is_no_seller(self):
        ref = SellerRef()
        assert ref.kind == SellerKind.NONE
        assert ref.party_id is None

    def test_tier_without_party_rejected(self):
        with pytest.raises(InvalidMovementRequestError):
            SellerRef(SellerKind.AGENT)

    def test_party_without_tier_rejected(self):
        with pytest.raises(InvalidMovementRequestError):
            SellerRef(SellerKind.NONE, uuid4())

    def test_constructors(self):
        party = uuid4()
        assert SellerRef.salesman(party).kind == SellerKind.SALESMAN
        assert SellerRef.sub_agent(party).kind == SellerKind.SUB_AGENT
        assert SellerRef.agent(party).party_id == party


class TestValidate:

    def _request(self, **overrides):
        values = {
            "metric_id": uuid4(),
            "stock_event": MovementEvent.STOCK_IN,
            "amount": Decimal("5"),
        }
        values.update(overrides)
        return MovementRequest(**values)

    def test_valid_request(self):
        self._request().validate()

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-3"), Decimal("NaN")])
    def test_non_positive_amount_rejected(self, amount):
        with pytest.raises(InvalidMovementRequestError) as exc_info:
            self._request(amount=amount).validate(index=4)
        assert exc_info.value.field == "amount"
        assert exc_info.value.index == 4

    def test_float_amount_rejected(self):
        with pytest.raises(InvalidMovementRequestError):
            self._request(amount=1.5).validate()

    def test_string_event_rejected(self):
        with pytest.raises(InvalidMovementRequestError) as exc_info:
            self._request(stock_event="stock_in_typo").validate()
        assert exc_info.value.field == "stock_event"

    def test_metric_must_be_uuid(self):
        with pytest.raises(InvalidMovementRequestError):
            self._request(metric_id="abc").validate()


class TestFromDict:

    def test_parses_payload(self):
        metric_id, salesman_id, shop_id = uuid4(), uuid4(), uuid4()
        request = MovementRequest.from_dict({
            "metric_id": str(metric_id),
            "stock_event": "stock_out",
            "amount": "2.5",
            "salesman_id": str(salesman_id),
            "shop_id": str(shop_id),
            "description": "counter sale",
        })

        assert request.metric_id == metric_id
        assert request.stock_event == MovementEvent.STOCK_OUT
        assert request.amount == Decimal("2.5")
        assert request.seller == SellerRef.salesman(salesman_id)
        assert request.shop_id == shop_id
        assert request.description == "counter sale"

    def test_missing_metric(self):
        with pytest.raises(InvalidMovementRequestError, match="metric_id"):
            MovementRequest.from_dict({"stock_event": "stock_in", "amount": 1})

    def test_unknown_event(self):
        with pytest.raises(InvalidMovementRequestError, match="stock_event"):
            MovementRequest.from_dict(
                {"metric_id": str(uuid4()), "stock_event": "transfer", "amount": 1}
            )

    def test_two_sellers_rejected(self):
        with pytest.raises(InvalidMovementRequestError, match="more than one"):
            MovementRequest.from_dict({
                "metric_id": str(uuid4()),
                "stock_event": "stock_in",
                "amount": 1,
                "salesman_id": str(uuid4()),
                "agent_id": str(uuid4()),
            })

    def test_non_numeric_amount(self):
        with pytest.raises(InvalidMovementRequestError, match="amount"):
            MovementRequest.from_dict(
                {"metric_id": str(uuid4()), "stock_event": "stock_in", "amount": "lots"}
            )
