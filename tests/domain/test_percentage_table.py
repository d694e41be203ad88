"""Tests for PercentageTable validation and percentage sources."""

from decimal import Decimal

import pytest

from ledger_kernel.domain.reference import (
    PercentageSource,
    PercentageTable,
    PriceQuote,
    StaticPercentageSource,
)
from ledger_kernel.domain.types import SellerKind
from ledger_kernel.exceptions import (
    InvalidPercentageTableError,
    MissingPercentageError,
)

VALID = {
    "supplier": "60",
    "shop": "5",
    "salesman": "10",
    "sub_agent": "15",
    "agent": "20",
}


class TestConstruction:

    def test_valid_table(self):
        table = PercentageTable.from_mapping(VALID)
        assert table.supplier == Decimal("60")
        assert table.agent == Decimal("20")

    def test_exactly_100_is_allowed(self):
        table = PercentageTable(
            supplier=Decimal("75"), shop=Decimal("5"), salesman=Decimal("10"),
            sub_agent=Decimal("15"), agent=Decimal("20"),
        )
        assert table.supplier + table.shop + table.agent == Decimal("100")

    def test_sum_over_100_rejected(self):
        with pytest.raises(InvalidPercentageTableError, match="exceeds 100"):
            PercentageTable(
                supplier=Decimal("76"), shop=Decimal("5"), salesman=Decimal("10"),
                sub_agent=Decimal("15"), agent=Decimal("20"),
            )

    @pytest.mark.parametrize("value", [Decimal("-1"), Decimal("100.01")])
    def test_out_of_range_rejected(self, value):
        with pytest.raises(InvalidPercentageTableError, match="outside"):
            PercentageTable(
                supplier=Decimal("0"), shop=value, salesman=Decimal("0"),
                sub_agent=Decimal("0"), agent=Decimal("0"),
            )

    def test_float_rejected(self):
        with pytest.raises(InvalidPercentageTableError):
            PercentageTable(
                supplier=60.0, shop=Decimal("5"), salesman=Decimal("10"),
                sub_agent=Decimal("15"), agent=Decimal("20"),
            )

    def test_table_is_frozen(self):
        table = PercentageTable.from_mapping(VALID)
        with pytest.raises(AttributeError):
            table.supplier = Decimal("1")


class TestFromMapping:

    def test_missing_key_never_defaults_to_zero(self):
        values = dict(VALID)
        del values["shop"]
        with pytest.raises(MissingPercentageError) as exc_info:
            PercentageTable.from_mapping(values)
        assert exc_info.value.key == "shop"

    def test_none_value_is_missing(self):
        with pytest.raises(MissingPercentageError):
            PercentageTable.from_mapping({**VALID, "agent": None})

    def test_accepts_legacy_spellings(self):
        values = {
            "supplier": 60, "shop": 5, "sales": 10, "subAgent": 15, "agent": 20,
        }
        table = PercentageTable.from_mapping(values)
        assert table.salesman == Decimal("10")
        assert table.sub_agent == Decimal("15")

    def test_non_numeric_rejected(self):
        with pytest.raises(InvalidPercentageTableError, match="numeric"):
            PercentageTable.from_mapping({**VALID, "supplier": "sixty"})

    def test_as_dict_round_trips(self):
        table = PercentageTable.from_mapping(VALID)
        assert PercentageTable.from_mapping(table.as_dict()) == table


class TestTierLookup:

    @pytest.mark.parametrize(
        "kind, expected",
        [
            (SellerKind.SALESMAN, Decimal("10")),
            (SellerKind.SUB_AGENT, Decimal("15")),
            (SellerKind.AGENT, Decimal("20")),
            (SellerKind.NONE, None),
        ],
    )
    def test_tier(self, kind, expected):
        assert PercentageTable.from_mapping(VALID).tier(kind) == expected

    def test_price_quote_tier_price(self):
        quote = PriceQuote(
            metric_id=None,
            price=Decimal("12"),
            net_price=Decimal("10"),
            salesman_price=Decimal("11"),
        )
        assert quote.tier_price(SellerKind.SALESMAN) == Decimal("11")
        assert quote.tier_price(SellerKind.AGENT) == Decimal("0")
        assert quote.tier_price(SellerKind.NONE) == Decimal("0")


def test_static_source_satisfies_protocol():
    source = StaticPercentageSource(PercentageTable.from_mapping(VALID))
    assert isinstance(source, PercentageSource)
    assert source.all_percentages().shop == Decimal("5")
