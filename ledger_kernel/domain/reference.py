"""
Reference data -- price quotes, commission percentages and their sources.

Responsibility:
    Defines the read-only collaborator contracts the settlement core
    consumes: a ``PriceSource`` returning the latest price for a metric and
    a ``PercentageSource`` returning the current commission percentages.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  SQL-backed implementations live in
    ``ledger_kernel.services.reference_data_service``.

Invariants enforced:
    - The percentage table is a fixed struct, never a free-form mapping.
      Every key is required; a missing key raises MissingPercentageError
      instead of silently counting as 0.
    - Each percentage lies within [0, 100] and
      supplier + shop + max(salesman, sub_agent, agent) <= 100.

Failure modes:
    - InvalidPercentageTableError on out-of-range or over-allocated tables.
    - MissingPercentageError when building a table from an incomplete mapping.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from ledger_kernel.domain.types import SellerKind
from ledger_kernel.exceptions import InvalidPercentageTableError, MissingPercentageError

HUNDRED = Decimal("100")

# Canonical percentage keys, in storage order
PERCENTAGE_KEYS: tuple[str, ...] = ("supplier", "shop", "salesman", "sub_agent", "agent")

# Spellings accepted from external sources
_KEY_ALIASES: dict[str, str] = {"subAgent": "sub_agent", "sales": "salesman"}


@dataclass(frozen=True)
class PriceQuote:
    """Latest unit prices for a metric.

    ``price`` is the gross unit price, ``net_price`` the basis all
    commissions are computed on, and the tier prices are per-unit prices
    charged to each seller tier.
    """

    metric_id: UUID
    price: Decimal
    net_price: Decimal
    salesman_price: Decimal = Decimal("0")
    sub_agent_price: Decimal = Decimal("0")
    agent_price: Decimal = Decimal("0")
    effective_at: datetime | None = None

    def tier_price(self, kind: SellerKind) -> Decimal:
        """Unit price for the given seller tier (0 when there is no seller)."""
        if kind == SellerKind.SALESMAN:
            return self.salesman_price
        if kind == SellerKind.SUB_AGENT:
            return self.sub_agent_price
        if kind == SellerKind.AGENT:
            return self.agent_price
        return Decimal("0")


@dataclass(frozen=True)
class PercentageTable:
    """Named commission percentages, validated on construction."""

    supplier: Decimal
    shop: Decimal
    salesman: Decimal
    sub_agent: Decimal
    agent: Decimal

    def __post_init__(self) -> None:
        for key in PERCENTAGE_KEYS:
            value = getattr(self, key)
            if isinstance(value, bool) or not isinstance(value, (Decimal, int)):
                raise InvalidPercentageTableError(f"{key} must be a Decimal")
            if not Decimal(value).is_finite() or not (0 <= value <= HUNDRED):
                raise InvalidPercentageTableError(f"{key}={value} is outside [0, 100]")
        total = self.supplier + self.shop + max(self.salesman, self.sub_agent, self.agent)
        if total > HUNDRED:
            raise InvalidPercentageTableError(
                f"supplier + shop + largest tier = {total} exceeds 100"
            )

    def tier(self, kind: SellerKind) -> Decimal | None:
        """Percentage ceded to the given seller tier, or None without a seller."""
        if kind == SellerKind.SALESMAN:
            return self.salesman
        if kind == SellerKind.SUB_AGENT:
            return self.sub_agent
        if kind == SellerKind.AGENT:
            return self.agent
        return None

    def as_dict(self) -> dict[str, Decimal]:
        return {key: getattr(self, key) for key in PERCENTAGE_KEYS}

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> PercentageTable:
        """Build a table from a key -> percent mapping.

        Raises:
            MissingPercentageError: If any required key is absent.
            InvalidPercentageTableError: If a value is not numeric or the
                table fails range validation.
        """
        normalized = {_KEY_ALIASES.get(k, k): v for k, v in values.items()}
        parsed: dict[str, Decimal] = {}
        for key in PERCENTAGE_KEYS:
            if normalized.get(key) is None:
                raise MissingPercentageError(key)
            raw = normalized[key]
            if isinstance(raw, bool):
                raise InvalidPercentageTableError(f"{key} must be numeric")
            try:
                parsed[key] = Decimal(str(raw))
            except InvalidOperation:
                raise InvalidPercentageTableError(f"{key} must be numeric") from None
        return cls(**parsed)


@runtime_checkable
class PriceSource(Protocol):
    """Read-only lookup of the latest price for a metric."""

    def latest_price(self, metric_id: UUID) -> PriceQuote | None: ...


@runtime_checkable
class PercentageSource(Protocol):
    """Read-only lookup of the current commission percentages.

    Implementations are read through on every call; settlement never
    caches a table across movements.
    """

    def all_percentages(self) -> PercentageTable: ...


class StaticPercentageSource:
    """PercentageSource over a fixed table (configuration defaults, tests)."""

    def __init__(self, table: PercentageTable):
        self._table = table

    def all_percentages(self) -> PercentageTable:
        return self._table
