"""
ledger_kernel.domain.types -- Status enums and movement request DTOs.

ZERO I/O.  Frozen dataclasses with str-enum fields; persisted rows store
the enum ``.value``.

Invariants enforced:
    - A movement request names at most one seller tier.
    - Amounts are strictly positive Decimals (never float).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any
from uuid import UUID

from ledger_kernel.exceptions import InvalidMovementRequestError


# =============================================================================
# Status enums
# =============================================================================


class MovementEvent(str, Enum):
    """Direction of a stock movement."""

    STOCK_IN = "stock_in"  # Goods entering inventory
    STOCK_OUT = "stock_out"  # Goods leaving inventory (a sale)


class MovementStatus(str, Enum):
    """Stock movement lifecycle status."""

    CREATED = "created"  # Price captured, awaiting settlement
    SETTLED = "settled"  # Running balance and commissions computed
    CANCELED = "canceled"  # Withdrawn before settlement
    REMOVED = "removed"  # Administratively removed (external tooling)


class BatchStatus(str, Enum):
    """Stock batch lifecycle status."""

    PROCESSING = "processing"  # Batch row exists, movements being created
    COMPLETED = "completed"  # All movements created, awaiting settlement
    SETTLED = "settled"  # Every created movement settled
    CANCELED = "canceled"  # Withdrawn before settlement
    FAILED = "failed"  # Creation or settlement transaction aborted


class SellerKind(str, Enum):
    """Commission tier of the party that sold the stock."""

    SALESMAN = "salesman"
    SUB_AGENT = "sub_agent"
    AGENT = "agent"
    NONE = "none"


class CommissionKind(str, Enum):
    """Tag of a commission record."""

    SALESMAN = "salesman"
    SUB_AGENT = "sub_agent"
    AGENT = "agent"
    DISTRIBUTOR = "distributor"
    SHOP = "shop"


# Batch statuses from which cancellation is allowed
CANCELABLE_BATCH_STATUSES = frozenset({BatchStatus.PROCESSING, BatchStatus.COMPLETED})

DEFAULT_BATCH_TYPE = "stock_creation"


# =============================================================================
# Requests
# =============================================================================


@dataclass(frozen=True)
class SellerRef:
    """The (optional) seller of a movement: one tier and its party id."""

    kind: SellerKind = SellerKind.NONE
    party_id: UUID | None = None

    def __post_init__(self) -> None:
        if self.kind == SellerKind.NONE and self.party_id is not None:
            raise InvalidMovementRequestError("seller", "has a party id but no tier")
        if self.kind != SellerKind.NONE and self.party_id is None:
            raise InvalidMovementRequestError("seller", f"tier {self.kind.value} has no party id")

    @classmethod
    def salesman(cls, party_id: UUID) -> SellerRef:
        return cls(SellerKind.SALESMAN, party_id)

    @classmethod
    def sub_agent(cls, party_id: UUID) -> SellerRef:
        return cls(SellerKind.SUB_AGENT, party_id)

    @classmethod
    def agent(cls, party_id: UUID) -> SellerRef:
        return cls(SellerKind.AGENT, party_id)


@dataclass(frozen=True)
class MovementRequest:
    """One requested stock movement, before any price has been captured.

    ``shop_id`` is a reporting reference only; it does not change the
    commission calculation.
    """

    metric_id: UUID
    stock_event: MovementEvent
    amount: Decimal
    seller: SellerRef = field(default_factory=SellerRef)
    shop_id: UUID | None = None
    description: str | None = None

    def validate(self, index: int | None = None) -> None:
        """Raise InvalidMovementRequestError if the request is malformed."""
        if not isinstance(self.metric_id, UUID):
            raise InvalidMovementRequestError("metric_id", "must be a UUID", index)
        if not isinstance(self.stock_event, MovementEvent):
            raise InvalidMovementRequestError(
                "stock_event", "must be stock_in or stock_out", index,
            )
        if isinstance(self.amount, bool) or not isinstance(self.amount, (Decimal, int)):
            raise InvalidMovementRequestError("amount", "must be a Decimal", index)
        if not Decimal(self.amount).is_finite() or Decimal(self.amount) <= 0:
            raise InvalidMovementRequestError("amount", "must be positive", index)
        if not isinstance(self.seller, SellerRef):
            raise InvalidMovementRequestError("seller", "must be a SellerRef", index)
        if self.shop_id is not None and not isinstance(self.shop_id, UUID):
            raise InvalidMovementRequestError("shop_id", "must be a UUID", index)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MovementRequest:
        """Build a request from a raw mapping (API payload, CSV row, YAML).

        Accepts ``metric_id``, ``stock_event``, ``amount`` and at most one of
        ``salesman_id`` / ``sub_agent_id`` / ``agent_id``.
        """
        try:
            metric_id = UUID(str(data["metric_id"]))
        except KeyError:
            raise InvalidMovementRequestError("metric_id", "is required") from None
        except ValueError:
            raise InvalidMovementRequestError("metric_id", "must be a UUID") from None

        try:
            stock_event = MovementEvent(data.get("stock_event"))
        except ValueError:
            raise InvalidMovementRequestError(
                "stock_event", "must be stock_in or stock_out",
            ) from None

        raw_amount = data.get("amount")
        if raw_amount is None or isinstance(raw_amount, bool):
            raise InvalidMovementRequestError("amount", "is required")
        try:
            amount = Decimal(str(raw_amount))
        except InvalidOperation:
            raise InvalidMovementRequestError("amount", "must be numeric") from None

        sellers = [
            (kind, data[key])
            for kind, key in (
                (SellerKind.SALESMAN, "salesman_id"),
                (SellerKind.SUB_AGENT, "sub_agent_id"),
                (SellerKind.AGENT, "agent_id"),
            )
            if data.get(key) is not None
        ]
        if len(sellers) > 1:
            raise InvalidMovementRequestError("seller", "names more than one tier")
        seller = SellerRef()
        if sellers:
            kind, raw_party = sellers[0]
            try:
                seller = SellerRef(kind, UUID(str(raw_party)))
            except ValueError:
                raise InvalidMovementRequestError(
                    f"{kind.value}_id", "must be a UUID",
                ) from None

        shop_id = None
        if data.get("shop_id") is not None:
            try:
                shop_id = UUID(str(data["shop_id"]))
            except ValueError:
                raise InvalidMovementRequestError("shop_id", "must be a UUID") from None

        request = cls(
            metric_id=metric_id,
            stock_event=stock_event,
            amount=amount,
            seller=seller,
            shop_id=shop_id,
            description=data.get("description"),
        )
        request.validate()
        return request
