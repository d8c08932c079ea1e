from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Tuple


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Leg(str, Enum):
    FUTURES = "futures"
    SPOT = "spot"


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderStatus(str, Enum):
    NEW = "NEW"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    FILLED = "FILLED"
    CANCELED = "CANCELED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def _missing_(cls, value: object) -> "OrderStatus":
        if isinstance(value, str):
            upper = value.strip().upper()
            for member in cls:
                if member.value == upper:
                    return member
        return cls.UNKNOWN


class PositionQuantitySource(str, Enum):
    """How a futures position quantity was derived from the venue payload."""

    QUANTITY = "quantity"
    NOTIONAL_FIELD = "notional_field"
    NOTIONAL_AMOUNT = "notional_amount"
    OVERRIDE = "override"


class RunMode(str, Enum):
    OPEN = "open"
    CLOSE = "close"


class RunState(str, Enum):
    PLANNING = "PLANNING"
    CHECKING_BALANCE = "CHECKING_BALANCE"
    READING_POSITION = "READING_POSITION"
    EXECUTING_LOT = "EXECUTING_LOT"
    ACCUMULATING = "ACCUMULATING"
    UNWINDING = "UNWINDING"
    DONE = "DONE"
    FAILED = "FAILED"


class RunStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL_BALANCE = "partial_balance"
    ABANDONED_BELOW_FLOOR = "abandoned_below_floor"
    UNWOUND = "unwound"


@dataclass(frozen=True)
class PriceQuote:
    leg: Leg
    price: float
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class SpreadSample:
    futures_price: float
    spot_price: float
    diff_percent: float
    within_threshold: bool

    @classmethod
    def from_prices(
        cls, futures_price: float, spot_price: float, max_diff_percent: float
    ) -> "SpreadSample":
        if spot_price <= 0:
            raise ValueError(f"invalid spot price for spread calculation: {spot_price}")
        diff_percent = abs((futures_price - spot_price) / spot_price * 100.0)
        return cls(
            futures_price=float(futures_price),
            spot_price=float(spot_price),
            diff_percent=diff_percent,
            within_threshold=diff_percent <= max_diff_percent,
        )

    @classmethod
    def from_quotes(
        cls, futures: PriceQuote, spot: PriceQuote, max_diff_percent: float
    ) -> "SpreadSample":
        return cls.from_prices(futures.price, spot.price, max_diff_percent)


@dataclass(frozen=True)
class LotPlan:
    """Per-lot leg sizes.

    Open runs fill ``notional_usd`` and leave the quantities to be derived from
    the gated prices; close runs carry base-asset quantities directly.
    """

    lot_number: int
    total_lots: int
    futures_quantity: float = 0.0
    spot_quantity: float = 0.0
    notional_usd: float | None = None


@dataclass(frozen=True)
class LegOrderResult:
    order_id: str
    side: OrderSide
    executed_quantity: float
    avg_fill_price: float
    status: OrderStatus
    symbol: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def filled(self) -> bool:
        return self.executed_quantity > 0

    @property
    def executed_value(self) -> float:
        return self.executed_quantity * self.avg_fill_price

    @property
    def awaiting_fill(self) -> bool:
        return self.status is OrderStatus.NEW and self.executed_quantity == 0


@dataclass(frozen=True)
class Balance:
    asset: str
    free: float
    locked: float = 0.0


@dataclass(frozen=True)
class FuturesPosition:
    symbol: str
    signed_quantity: float
    entry_price: float
    mark_price: float
    unrealized_pnl: float
    quantity_source: PositionQuantitySource = PositionQuantitySource.QUANTITY

    @property
    def quantity(self) -> float:
        return abs(self.signed_quantity)


@dataclass(frozen=True)
class PositionSnapshot:
    futures_signed_amount: float
    spot_free_balance: float

    @property
    def futures_quantity(self) -> float:
        return abs(self.futures_signed_amount)

    @classmethod
    def from_venue(
        cls, position: FuturesPosition | None, balance: Balance | None
    ) -> "PositionSnapshot":
        return cls(
            futures_signed_amount=position.signed_quantity if position else 0.0,
            spot_free_balance=balance.free if balance else 0.0,
        )


@dataclass(frozen=True)
class LotExecution:
    lot_number: int
    futures: LegOrderResult
    spot: LegOrderResult
    spread: SpreadSample


@dataclass(frozen=True)
class UnwindOrder:
    leg: Leg
    requested_quantity: float
    order: LegOrderResult | None
    error: str | None = None


@dataclass(frozen=True)
class ManualAction:
    leg: Leg
    asset: str
    quantity: float
    value_usd: float
    reason: str

    def describe(self) -> str:
        return (
            f"{self.leg.value} remaining {self.quantity:.8f} {self.asset} "
            f"(~${self.value_usd:.2f} USD): {self.reason}"
        )


@dataclass(frozen=True)
class RunSummary:
    total_lots: int = 0
    total_futures_qty: float = 0.0
    total_spot_qty: float = 0.0
    avg_futures_price: float = 0.0
    avg_spot_price: float = 0.0
    total_futures_value: float = 0.0
    total_spot_value: float = 0.0
    total_combined_value: float = 0.0
    avg_spread_percent: float = 0.0


@dataclass(frozen=True)
class RunResult:
    mode: RunMode
    symbol: str
    status: RunStatus
    summary: RunSummary
    lots: Tuple[LotExecution, ...] = ()
    unwind_orders: Tuple[UnwindOrder, ...] = ()
    manual_actions: Tuple[ManualAction, ...] = ()
    state_history: Tuple[RunState, ...] = ()

    @property
    def partial(self) -> bool:
        return self.status is not RunStatus.COMPLETED


__all__ = [
    "Balance",
    "FuturesPosition",
    "Leg",
    "LegOrderResult",
    "LotExecution",
    "LotPlan",
    "ManualAction",
    "OrderSide",
    "OrderStatus",
    "PositionQuantitySource",
    "PositionSnapshot",
    "PriceQuote",
    "RunMode",
    "RunResult",
    "RunState",
    "RunStatus",
    "RunSummary",
    "SpreadSample",
    "UnwindOrder",
]
