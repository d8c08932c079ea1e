"""Explicit decoders for AsterDEX (Binance-compatible) REST payloads.

Futures and spot answer with slightly different shapes: average fill price
lives in ``avgPrice`` on futures but must be derived from
``cummulativeQuoteQty`` or ``fills`` on spot, and the futures ``positionAmt``
is a base quantity on some contracts and a USDT notional on others. Every
fallback is spelled out here so the engine only ever sees typed models.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Mapping

from basisbot.config.schema import ContractQuantityMode
from basisbot.models import (
    Balance,
    FuturesPosition,
    LegOrderResult,
    OrderSide,
    OrderStatus,
    PositionQuantitySource,
)

# |positionAmt * markPrice| beyond this multiple of |positionAmt| means the
# amount is already a notional
NOTIONAL_AMOUNT_RATIO = 10.0


def _float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _first_positive(*values: Any) -> float:
    for value in values:
        numeric = _float(value)
        if numeric > 0:
            return numeric
    return 0.0


def decode_price(payload: Any, field: str = "price") -> float:
    """Ticker price, or 0.0 when the field is missing or not a finite number."""

    if not isinstance(payload, Mapping):
        return 0.0
    price = _float(payload.get(field))
    return price if math.isfinite(price) else 0.0


def _side(value: Any, fallback: OrderSide | None) -> OrderSide:
    try:
        return OrderSide(str(value).upper())
    except ValueError:
        if fallback is None:
            raise
        return fallback


def _executed_quantity(payload: Mapping[str, Any]) -> float:
    if payload.get("executedQty") not in (None, ""):
        return _float(payload.get("executedQty"))
    return _float(payload.get("origQty"))


def decode_position_quantity(
    entry: Mapping[str, Any], mode: ContractQuantityMode = "auto"
) -> tuple[float, PositionQuantitySource]:
    """Return ``(abs_quantity, source)`` for a ``positionRisk`` row."""

    position_amt = _float(entry.get("positionAmt"))
    mark_price = _float(entry.get("markPrice"))
    notional = _float(entry.get("notional"))

    if mode == "quantity":
        return abs(position_amt), PositionQuantitySource.OVERRIDE
    if mode == "notional":
        if mark_price <= 0:
            return 0.0, PositionQuantitySource.OVERRIDE
        return abs(position_amt / mark_price), PositionQuantitySource.OVERRIDE

    if mark_price <= 0:
        return abs(position_amt), PositionQuantitySource.QUANTITY
    if notional != 0 and abs(notional) != abs(position_amt):
        return abs(notional / mark_price), PositionQuantitySource.NOTIONAL_FIELD
    if abs(position_amt * mark_price) > abs(position_amt) * NOTIONAL_AMOUNT_RATIO:
        return abs(position_amt / mark_price), PositionQuantitySource.NOTIONAL_AMOUNT
    return abs(position_amt), PositionQuantitySource.QUANTITY


def decode_position(
    payload: Any, symbol: str, mode: ContractQuantityMode = "auto"
) -> FuturesPosition | None:
    rows: Iterable[Any]
    if isinstance(payload, list):
        rows = payload
    elif isinstance(payload, Mapping):
        rows = [payload]
    else:
        return None
    entry = next(
        (row for row in rows if isinstance(row, Mapping) and str(row.get("symbol")) == symbol),
        None,
    )
    if entry is None:
        return None
    position_amt = _float(entry.get("positionAmt"))
    quantity, source = decode_position_quantity(entry, mode)
    return FuturesPosition(
        symbol=str(entry.get("symbol")),
        signed_quantity=-quantity if position_amt < 0 else quantity,
        entry_price=_float(entry.get("entryPrice")),
        mark_price=_float(entry.get("markPrice")),
        unrealized_pnl=_float(entry.get("unRealizedProfit")),
        quantity_source=source,
    )


def decode_futures_order(
    payload: Mapping[str, Any], side_hint: OrderSide | None = None
) -> LegOrderResult:
    return LegOrderResult(
        order_id=str(payload.get("orderId", "")),
        side=_side(payload.get("side"), side_hint),
        executed_quantity=_executed_quantity(payload),
        avg_fill_price=_first_positive(payload.get("avgPrice"), payload.get("price")),
        status=OrderStatus(str(payload.get("status") or "UNKNOWN")),
        symbol=str(payload.get("symbol") or ""),
        raw=dict(payload),
    )


def _spot_fill_price(payload: Mapping[str, Any], executed: float) -> float:
    quote_value = _float(payload.get("cummulativeQuoteQty"))
    if quote_value > 0 and executed > 0:
        return quote_value / executed
    fills = payload.get("fills")
    if isinstance(fills, list) and fills:
        total_qty = 0.0
        total_value = 0.0
        for fill in fills:
            if not isinstance(fill, Mapping):
                continue
            qty = _float(fill.get("qty"))
            price = _float(fill.get("price"))
            total_qty += qty
            total_value += qty * price
        if total_qty > 0:
            return total_value / total_qty
    return _first_positive(payload.get("avgPrice"), payload.get("price"))


def decode_spot_order(
    payload: Mapping[str, Any], side_hint: OrderSide | None = None
) -> LegOrderResult:
    executed = _executed_quantity(payload)
    return LegOrderResult(
        order_id=str(payload.get("orderId", "")),
        side=_side(payload.get("side"), side_hint),
        executed_quantity=executed,
        avg_fill_price=_spot_fill_price(payload, executed),
        status=OrderStatus(str(payload.get("status") or "UNKNOWN")),
        symbol=str(payload.get("symbol") or ""),
        raw=dict(payload),
    )


def decode_futures_balance(payload: Any, asset: str) -> Balance | None:
    assets = payload.get("assets") if isinstance(payload, Mapping) else None
    if not isinstance(assets, list):
        return None
    for row in assets:
        if isinstance(row, Mapping) and str(row.get("asset")) == asset:
            return Balance(
                asset=asset,
                free=_float(row.get("availableBalance")),
                locked=_float(row.get("initialMargin")),
            )
    return None


def decode_spot_balance(payload: Any, asset: str) -> Balance | None:
    balances = payload.get("balances") if isinstance(payload, Mapping) else None
    if not isinstance(balances, list):
        return None
    for row in balances:
        if isinstance(row, Mapping) and str(row.get("asset")) == asset:
            return Balance(
                asset=asset,
                free=_float(row.get("free")),
                locked=_float(row.get("locked")),
            )
    return None


def decode_step_size(payload: Any, symbol: str) -> str | None:
    """Return the ``LOT_SIZE`` step for *symbol* or ``None`` when absent."""

    symbols = payload.get("symbols") if isinstance(payload, Mapping) else None
    if not isinstance(symbols, list):
        return None
    for row in symbols:
        if not isinstance(row, Mapping) or str(row.get("symbol")) != symbol:
            continue
        for flt in row.get("filters") or []:
            if isinstance(flt, Mapping) and flt.get("filterType") == "LOT_SIZE":
                step = flt.get("stepSize")
                return str(step) if step not in (None, "") else None
        return None
    raise LookupError(f"Symbol {symbol} not found in exchange info")


__all__ = [
    "NOTIONAL_AMOUNT_RATIO",
    "decode_futures_balance",
    "decode_futures_order",
    "decode_price",
    "decode_position",
    "decode_position_quantity",
    "decode_spot_balance",
    "decode_spot_order",
    "decode_step_size",
]
