from __future__ import annotations

import pytest

from basisbot.models import OrderSide, OrderStatus, PositionQuantitySource
from exchanges.responses import (
    decode_futures_balance,
    decode_futures_order,
    decode_position,
    decode_position_quantity,
    decode_spot_balance,
    decode_spot_order,
    decode_step_size,
)


@pytest.mark.parametrize(
    "entry, quantity, source",
    [
        (
            {"positionAmt": "-0.5", "markPrice": "60000", "notional": "-30000"},
            0.5,
            PositionQuantitySource.NOTIONAL_FIELD,
        ),
        (
            {"positionAmt": "-30000", "markPrice": "60000"},
            0.5,
            PositionQuantitySource.NOTIONAL_AMOUNT,
        ),
        (
            {"positionAmt": "-100", "markPrice": "50", "notional": "-100"},
            2.0,
            PositionQuantitySource.NOTIONAL_AMOUNT,
        ),
        (
            {"positionAmt": "-200", "markPrice": "0.25"},
            200.0,
            PositionQuantitySource.QUANTITY,
        ),
    ],
)
def test_position_quantity_heuristic(entry, quantity, source):
    decoded, decoded_source = decode_position_quantity(entry)

    assert decoded == pytest.approx(quantity)
    assert decoded_source is source


def test_contract_override_replaces_heuristic():
    entry = {"positionAmt": "-0.5", "markPrice": "60000"}

    assert decode_position_quantity(entry)[0] == pytest.approx(0.5 / 60000)
    assert decode_position_quantity(entry, "quantity") == (0.5, PositionQuantitySource.OVERRIDE)


def test_decode_position_keeps_sign_and_picks_symbol():
    payload = [
        {"symbol": "ETHUSDT", "positionAmt": "3", "markPrice": "2"},
        {"symbol": "BTCUSDT", "positionAmt": "-30000", "markPrice": "60000", "entryPrice": "59000"},
    ]

    position = decode_position(payload, "BTCUSDT")

    assert position.signed_quantity == pytest.approx(-0.5)
    assert position.quantity == pytest.approx(0.5)
    assert position.entry_price == 59000.0
    assert decode_position(payload, "SOLUSDT") is None


def test_futures_order_price_falls_back_to_price():
    order = decode_futures_order(
        {"orderId": 7, "side": "BUY", "status": "FILLED", "executedQty": "0.2", "avgPrice": "0", "price": "101"}
    )

    assert order.order_id == "7"
    assert order.side is OrderSide.BUY
    assert order.avg_fill_price == 101.0
    assert order.executed_value == pytest.approx(20.2)


def test_spot_order_price_from_weighted_fills():
    order = decode_spot_order(
        {
            "orderId": 9,
            "side": "SELL",
            "status": "FILLED",
            "executedQty": "3",
            "fills": [{"price": "100", "qty": "1"}, {"price": "103", "qty": "2"}],
        }
    )

    assert order.avg_fill_price == pytest.approx(102.0)


def test_spot_order_price_from_quote_quantity():
    order = decode_spot_order(
        {"orderId": 1, "side": "BUY", "status": "FILLED", "executedQty": "2", "cummulativeQuoteQty": "201"}
    )

    assert order.avg_fill_price == pytest.approx(100.5)


def test_executed_quantity_falls_back_to_orig_qty():
    order = decode_futures_order({"orderId": 2, "status": "NEW", "origQty": "0.4"}, OrderSide.SELL)

    assert order.executed_quantity == 0.4
    assert order.side is OrderSide.SELL
    assert order.status is OrderStatus.NEW


def test_unknown_status_is_tolerated():
    order = decode_futures_order({"orderId": 3, "side": "sell", "status": "pending_new"})

    assert order.status is OrderStatus.UNKNOWN
    assert order.side is OrderSide.SELL
    assert not order.filled


def test_balances_are_decoded_per_leg():
    futures = decode_futures_balance(
        {"assets": [{"asset": "USDT", "availableBalance": "150.5", "initialMargin": "20"}]}, "USDT"
    )
    spot = decode_spot_balance({"balances": [{"asset": "BTC", "free": "0.3", "locked": "0.1"}]}, "BTC")

    assert (futures.free, futures.locked) == (150.5, 20.0)
    assert (spot.free, spot.locked) == (0.3, 0.1)
    assert decode_spot_balance({"balances": []}, "ETH") is None


def test_step_size_lookup():
    payload = {
        "symbols": [
            {"symbol": "BTCUSDT", "filters": [{"filterType": "LOT_SIZE", "stepSize": "0.001"}]},
            {"symbol": "ETHUSDT", "filters": [{"filterType": "PRICE_FILTER", "tickSize": "0.01"}]},
        ]
    }

    assert decode_step_size(payload, "BTCUSDT") == "0.001"
    assert decode_step_size(payload, "ETHUSDT") is None
    with pytest.raises(LookupError):
        decode_step_size(payload, "SOLUSDT")
