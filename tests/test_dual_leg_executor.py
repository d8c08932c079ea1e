from __future__ import annotations

import pytest

from basisbot.engine.executor import DualLegExecutor
from basisbot.engine.spread import SpreadSynchronizer
from basisbot.errors import FillFailureError, OrderPlacementError, SpreadTimeoutError
from basisbot.models import Leg, LotPlan, OrderSide, OrderStatus
from tests.fakes.fake_venue import FakeLeg, filled_order, pending_order


def _executor(futures, spot, sleeper, *, max_attempts=None) -> DualLegExecutor:
    synchronizer = SpreadSynchronizer(
        futures,
        spot,
        max_diff_percent=0.1,
        poll_interval=5.0,
        sleep=sleeper,
        max_attempts=max_attempts,
    )
    return DualLegExecutor(futures, spot, synchronizer, followup_delay=2.0, sleep=sleeper)


@pytest.mark.asyncio
async def test_open_lot_converts_notional_with_gated_prices(sleeper):
    futures = FakeLeg(Leg.FUTURES, 100.05)
    spot = FakeLeg(Leg.SPOT, 100.0)
    plan = LotPlan(lot_number=1, total_lots=1, notional_usd=100.0)

    execution = await _executor(futures, spot, sleeper).execute_lot(
        "BTCUSDT", plan, futures_side=OrderSide.SELL, spot_side=OrderSide.BUY
    )

    assert futures.orders[0]["side"] is OrderSide.SELL
    assert futures.orders[0]["quantity"] == pytest.approx(100.0 / 100.05)
    assert spot.orders[0]["side"] is OrderSide.BUY
    assert spot.orders[0]["quantity"] == pytest.approx(1.0)
    assert execution.spread.within_threshold
    assert execution.futures.filled and execution.spot.filled


@pytest.mark.asyncio
async def test_no_order_while_spread_is_wide(sleeper):
    futures = FakeLeg(Leg.FUTURES, [102.0, 101.0, 100.01])
    spot = FakeLeg(Leg.SPOT, 100.0)
    plan = LotPlan(lot_number=1, total_lots=1, futures_quantity=1.0, spot_quantity=1.0)

    execution = await _executor(futures, spot, sleeper).execute_lot(
        "BTCUSDT", plan, futures_side=OrderSide.BUY, spot_side=OrderSide.SELL
    )

    assert len(futures.orders) == 1
    assert len(spot.orders) == 1
    assert execution.spread.futures_price == 100.01
    assert sleeper.calls == [5.0, 5.0]


@pytest.mark.asyncio
async def test_capped_spread_wait_submits_nothing(sleeper):
    futures = FakeLeg(Leg.FUTURES, 110.0)
    spot = FakeLeg(Leg.SPOT, 100.0)
    plan = LotPlan(lot_number=1, total_lots=1, futures_quantity=1.0, spot_quantity=1.0)

    with pytest.raises(SpreadTimeoutError):
        await _executor(futures, spot, sleeper, max_attempts=1).execute_lot(
            "BTCUSDT", plan, futures_side=OrderSide.BUY, spot_side=OrderSide.SELL
        )

    assert futures.orders == []
    assert spot.orders == []


@pytest.mark.asyncio
async def test_pending_order_is_polled_once_after_delay(sleeper):
    futures = FakeLeg(Leg.FUTURES, 100.0)
    spot = FakeLeg(Leg.SPOT, 100.0)
    futures.scripted_orders.append(pending_order("f-1", OrderSide.SELL))
    futures.order_updates["f-1"] = filled_order("f-1", OrderSide.SELL, 0.5, 100.1)
    plan = LotPlan(lot_number=1, total_lots=1, notional_usd=50.0)

    execution = await _executor(futures, spot, sleeper).execute_lot(
        "BTCUSDT", plan, futures_side=OrderSide.SELL, spot_side=OrderSide.BUY
    )

    assert sleeper.calls == [2.0]
    assert futures.order_status_calls == ["f-1"]
    assert spot.order_status_calls == []
    assert execution.futures.executed_quantity == 0.5
    assert execution.futures.status is OrderStatus.FILLED


@pytest.mark.asyncio
async def test_zero_fill_after_follow_up_is_fatal(sleeper):
    futures = FakeLeg(Leg.FUTURES, 100.0)
    spot = FakeLeg(Leg.SPOT, 100.0)
    spot.scripted_orders.append(pending_order("s-1", OrderSide.BUY))
    spot.order_updates["s-1"] = pending_order("s-1", OrderSide.BUY)
    plan = LotPlan(lot_number=3, total_lots=5, notional_usd=50.0)

    with pytest.raises(FillFailureError) as excinfo:
        await _executor(futures, spot, sleeper).execute_lot(
            "BTCUSDT", plan, futures_side=OrderSide.SELL, spot_side=OrderSide.BUY
        )

    assert excinfo.value.spot.executed_quantity == 0
    assert excinfo.value.futures.filled
    assert spot.order_status_calls == ["s-1"]


@pytest.mark.asyncio
async def test_order_placement_error_propagates(sleeper):
    futures = FakeLeg(Leg.FUTURES, 100.0)
    spot = FakeLeg(Leg.SPOT, 100.0)
    futures.scripted_orders.append(OrderPlacementError("rejected"))
    plan = LotPlan(lot_number=1, total_lots=1, futures_quantity=1.0, spot_quantity=1.0)

    with pytest.raises(OrderPlacementError):
        await _executor(futures, spot, sleeper).execute_lot(
            "BTCUSDT", plan, futures_side=OrderSide.BUY, spot_side=OrderSide.SELL
        )

    # both legs are dispatched together
    assert len(spot.orders) == 1


@pytest.mark.asyncio
async def test_invalid_quantity_is_rejected_before_submission(sleeper):
    futures = FakeLeg(Leg.FUTURES, 100.0)
    spot = FakeLeg(Leg.SPOT, 100.0)
    plan = LotPlan(lot_number=1, total_lots=1, futures_quantity=0.0, spot_quantity=1.0)

    with pytest.raises(OrderPlacementError):
        await _executor(futures, spot, sleeper).execute_lot(
            "BTCUSDT", plan, futures_side=OrderSide.BUY, spot_side=OrderSide.SELL
        )

    assert futures.orders == [] and spot.orders == []
