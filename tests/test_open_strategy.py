from __future__ import annotations

import pytest

from basisbot.engine.executor import DualLegExecutor
from basisbot.engine.spread import SpreadSynchronizer
from basisbot.errors import FillFailureError, VenueRequestError
from basisbot.models import Leg, OrderSide, RunMode, RunState, RunStatus
from services.open_position import OpenPositionStrategy
from tests.fakes.fake_venue import FakeLeg, pending_order


def _strategy(futures, spot, sleeper, engine) -> OpenPositionStrategy:
    synchronizer = SpreadSynchronizer(
        futures,
        spot,
        max_diff_percent=engine.max_price_diff_percent,
        poll_interval=engine.retry_delay_s,
        sleep=sleeper,
    )
    executor = DualLegExecutor(
        futures, spot, synchronizer, followup_delay=engine.order_followup_delay_s, sleep=sleeper
    )
    return OpenPositionStrategy(futures, spot, executor, engine=engine, sleep=sleeper)


def _legs(futures_price=100.0, spot_price=100.0, *, futures_usdt=1_000_000.0, spot_usdt=1_000_000.0):
    futures = FakeLeg(Leg.FUTURES, futures_price, balances={"USDT": futures_usdt})
    spot = FakeLeg(Leg.SPOT, spot_price, balances={"USDT": spot_usdt})
    return futures, spot


@pytest.mark.asyncio
async def test_open_runs_all_lots(sleeper, engine_config):
    futures, spot = _legs(100.05, 100.0)

    result = await _strategy(futures, spot, sleeper, engine_config).run("BTCUSDT", 1000, 100)

    assert result.mode is RunMode.OPEN
    assert result.status is RunStatus.COMPLETED
    assert result.summary.total_lots == 10
    assert len(futures.orders) == 10
    assert all(order["side"] is OrderSide.SELL for order in futures.orders)
    assert all(order["side"] is OrderSide.BUY for order in spot.orders)
    assert result.summary.total_spot_qty == pytest.approx(10.0)
    assert result.summary.avg_spread_percent == pytest.approx(0.05)
    assert sleeper.calls == [1.0] * 9


@pytest.mark.asyncio
async def test_single_lot_state_history(sleeper, engine_config):
    futures, spot = _legs()

    strategy = _strategy(futures, spot, sleeper, engine_config)
    result = await strategy.run("BTCUSDT", 100, 100)

    assert result.state_history == (
        RunState.PLANNING,
        RunState.CHECKING_BALANCE,
        RunState.EXECUTING_LOT,
        RunState.ACCUMULATING,
        RunState.PLANNING,
        RunState.DONE,
    )
    assert sleeper.calls == []


@pytest.mark.asyncio
async def test_insufficient_balance_stops_with_partial_summary(sleeper, engine_config):
    futures, spot = _legs(spot_usdt=120.0)

    result = await _strategy(futures, spot, sleeper, engine_config).run("BTCUSDT", 1000, 100)

    assert result.status is RunStatus.PARTIAL_BALANCE
    assert result.partial
    assert result.summary.total_lots == 1
    assert len(spot.orders) == 1
    assert result.state_history[-2:] == (RunState.CHECKING_BALANCE, RunState.DONE)


@pytest.mark.asyncio
async def test_missing_quote_balance_counts_as_zero(sleeper, engine_config):
    futures, spot = _legs()
    spot.balances.clear()

    result = await _strategy(futures, spot, sleeper, engine_config).run("BTCUSDT", 100, 100)

    assert result.status is RunStatus.PARTIAL_BALANCE
    assert futures.orders == []


@pytest.mark.asyncio
async def test_balance_check_failure_is_ignored(sleeper, engine_config):
    futures, spot = _legs()
    futures.balance_errors.append(VenueRequestError("account endpoint down"))

    result = await _strategy(futures, spot, sleeper, engine_config).run("BTCUSDT", 100, 100)

    assert result.status is RunStatus.COMPLETED
    assert result.summary.total_lots == 1


@pytest.mark.asyncio
async def test_zero_fill_fails_the_run(sleeper, engine_config):
    futures, spot = _legs()
    spot.scripted_orders.append(pending_order("s-1", OrderSide.BUY))
    spot.order_updates["s-1"] = pending_order("s-1", OrderSide.BUY)
    strategy = _strategy(futures, spot, sleeper, engine_config)

    with pytest.raises(FillFailureError):
        await strategy.run("BTCUSDT", 200, 100)

    assert strategy.state_history[-1] is RunState.FAILED
    assert len(futures.orders) == 1


@pytest.mark.asyncio
async def test_target_below_floor_places_nothing(sleeper, engine_config):
    futures, spot = _legs()

    result = await _strategy(futures, spot, sleeper, engine_config).run("BTCUSDT", 4, 4)

    assert result.status is RunStatus.ABANDONED_BELOW_FLOOR
    assert result.summary.total_lots == 0
    assert futures.orders == [] and spot.orders == []
