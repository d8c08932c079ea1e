from __future__ import annotations

import pytest

from basisbot.engine.spread import SpreadSynchronizer
from basisbot.errors import PriceUnavailableError, SpreadTimeoutError
from basisbot.models import Leg, SpreadSample
from tests.fakes.fake_venue import FakeLeg


def _sync(futures, spot, sleeper, **kwargs) -> SpreadSynchronizer:
    return SpreadSynchronizer(
        futures,
        spot,
        max_diff_percent=kwargs.pop("max_diff_percent", 0.1),
        poll_interval=kwargs.pop("poll_interval", 5.0),
        sleep=sleeper,
        **kwargs,
    )


def test_spread_sample_uses_spot_as_denominator():
    above = SpreadSample.from_prices(110.0, 100.0, 0.1)
    below = SpreadSample.from_prices(90.0, 100.0, 0.1)

    assert above.diff_percent == pytest.approx(10.0)
    assert below.diff_percent == pytest.approx(10.0)
    assert not above.within_threshold


@pytest.mark.asyncio
async def test_spread_within_threshold_passes_immediately(sleeper):
    futures = FakeLeg(Leg.FUTURES, 100.05)
    spot = FakeLeg(Leg.SPOT, 100.0)

    sample = await _sync(futures, spot, sleeper).wait_for_good_spread("BTCUSDT")

    assert sample.within_threshold
    assert sample.diff_percent == pytest.approx(0.05)
    assert sleeper.calls == []


@pytest.mark.asyncio
async def test_wide_spread_is_polled_until_acceptable(sleeper):
    futures = FakeLeg(Leg.FUTURES, [101.0, 100.5, 100.02])
    spot = FakeLeg(Leg.SPOT, 100.0)

    sample = await _sync(futures, spot, sleeper).wait_for_good_spread("BTCUSDT")

    assert sample.futures_price == 100.02
    assert sleeper.calls == [5.0, 5.0]
    assert futures.price_calls == 3


@pytest.mark.asyncio
async def test_price_failure_is_retried(sleeper):
    futures = FakeLeg(Leg.FUTURES, [PriceUnavailableError("no price"), 100.0])
    spot = FakeLeg(Leg.SPOT, 100.0)

    sample = await _sync(futures, spot, sleeper).wait_for_good_spread("BTCUSDT", 1.5)

    assert sample.within_threshold
    assert sleeper.calls == [1.5]


@pytest.mark.asyncio
async def test_explicit_attempt_cap_raises(sleeper):
    futures = FakeLeg(Leg.FUTURES, 105.0)
    spot = FakeLeg(Leg.SPOT, 100.0)

    with pytest.raises(SpreadTimeoutError):
        await _sync(futures, spot, sleeper, max_attempts=2).wait_for_good_spread("BTCUSDT")

    assert sleeper.calls == [5.0]


@pytest.mark.asyncio
async def test_check_spread_rejects_non_positive_price(sleeper):
    futures = FakeLeg(Leg.FUTURES, 100.0)
    spot = FakeLeg(Leg.SPOT, 0.0)

    with pytest.raises(PriceUnavailableError):
        await _sync(futures, spot, sleeper).check_spread("BTCUSDT")
