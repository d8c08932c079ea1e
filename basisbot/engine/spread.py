"""Futures/spot price synchronisation gate."""

from __future__ import annotations

import asyncio
import logging

from basisbot.errors import PriceUnavailableError, SpreadTimeoutError, VenueRequestError
from basisbot.metrics.lots import LAST_SPREAD_PERCENT, SPREAD_CHECKS_TOTAL
from basisbot.models import Leg, PriceQuote, SpreadSample
from exchanges.base import VenueLegClient

from .retry import Sleep


LOGGER = logging.getLogger(__name__)


class SpreadSynchronizer:
    """Polls both legs until their prices are within ``max_diff_percent``.

    Polling is unbounded unless ``max_attempts`` is given, in which case a
    :class:`SpreadTimeoutError` is raised once every attempt has been used.
    Failed price fetches count as attempts and are retried at the same
    interval.
    """

    def __init__(
        self,
        futures: VenueLegClient,
        spot: VenueLegClient,
        *,
        max_diff_percent: float,
        poll_interval: float,
        sleep: Sleep = asyncio.sleep,
        max_attempts: int | None = None,
    ) -> None:
        if max_diff_percent <= 0:
            raise ValueError("max_diff_percent must be positive")
        self._futures = futures
        self._spot = spot
        self.max_diff_percent = float(max_diff_percent)
        self.poll_interval = float(poll_interval)
        self._sleep = sleep
        self.max_attempts = max_attempts

    async def check_spread(self, symbol: str) -> SpreadSample:
        futures_price, spot_price = await asyncio.gather(
            self._futures.get_price(symbol),
            self._spot.get_price(symbol),
        )
        if futures_price <= 0 or spot_price <= 0:
            raise PriceUnavailableError(
                f"invalid prices for {symbol}: futures={futures_price} spot={spot_price}"
            )
        sample = SpreadSample.from_quotes(
            PriceQuote(Leg.FUTURES, futures_price),
            PriceQuote(Leg.SPOT, spot_price),
            self.max_diff_percent,
        )
        LAST_SPREAD_PERCENT.labels(symbol=symbol).set(sample.diff_percent)
        return sample

    async def wait_for_good_spread(
        self, symbol: str, poll_interval: float | None = None
    ) -> SpreadSample:
        interval = self.poll_interval if poll_interval is None else float(poll_interval)
        attempt = 0
        while True:
            attempt += 1
            try:
                sample = await self.check_spread(symbol)
            except (PriceUnavailableError, VenueRequestError) as exc:
                SPREAD_CHECKS_TOTAL.labels(symbol=symbol, outcome="error").inc()
                LOGGER.warning(
                    "spread check failed (attempt %d): %s",
                    attempt,
                    exc,
                    extra={"symbol": symbol},
                )
            else:
                if sample.within_threshold:
                    SPREAD_CHECKS_TOTAL.labels(symbol=symbol, outcome="within").inc()
                    LOGGER.info(
                        "spread acceptable: %.4f%% (futures=%s spot=%s)",
                        sample.diff_percent,
                        sample.futures_price,
                        sample.spot_price,
                        extra={"symbol": symbol},
                    )
                    return sample
                SPREAD_CHECKS_TOTAL.labels(symbol=symbol, outcome="wide").inc()
                LOGGER.info(
                    "spread too wide: %.4f%% > %.4f%% (attempt %d), waiting %.1fs",
                    sample.diff_percent,
                    self.max_diff_percent,
                    attempt,
                    interval,
                    extra={"symbol": symbol},
                )
            if self.max_attempts is not None and attempt >= self.max_attempts:
                raise SpreadTimeoutError(
                    f"spread for {symbol} not within {self.max_diff_percent}% "
                    f"after {attempt} attempts"
                )
            await self._sleep(interval)


__all__ = ["SpreadSynchronizer"]
