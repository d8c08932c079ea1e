"""Concurrent submission of both legs of a lot."""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Tuple

from basisbot.errors import BasisBotError, FillFailureError, OrderPlacementError
from basisbot.metrics.lots import FILL_FAILURES_TOTAL
from basisbot.models import Leg, LegOrderResult, LotExecution, LotPlan, OrderSide, SpreadSample
from exchanges.base import VenueLegClient

from .retry import Sleep
from .spread import SpreadSynchronizer


LOGGER = logging.getLogger(__name__)


class DualLegExecutor:
    """Gate on the spread, fire both legs together and verify both filled."""

    def __init__(
        self,
        futures: VenueLegClient,
        spot: VenueLegClient,
        synchronizer: SpreadSynchronizer,
        *,
        followup_delay: float = 2.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._futures = futures
        self._spot = spot
        self._synchronizer = synchronizer
        self.followup_delay = float(followup_delay)
        self._sleep = sleep

    @staticmethod
    def _leg_quantities(plan: LotPlan, sample: SpreadSample) -> Tuple[float, float]:
        if plan.notional_usd is not None:
            futures_qty = plan.notional_usd / sample.futures_price
            spot_qty = plan.notional_usd / sample.spot_price
        else:
            futures_qty = plan.futures_quantity
            spot_qty = plan.spot_quantity
        for leg, qty in ((Leg.FUTURES, futures_qty), (Leg.SPOT, spot_qty)):
            if not math.isfinite(qty) or qty <= 0:
                raise OrderPlacementError(
                    f"invalid {leg.value} quantity {qty} for lot {plan.lot_number}"
                )
        return futures_qty, spot_qty

    @staticmethod
    async def _refresh(
        client: VenueLegClient, symbol: str, result: LegOrderResult, leg: Leg
    ) -> LegOrderResult:
        if not result.awaiting_fill or not result.order_id:
            return result
        try:
            refreshed = await client.get_order(symbol, result.order_id)
        except BasisBotError as exc:
            LOGGER.warning(
                "%s order %s status check failed: %s",
                leg.value,
                result.order_id,
                exc,
                extra={"symbol": symbol},
            )
            return result
        LOGGER.info(
            "%s order %s status after follow-up: %s executed=%s",
            leg.value,
            result.order_id,
            refreshed.status.value,
            refreshed.executed_quantity,
            extra={"symbol": symbol},
        )
        return refreshed

    async def confirm_fill(
        self, client: VenueLegClient, symbol: str, result: LegOrderResult, leg: Leg
    ) -> LegOrderResult:
        """Poll a single order once when the venue accepted it without a fill."""

        if not result.awaiting_fill:
            return result
        LOGGER.info(
            "%s order %s accepted without fill, checking status in %.1fs",
            leg.value,
            result.order_id,
            self.followup_delay,
            extra={"symbol": symbol},
        )
        await self._sleep(self.followup_delay)
        return await self._refresh(client, symbol, result, leg)

    async def execute_lot(
        self,
        symbol: str,
        plan: LotPlan,
        *,
        futures_side: OrderSide,
        spot_side: OrderSide,
    ) -> LotExecution:
        sample = await self._synchronizer.wait_for_good_spread(symbol)
        if not sample.within_threshold:
            raise BasisBotError(
                f"refusing to submit lot {plan.lot_number}: spread {sample.diff_percent:.4f}% "
                "outside threshold"
            )
        futures_qty, spot_qty = self._leg_quantities(plan, sample)
        LOGGER.info(
            "lot %d/%d: futures %s %.8f, spot %s %.8f",
            plan.lot_number,
            plan.total_lots,
            futures_side.value,
            futures_qty,
            spot_side.value,
            spot_qty,
            extra={"symbol": symbol},
        )

        outcomes = await asyncio.gather(
            self._futures.place_market_order(symbol, futures_side, futures_qty),
            self._spot.place_market_order(symbol, spot_side, spot_qty),
            return_exceptions=True,
        )
        futures_outcome, spot_outcome = outcomes
        for leg, outcome in ((Leg.FUTURES, futures_outcome), (Leg.SPOT, spot_outcome)):
            if isinstance(outcome, LegOrderResult):
                continue
            other = spot_outcome if leg is Leg.FUTURES else futures_outcome
            if isinstance(other, LegOrderResult):
                LOGGER.error(
                    "%s leg failed while the other leg returned order %s (executed=%s)",
                    leg.value,
                    other.order_id,
                    other.executed_quantity,
                    extra={"symbol": symbol},
                )
            if isinstance(outcome, BaseException):
                raise outcome
        assert isinstance(futures_outcome, LegOrderResult)
        assert isinstance(spot_outcome, LegOrderResult)
        futures_result: LegOrderResult = futures_outcome
        spot_result: LegOrderResult = spot_outcome

        if futures_result.awaiting_fill or spot_result.awaiting_fill:
            LOGGER.info(
                "order accepted without fill, checking status in %.1fs",
                self.followup_delay,
                extra={"symbol": symbol},
            )
            await self._sleep(self.followup_delay)
            futures_result, spot_result = await asyncio.gather(
                self._refresh(self._futures, symbol, futures_result, Leg.FUTURES),
                self._refresh(self._spot, symbol, spot_result, Leg.SPOT),
            )

        unfilled = [
            leg
            for leg, result in ((Leg.FUTURES, futures_result), (Leg.SPOT, spot_result))
            if not result.filled
        ]
        if unfilled:
            for leg in unfilled:
                FILL_FAILURES_TOTAL.labels(symbol=symbol, leg=leg.value).inc()
            raise FillFailureError(
                f"lot {plan.lot_number} not filled: futures executed "
                f"{futures_result.executed_quantity} (status {futures_result.status.value}), "
                f"spot executed {spot_result.executed_quantity} "
                f"(status {spot_result.status.value})",
                futures=futures_result,
                spot=spot_result,
            )

        return LotExecution(
            lot_number=plan.lot_number,
            futures=futures_result,
            spot=spot_result,
            spread=sample,
        )


__all__ = ["DualLegExecutor"]
