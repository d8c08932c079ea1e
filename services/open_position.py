"""Open a short-futures / long-spot basis position lot by lot."""

from __future__ import annotations

import asyncio
import logging
from typing import List

from basisbot.config.schema import EngineConfig
from basisbot.engine.accumulator import RunAccumulator
from basisbot.engine.executor import DualLegExecutor
from basisbot.engine.lots import AbsoluteLotPlanner, LotAction
from basisbot.engine.retry import Sleep
from basisbot.errors import BasisBotError
from basisbot.metrics.lots import LOTS_EXECUTED_TOTAL
from basisbot.models import (
    LotExecution,
    OrderSide,
    RunMode,
    RunResult,
    RunState,
    RunStatus,
)
from exchanges.base import VenueLegClient


LOGGER = logging.getLogger(__name__)


class OpenPositionStrategy:
    def __init__(
        self,
        futures: VenueLegClient,
        spot: VenueLegClient,
        executor: DualLegExecutor,
        *,
        engine: EngineConfig | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._futures = futures
        self._spot = spot
        self._executor = executor
        self._engine = engine or EngineConfig()
        self._sleep = sleep
        self._states: List[RunState] = []

    @property
    def state_history(self) -> tuple[RunState, ...]:
        return tuple(self._states)

    def _enter(self, state: RunState) -> None:
        self._states.append(state)

    async def _balances_sufficient(self, symbol: str, lot_usd: float) -> bool:
        """Best-effort quote balance check; a failed lookup lets the lot proceed."""

        quote = self._engine.quote_asset
        required = lot_usd * self._engine.balance_share_per_leg
        try:
            futures_balance, spot_balance = await asyncio.gather(
                self._futures.get_balance(quote),
                self._spot.get_balance(quote),
            )
        except BasisBotError as exc:
            LOGGER.warning(
                "could not check balances, continuing: %s", exc, extra={"symbol": symbol}
            )
            return True
        futures_free = futures_balance.free if futures_balance else 0.0
        spot_free = spot_balance.free if spot_balance else 0.0
        LOGGER.info(
            "balances: futures %.2f %s, spot %.2f %s (required %.2f per leg)",
            futures_free,
            quote,
            spot_free,
            quote,
            required,
            extra={"symbol": symbol},
        )
        if futures_free < required or spot_free < required:
            LOGGER.warning(
                "insufficient balance for next lot: futures %.2f, spot %.2f, required %.2f",
                futures_free,
                spot_free,
                required,
                extra={"symbol": symbol},
            )
            return False
        return True

    async def run(self, symbol: str, total_usd: float, lot_usd: float) -> RunResult:
        self._states = []
        planner = AbsoluteLotPlanner(
            total_usd,
            lot_usd,
            floor_usd=self._engine.min_order_usd,
            dust_usd=self._engine.dust_usd,
        )
        LOGGER.info(
            "opening %s: total $%.2f in lots of $%.2f (%d lots)",
            symbol,
            total_usd,
            lot_usd,
            planner.total_lots,
            extra={"symbol": symbol},
        )
        accumulator = RunAccumulator()
        executions: List[LotExecution] = []
        remaining = float(total_usd)
        lot_number = 0
        status = RunStatus.COMPLETED

        try:
            while True:
                self._enter(RunState.PLANNING)
                decision = planner.next_lot(remaining, lot_number + 1)
                if decision.action is LotAction.DONE:
                    break
                if decision.action is LotAction.BELOW_FLOOR or decision.plan is None:
                    LOGGER.warning(
                        "remaining $%.2f is below the $%.2f minimum order, stopping",
                        remaining,
                        self._engine.min_order_usd,
                        extra={"symbol": symbol},
                    )
                    status = RunStatus.ABANDONED_BELOW_FLOOR
                    break
                plan = decision.plan
                lot_number = plan.lot_number

                self._enter(RunState.CHECKING_BALANCE)
                if not await self._balances_sufficient(symbol, plan.notional_usd or 0.0):
                    status = RunStatus.PARTIAL_BALANCE
                    break

                self._enter(RunState.EXECUTING_LOT)
                execution = await self._executor.execute_lot(
                    symbol, plan, futures_side=OrderSide.SELL, spot_side=OrderSide.BUY
                )

                self._enter(RunState.ACCUMULATING)
                executions.append(execution)
                accumulator = accumulator.add(execution)
                LOTS_EXECUTED_TOTAL.labels(mode=RunMode.OPEN.value, symbol=symbol).inc()
                executed = (execution.futures.executed_value + execution.spot.executed_value) / 2
                remaining -= executed
                LOGGER.info(
                    "lot %d done: futures %.8f @ %.6f, spot %.8f @ %.6f, remaining $%.2f",
                    lot_number,
                    execution.futures.executed_quantity,
                    execution.futures.avg_fill_price,
                    execution.spot.executed_quantity,
                    execution.spot.avg_fill_price,
                    max(remaining, 0.0),
                    extra={"symbol": symbol, "lot": lot_number},
                )
                if remaining > self._engine.dust_usd:
                    await self._sleep(self._engine.retry_delay_s)
        except BaseException:
            self._enter(RunState.FAILED)
            raise

        self._enter(RunState.DONE)
        return RunResult(
            mode=RunMode.OPEN,
            symbol=symbol,
            status=status,
            summary=accumulator.summary(),
            lots=tuple(executions),
            state_history=self.state_history,
        )


__all__ = ["OpenPositionStrategy"]
