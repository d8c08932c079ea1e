"""Close a percentage of a basis position, unwinding single legs when needed."""

from __future__ import annotations

import asyncio
import logging
from typing import List

from basisbot.config.schema import EngineConfig
from basisbot.engine.accumulator import RunAccumulator
from basisbot.engine.executor import DualLegExecutor
from basisbot.engine.lots import LotAction, PercentageLotPlanner
from basisbot.engine.retry import Sleep, retry_async
from basisbot.errors import BasisBotError, NoPositionError
from basisbot.metrics.lots import LOTS_EXECUTED_TOTAL, UNWIND_ORDERS_TOTAL
from basisbot.models import (
    Leg,
    LotExecution,
    ManualAction,
    OrderSide,
    PositionSnapshot,
    RunMode,
    RunResult,
    RunState,
    RunStatus,
    UnwindOrder,
)
from basisbot.util.symbols import base_asset
from exchanges.base import FuturesLegClient, VenueLegClient


LOGGER = logging.getLogger(__name__)


class _CloseRun:
    """Mutable bookkeeping for one close run."""

    def __init__(self, symbol: str, asset: str) -> None:
        self.symbol = symbol
        self.asset = asset
        self.accumulator = RunAccumulator()
        self.lots: List[LotExecution] = []
        self.unwind_orders: List[UnwindOrder] = []
        self.manual_actions: List[ManualAction] = []
        self.futures_closed = 0.0
        self.spot_closed = 0.0


class ClosePositionStrategy:
    def __init__(
        self,
        futures: FuturesLegClient,
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

    # ------------------------------------------------------------------
    # Venue reads
    # ------------------------------------------------------------------
    async def read_snapshot(self, symbol: str, asset: str) -> PositionSnapshot:
        async def _read() -> PositionSnapshot:
            position, balance = await asyncio.gather(
                self._futures.get_position(symbol),
                self._spot.get_balance(asset),
            )
            return PositionSnapshot.from_venue(position, balance)

        return await retry_async(
            _read,
            attempts=self._engine.position_retry_attempts,
            base_delay=self._engine.retry_delay_s,
            sleep=self._sleep,
            description=f"position read for {symbol}",
        )

    async def _futures_price(self, symbol: str) -> float:
        return await retry_async(
            lambda: self._futures.get_price(symbol),
            attempts=self._engine.position_retry_attempts,
            base_delay=self._engine.retry_delay_s,
            sleep=self._sleep,
            description=f"futures price for {symbol}",
        )

    # ------------------------------------------------------------------
    # Emergency unwind
    # ------------------------------------------------------------------
    def _manual(self, run: _CloseRun, leg: Leg, quantity: float, price: float, reason: str) -> None:
        action = ManualAction(
            leg=leg,
            asset=run.asset if leg is Leg.SPOT else run.symbol,
            quantity=quantity,
            value_usd=quantity * price,
            reason=reason,
        )
        run.manual_actions.append(action)
        UNWIND_ORDERS_TOTAL.labels(symbol=run.symbol, leg=leg.value, result="manual").inc()
        LOGGER.warning("manual action required: %s", action.describe(), extra={"symbol": run.symbol})

    async def _unwind_leg(self, run: _CloseRun, leg: Leg, quantity: float, price: float) -> None:
        """Send one unwind order; failures become manual-action items."""

        if leg is Leg.FUTURES:
            client: VenueLegClient = self._futures
            side = OrderSide.BUY
            reduce_only = True
        else:
            client = self._spot
            side = OrderSide.SELL
            reduce_only = False
        LOGGER.warning(
            "emergency unwind: %s %s %.8f%s",
            leg.value,
            side.value,
            quantity,
            " (reduce-only)" if reduce_only else "",
            extra={"symbol": run.symbol},
        )
        try:
            order = await client.place_market_order(
                run.symbol, side, quantity, reduce_only=reduce_only
            )
        except BasisBotError as exc:
            LOGGER.error(
                "emergency unwind %s order failed: %s", leg.value, exc, extra={"symbol": run.symbol}
            )
            run.unwind_orders.append(UnwindOrder(leg, quantity, None, str(exc)))
            UNWIND_ORDERS_TOTAL.labels(symbol=run.symbol, leg=leg.value, result="error").inc()
            self._manual(run, leg, quantity, price, f"unwind order failed: {exc}")
            return
        order = await self._executor.confirm_fill(client, run.symbol, order, leg)
        run.unwind_orders.append(UnwindOrder(leg, quantity, order))
        if not order.filled:
            UNWIND_ORDERS_TOTAL.labels(symbol=run.symbol, leg=leg.value, result="unfilled").inc()
            self._manual(
                run, leg, quantity, price, f"unwind order {order.order_id} reported no fill"
            )
            return
        UNWIND_ORDERS_TOTAL.labels(symbol=run.symbol, leg=leg.value, result="filled").inc()
        run.accumulator = run.accumulator.add_leg(leg, order)
        if leg is Leg.FUTURES:
            run.futures_closed += order.executed_quantity
        else:
            run.spot_closed += order.executed_quantity
        LOGGER.info(
            "emergency unwind %s filled %.8f @ %.6f",
            leg.value,
            order.executed_quantity,
            order.avg_fill_price,
            extra={"symbol": run.symbol},
        )

    async def _unwind_single_leg(
        self,
        run: _CloseRun,
        snapshot: PositionSnapshot,
        futures_target: float,
        spot_target: float,
    ) -> bool:
        """Close the only non-empty leg. Returns False when nothing is outstanding."""

        if snapshot.futures_quantity > self._engine.dust_quantity:
            leg = Leg.FUTURES
            live = snapshot.futures_quantity
            outstanding = futures_target - run.futures_closed
        else:
            leg = Leg.SPOT
            live = snapshot.spot_free_balance
            outstanding = spot_target - run.spot_closed
        quantity = min(max(outstanding, 0.0), live)
        LOGGER.warning(
            "leg imbalance: futures %.8f, spot %.8f; %s outstanding %.8f",
            snapshot.futures_quantity,
            snapshot.spot_free_balance,
            leg.value,
            quantity,
            extra={"symbol": run.symbol},
        )
        if quantity <= self._engine.dust_quantity:
            return False
        self._enter(RunState.UNWINDING)
        price = await self._futures_price(run.symbol)
        if leg is Leg.SPOT and quantity * price < self._engine.min_order_usd:
            self._manual(
                run,
                leg,
                quantity,
                price,
                f"below ${self._engine.min_order_usd:.2f} minimum order, close manually",
            )
            return True
        await self._unwind_leg(run, leg, quantity, price)
        return True

    async def _unwind_below_floor(
        self, run: _CloseRun, lot_number: int, futures_lot: float, spot_lot: float, price: float
    ) -> None:
        """Close the futures side of an undersized lot and report its spot side."""

        self._enter(RunState.UNWINDING)
        if futures_lot > self._engine.dust_quantity:
            await self._unwind_leg(run, Leg.FUTURES, futures_lot, price)
        if spot_lot > self._engine.dust_quantity:
            self._manual(
                run,
                Leg.SPOT,
                spot_lot,
                price,
                f"lot {lot_number} below ${self._engine.min_order_usd:.2f} minimum order, "
                "close manually",
            )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------
    async def run(self, symbol: str, close_percent: float, lot_percent: float) -> RunResult:
        self._states = []
        run = _CloseRun(symbol, base_asset(symbol))
        status = RunStatus.COMPLETED
        dust_qty = self._engine.dust_quantity

        try:
            self._enter(RunState.READING_POSITION)
            initial = await self.read_snapshot(symbol, run.asset)
            if initial.futures_quantity <= dust_qty and initial.spot_free_balance <= dust_qty:
                raise NoPositionError(f"No positions found to close for {symbol}")
            price = await self._futures_price(symbol)
            initial_futures_notional = initial.futures_quantity * price
            initial_spot_value = initial.spot_free_balance * price
            futures_target = initial.futures_quantity * close_percent / 100.0
            spot_target = initial.spot_free_balance * close_percent / 100.0
            LOGGER.info(
                "closing %.2f%% of %s in lots of %.2f%%: futures %.8f ($%.2f), "
                "spot %.8f %s ($%.2f), imbalance %.8f",
                close_percent,
                symbol,
                lot_percent,
                initial.futures_quantity,
                initial_futures_notional,
                initial.spot_free_balance,
                run.asset,
                initial_spot_value,
                initial.futures_quantity - initial.spot_free_balance,
                extra={"symbol": symbol},
            )
            LOGGER.info(
                "target: futures %.8f, spot %.8f",
                futures_target,
                spot_target,
                extra={"symbol": symbol},
            )

            planner = PercentageLotPlanner(
                close_percent,
                lot_percent,
                floor_usd=self._engine.min_order_usd,
                dust_usd=self._engine.dust_usd,
                initial_futures_notional=initial_futures_notional,
                initial_spot_value=initial_spot_value,
                symbol=symbol,
            )

            for lot_number in range(1, planner.total_lots + 1):
                self._enter(RunState.READING_POSITION)
                snapshot = initial if lot_number == 1 else await self.read_snapshot(symbol, run.asset)
                futures_empty = snapshot.futures_quantity <= dust_qty
                spot_empty = snapshot.spot_free_balance <= dust_qty
                if futures_empty and spot_empty:
                    LOGGER.info("both legs closed", extra={"symbol": symbol})
                    break
                if futures_empty or spot_empty:
                    if await self._unwind_single_leg(run, snapshot, futures_target, spot_target):
                        status = RunStatus.UNWOUND
                    break

                self._enter(RunState.PLANNING)
                if lot_number > 1:
                    price = await self._futures_price(symbol)
                decision = planner.next_lot(
                    lot_number, snapshot.futures_quantity, snapshot.spot_free_balance, price
                )
                if decision.action is LotAction.DONE:
                    break
                plan = decision.plan
                assert plan is not None
                if decision.action is LotAction.BELOW_FLOOR:
                    LOGGER.warning(
                        "lot %d below $%.2f minimum: futures $%.2f, spot $%.2f",
                        lot_number,
                        self._engine.min_order_usd,
                        decision.futures_notional,
                        decision.spot_notional,
                        extra={"symbol": symbol},
                    )
                    spot_lot = min(
                        plan.spot_quantity,
                        max(spot_target - run.spot_closed, 0.0),
                        snapshot.spot_free_balance,
                    )
                    await self._unwind_below_floor(
                        run, lot_number, plan.futures_quantity, spot_lot, price
                    )
                    status = RunStatus.UNWOUND
                    break

                self._enter(RunState.EXECUTING_LOT)
                execution = await self._executor.execute_lot(
                    symbol, plan, futures_side=OrderSide.BUY, spot_side=OrderSide.SELL
                )

                self._enter(RunState.ACCUMULATING)
                run.lots.append(execution)
                run.accumulator = run.accumulator.add(execution)
                run.futures_closed += execution.futures.executed_quantity
                run.spot_closed += execution.spot.executed_quantity
                LOTS_EXECUTED_TOTAL.labels(mode=RunMode.CLOSE.value, symbol=symbol).inc()
                LOGGER.info(
                    "lot %d/%d closed: futures %.8f @ %.6f, spot %.8f @ %.6f",
                    lot_number,
                    planner.total_lots,
                    execution.futures.executed_quantity,
                    execution.futures.avg_fill_price,
                    execution.spot.executed_quantity,
                    execution.spot.avg_fill_price,
                    extra={"symbol": symbol, "lot": lot_number},
                )
                if lot_number < planner.total_lots:
                    await self._sleep(self._engine.retry_delay_s)
        except BaseException:
            self._enter(RunState.FAILED)
            raise

        self._enter(RunState.DONE)
        return RunResult(
            mode=RunMode.CLOSE,
            symbol=symbol,
            status=status,
            summary=run.accumulator.summary(),
            lots=tuple(run.lots),
            unwind_orders=tuple(run.unwind_orders),
            manual_actions=tuple(run.manual_actions),
            state_history=self.state_history,
        )


__all__ = ["ClosePositionStrategy"]
