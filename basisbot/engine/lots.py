"""Lot partitioning for opening (USD sizes) and closing (position percentages)."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

from basisbot.errors import LotTooSmallError
from basisbot.models import LotPlan


LOGGER = logging.getLogger(__name__)

DEFAULT_FLOOR_USD = 5.0
DEFAULT_DUST_USD = 0.01


def _ceil_ratio(numerator: float, denominator: float) -> int:
    # 0.3 / 0.1 must give 3, not 4
    return max(1, math.ceil(round(numerator / denominator, 9)))


class LotAction(str, Enum):
    EXECUTE = "execute"
    DONE = "done"
    BELOW_FLOOR = "below_floor"


@dataclass(frozen=True)
class LotDecision:
    action: LotAction
    plan: LotPlan | None = None
    futures_notional: float = 0.0
    spot_notional: float = 0.0

    @property
    def executable(self) -> bool:
        return self.action is LotAction.EXECUTE


class AbsoluteLotPlanner:
    """Splits a USD target into lots of at most ``lot_usd``.

    A remainder between dust and the floor is folded into the current lot so
    that no order below the venue minimum is ever planned; a lot that still
    ends up below the floor stops the plan and the remainder is abandoned.
    """

    def __init__(
        self,
        total_usd: float,
        lot_usd: float,
        *,
        floor_usd: float = DEFAULT_FLOOR_USD,
        dust_usd: float = DEFAULT_DUST_USD,
    ) -> None:
        if total_usd <= 0 or lot_usd <= 0:
            raise ValueError("total_usd and lot_usd must be positive")
        if lot_usd > total_usd:
            raise ValueError("lot_usd cannot exceed total_usd")
        self.total_usd = float(total_usd)
        self.lot_usd = float(lot_usd)
        self.floor_usd = float(floor_usd)
        self.dust_usd = float(dust_usd)

    @property
    def total_lots(self) -> int:
        return _ceil_ratio(self.total_usd, self.lot_usd)

    def next_lot(self, remaining_usd: float, lot_number: int) -> LotDecision:
        if remaining_usd <= self.dust_usd:
            return LotDecision(LotAction.DONE)
        lot = min(self.lot_usd, remaining_usd)
        tail = remaining_usd - lot
        if self.dust_usd < tail < self.floor_usd:
            LOGGER.info(
                "merging remainder $%.2f into lot %d (below $%.2f minimum)",
                tail,
                lot_number,
                self.floor_usd,
            )
            lot = remaining_usd
        if lot < self.floor_usd:
            return LotDecision(LotAction.BELOW_FLOOR, futures_notional=lot, spot_notional=lot)
        plan = LotPlan(
            lot_number=lot_number,
            total_lots=self.total_lots,
            notional_usd=lot,
        )
        return LotDecision(LotAction.EXECUTE, plan=plan, futures_notional=lot, spot_notional=lot)

    def plan(self) -> Iterator[LotPlan]:
        """Yield the lot sequence assuming every lot fills exactly."""

        remaining = self.total_usd
        lot_number = 1
        while True:
            decision = self.next_lot(remaining, lot_number)
            if not decision.executable or decision.plan is None:
                return
            yield decision.plan
            remaining -= decision.plan.notional_usd or 0.0
            lot_number += 1


class PercentageLotPlanner:
    """Closes ``close_percent`` of a position in lots of ``lot_percent``.

    Both percentages refer to the position as it was when the run started.
    Each lot is sized as a fraction of what is left, so lot ``k`` takes
    ``min(Lp, P - (k-1)Lp) / (100 - (k-1)Lp)`` of the live remainder.
    """

    def __init__(
        self,
        close_percent: float,
        lot_percent: float,
        *,
        floor_usd: float = DEFAULT_FLOOR_USD,
        dust_usd: float = DEFAULT_DUST_USD,
        initial_futures_notional: float = 0.0,
        initial_spot_value: float = 0.0,
        symbol: str = "",
    ) -> None:
        if not 0 < close_percent <= 100:
            raise ValueError("close_percent must be within (0, 100]")
        if not 0 < lot_percent <= close_percent:
            raise ValueError("lot_percent must be within (0, close_percent]")
        self.close_percent = float(close_percent)
        self.lot_percent = float(lot_percent)
        self.floor_usd = float(floor_usd)
        self.dust_usd = float(dust_usd)
        self.initial_futures_notional = float(initial_futures_notional)
        self.initial_spot_value = float(initial_spot_value)
        self.symbol = symbol

    @property
    def total_lots(self) -> int:
        return _ceil_ratio(self.close_percent, self.lot_percent)

    def fraction(self, lot_number: int) -> float:
        closed_before = (lot_number - 1) * self.lot_percent
        left = 100.0 - closed_before
        if left <= 0:
            return 1.0
        share = min(self.lot_percent, self.close_percent - closed_before)
        return min(max(share / left, 0.0), 1.0)

    def suggested_lot_percent(self) -> int:
        candidates = [
            value
            for value in (self.initial_futures_notional, self.initial_spot_value)
            if value > 0
        ]
        if not candidates:
            return 100
        smallest = min(candidates)
        return math.ceil(self.floor_usd / smallest * 100 * (100 / self.close_percent))

    def _too_small(self, futures_notional: float, spot_notional: float) -> LotTooSmallError:
        suggestion = self.suggested_lot_percent()
        example = f"basisbot close {self.symbol or '<symbol>'} {self.close_percent:g} {suggestion}"
        return LotTooSmallError(
            f"Lot size too small: futures ${futures_notional:.2f}, spot ${spot_notional:.2f} "
            f"(minimum ${self.floor_usd:.2f} per order). Use a lot percentage of at least "
            f"{suggestion}%, for example: {example}",
            suggested_lot_percent=suggestion,
        )

    def next_lot(
        self,
        lot_number: int,
        futures_quantity: float,
        spot_quantity: float,
        price: float,
    ) -> LotDecision:
        """Size lot ``lot_number`` from the live leg quantities.

        Raises :class:`LotTooSmallError` when both legs of the first lot are
        below the floor; later (or one-sided) shortfalls return a
        ``BELOW_FLOOR`` decision carrying the lot quantities.
        """

        if lot_number > self.total_lots:
            return LotDecision(LotAction.DONE)
        fraction = self.fraction(lot_number)
        futures_lot = futures_quantity * fraction
        spot_lot = spot_quantity * fraction

        tail_value = min(futures_quantity - futures_lot, spot_quantity - spot_lot) * price
        if self.dust_usd < tail_value < self.floor_usd:
            LOGGER.info(
                "lot %d takes the whole remainder, tail $%.2f is below $%.2f",
                lot_number,
                tail_value,
                self.floor_usd,
            )
            futures_lot = futures_quantity
            spot_lot = spot_quantity

        futures_notional = futures_lot * price
        spot_notional = spot_lot * price
        plan = LotPlan(
            lot_number=lot_number,
            total_lots=self.total_lots,
            futures_quantity=futures_lot,
            spot_quantity=spot_lot,
        )
        futures_short = futures_notional < self.floor_usd
        spot_short = spot_notional < self.floor_usd
        if futures_short and spot_short and lot_number == 1:
            raise self._too_small(futures_notional, spot_notional)
        if futures_short or spot_short:
            return LotDecision(
                LotAction.BELOW_FLOOR,
                plan=plan,
                futures_notional=futures_notional,
                spot_notional=spot_notional,
            )
        return LotDecision(
            LotAction.EXECUTE,
            plan=plan,
            futures_notional=futures_notional,
            spot_notional=spot_notional,
        )

    def plan(self, futures_quantity: float, spot_quantity: float, price: float) -> Iterator[LotPlan]:
        """Yield the lot sequence for a fixed start assuming exact fills."""

        futures_left = futures_quantity
        spot_left = spot_quantity
        for lot_number in range(1, self.total_lots + 1):
            decision = self.next_lot(lot_number, futures_left, spot_left, price)
            if not decision.executable or decision.plan is None:
                return
            yield decision.plan
            futures_left -= decision.plan.futures_quantity
            spot_left -= decision.plan.spot_quantity


__all__ = [
    "AbsoluteLotPlanner",
    "LotAction",
    "LotDecision",
    "PercentageLotPlanner",
]
