"""Immutable fold of executed lots into a run summary."""

from __future__ import annotations

from dataclasses import dataclass, replace

from basisbot.models import Leg, LegOrderResult, LotExecution, RunSummary


@dataclass(frozen=True)
class RunAccumulator:
    lots: int = 0
    futures_qty: float = 0.0
    spot_qty: float = 0.0
    futures_value: float = 0.0
    spot_value: float = 0.0

    def add(self, execution: LotExecution) -> "RunAccumulator":
        if not (execution.futures.filled and execution.spot.filled):
            raise ValueError(f"lot {execution.lot_number} has an unfilled leg")
        return replace(
            self,
            lots=self.lots + 1,
            futures_qty=self.futures_qty + execution.futures.executed_quantity,
            spot_qty=self.spot_qty + execution.spot.executed_quantity,
            futures_value=self.futures_value + execution.futures.executed_value,
            spot_value=self.spot_value + execution.spot.executed_value,
        )

    def add_leg(self, leg: Leg, order: LegOrderResult) -> "RunAccumulator":
        """Account a single-leg unwind fill without counting a lot."""

        if not order.filled:
            return self
        if leg is Leg.FUTURES:
            return replace(
                self,
                futures_qty=self.futures_qty + order.executed_quantity,
                futures_value=self.futures_value + order.executed_value,
            )
        return replace(
            self,
            spot_qty=self.spot_qty + order.executed_quantity,
            spot_value=self.spot_value + order.executed_value,
        )

    def summary(self) -> RunSummary:
        avg_futures = self.futures_value / self.futures_qty if self.futures_qty > 0 else 0.0
        avg_spot = self.spot_value / self.spot_qty if self.spot_qty > 0 else 0.0
        if avg_futures > 0 and avg_spot > 0:
            avg_spread = (avg_futures - avg_spot) / avg_spot * 100.0
        else:
            avg_spread = 0.0
        return RunSummary(
            total_lots=self.lots,
            total_futures_qty=self.futures_qty,
            total_spot_qty=self.spot_qty,
            avg_futures_price=avg_futures,
            avg_spot_price=avg_spot,
            total_futures_value=self.futures_value,
            total_spot_value=self.spot_value,
            total_combined_value=self.futures_value + self.spot_value,
            avg_spread_percent=avg_spread,
        )


__all__ = ["RunAccumulator"]
