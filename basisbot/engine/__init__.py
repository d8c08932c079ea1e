"""Spread gating, lot planning and dual-leg execution."""

from .accumulator import RunAccumulator  # noqa: F401
from .executor import DualLegExecutor  # noqa: F401
from .lots import AbsoluteLotPlanner, LotAction, LotDecision, PercentageLotPlanner  # noqa: F401
from .retry import retry_async  # noqa: F401
from .spread import SpreadSynchronizer  # noqa: F401

__all__ = [
    "AbsoluteLotPlanner",
    "DualLegExecutor",
    "LotAction",
    "LotDecision",
    "PercentageLotPlanner",
    "RunAccumulator",
    "SpreadSynchronizer",
    "retry_async",
]
