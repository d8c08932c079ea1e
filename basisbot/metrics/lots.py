"""Prometheus metrics for spread gating and lot execution."""

from __future__ import annotations

from prometheus_client import Counter, Gauge


LOTS_EXECUTED_TOTAL = Counter(
    "basisbot_lots_executed_total",
    "Number of lots where both legs filled",
    labelnames=("mode", "symbol"),
)

SPREAD_CHECKS_TOTAL = Counter(
    "basisbot_spread_checks_total",
    "Spread checks grouped by outcome (within, wide, error)",
    labelnames=("symbol", "outcome"),
)

FILL_FAILURES_TOTAL = Counter(
    "basisbot_fill_failures_total",
    "Lots aborted because a leg reported zero executed quantity",
    labelnames=("symbol", "leg"),
)

UNWIND_ORDERS_TOTAL = Counter(
    "basisbot_unwind_orders_total",
    "Single-leg emergency unwind orders grouped by result",
    labelnames=("symbol", "leg", "result"),
)

LAST_SPREAD_PERCENT = Gauge(
    "basisbot_last_spread_percent",
    "Most recently observed futures/spot divergence in percent",
    labelnames=("symbol",),
)


__all__ = [
    "FILL_FAILURES_TOTAL",
    "LAST_SPREAD_PERCENT",
    "LOTS_EXECUTED_TOTAL",
    "SPREAD_CHECKS_TOTAL",
    "UNWIND_ORDERS_TOTAL",
]
