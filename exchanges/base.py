"""Protocol definitions for the two legs of a basis position."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from basisbot.models import Balance, FuturesPosition, LegOrderResult, OrderSide


@runtime_checkable
class VenueLegClient(Protocol):
    """Interface shared by the futures and spot leg clients."""

    async def get_price(self, symbol: str) -> float:
        """Return the last traded price for *symbol* (always positive)."""

    async def get_balance(self, asset: str) -> Balance | None:
        """Return free/locked balance for *asset*, ``None`` when not held."""

    async def place_market_order(
        self,
        symbol: str,
        side: OrderSide,
        quantity: float,
        reduce_only: bool = False,
    ) -> LegOrderResult:
        """Submit a market order; *quantity* is rounded to the venue step size."""

    async def get_order(self, symbol: str, order_id: str) -> LegOrderResult:
        """Return the current state of a previously placed order."""


@runtime_checkable
class FuturesLegClient(VenueLegClient, Protocol):
    """Futures leg: adds position inspection."""

    async def get_position(self, symbol: str) -> FuturesPosition | None:
        """Return the open position for *symbol*, ``None`` when flat/unknown."""
