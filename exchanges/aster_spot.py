"""AsterDEX spot client."""

from __future__ import annotations

from typing import Any, Mapping

from basisbot.models import Balance, LegOrderResult, OrderSide

from .aster_common import AsterRestClient
from .responses import decode_spot_balance, decode_spot_order


class AsterSpotClient(AsterRestClient):
    """REST client for the AsterDEX ``/api/v1`` spot API."""

    leg_name = "spot"
    api_prefix = "/api/v1"

    def __init__(self, *, api_url: str = "https://sapi.asterdex.com", **kwargs: Any) -> None:
        super().__init__(api_url=api_url, **kwargs)

    def _decode_order(self, payload: Mapping[str, Any], side: OrderSide | None) -> LegOrderResult:
        return decode_spot_order(payload, side)

    async def get_balance(self, asset: str) -> Balance | None:
        payload = await self._request("GET", "/account", signed=True)
        return decode_spot_balance(payload, asset)

    async def buy(self, symbol: str, quantity: float) -> LegOrderResult:
        return await self.place_market_order(symbol, OrderSide.BUY, quantity)

    async def sell(self, symbol: str, quantity: float) -> LegOrderResult:
        return await self.place_market_order(symbol, OrderSide.SELL, quantity)


__all__ = ["AsterSpotClient"]
