"""AsterDEX perpetual futures client."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

import httpx

from basisbot.config.schema import ContractsConfig
from basisbot.errors import PriceUnavailableError, VenueRequestError
from basisbot.models import Balance, FuturesPosition, LegOrderResult, OrderSide

from .aster_common import AsterRestClient
from .responses import (
    decode_futures_balance,
    decode_futures_order,
    decode_position,
    decode_price,
)


LOGGER = logging.getLogger(__name__)


class AsterFuturesClient(AsterRestClient):
    """REST client for the AsterDEX ``/fapi/v1`` futures API."""

    leg_name = "futures"
    api_prefix = "/fapi/v1"

    def __init__(
        self,
        *,
        api_url: str = "https://fapi.asterdex.com",
        api_key: str | None = None,
        api_secret: str | None = None,
        recv_window_ms: int = 5000,
        timeout_s: float = 10.0,
        contracts: ContractsConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(
            api_url=api_url,
            api_key=api_key,
            api_secret=api_secret,
            recv_window_ms=recv_window_ms,
            timeout_s=timeout_s,
            client=client,
        )
        self.contracts = contracts or ContractsConfig()

    def _decode_order(self, payload: Mapping[str, Any], side: OrderSide | None) -> LegOrderResult:
        return decode_futures_order(payload, side)

    def _order_params(
        self, symbol: str, side: OrderSide, quantity: str, reduce_only: bool
    ) -> Dict[str, Any]:
        params = super()._order_params(symbol, side, quantity, reduce_only)
        if reduce_only:
            params["reduceOnly"] = True
        return params

    async def get_mark_price(self, symbol: str) -> float:
        try:
            payload = await self._request("GET", "/premiumIndex", params={"symbol": symbol})
        except VenueRequestError as exc:
            raise PriceUnavailableError(f"Failed to get mark price for {symbol}: {exc}") from exc
        price = decode_price(payload, "markPrice")
        if price <= 0:
            raise PriceUnavailableError(f"Invalid mark price for {symbol}: {price}")
        return price

    async def get_balance(self, asset: str) -> Balance | None:
        payload = await self._request("GET", "/account", signed=True)
        return decode_futures_balance(payload, asset)

    async def get_position(self, symbol: str) -> FuturesPosition | None:
        payload = await self._request(
            "GET", "/positionRisk", params={"symbol": symbol}, signed=True
        )
        position = decode_position(payload, symbol, self.contracts.mode_for(symbol))
        if position is not None:
            LOGGER.debug(
                "futures position decoded",
                extra={
                    "symbol": symbol,
                    "signed_quantity": position.signed_quantity,
                    "quantity_source": position.quantity_source.value,
                },
            )
        return position

    async def open_short(self, symbol: str, quantity: float) -> LegOrderResult:
        return await self.place_market_order(symbol, OrderSide.SELL, quantity)

    async def close_short(
        self, symbol: str, quantity: float, *, reduce_only: bool = False
    ) -> LegOrderResult:
        return await self.place_market_order(
            symbol, OrderSide.BUY, quantity, reduce_only=reduce_only
        )


__all__ = ["AsterFuturesClient"]
