"""Shared REST plumbing for the AsterDEX futures and spot APIs."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from typing import Any, Dict, Mapping
from urllib.parse import urlencode

import httpx

from basisbot.errors import OrderPlacementError, PriceUnavailableError, VenueRequestError
from basisbot.models import LegOrderResult, OrderSide
from basisbot.util.quantization import DEFAULT_STEP_SIZE, format_quantity, round_to_step

from .responses import decode_price, decode_step_size


LOGGER = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 10.0
_DEFAULT_RECV_WINDOW = 5000


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


def _error_detail(response: httpx.Response) -> str:
    try:
        return json.dumps(response.json())
    except ValueError:
        return response.text


class AsterRestClient:
    """Binance-style signed REST client; subclasses pin the API prefix."""

    venue: str = "aster"
    leg_name: str = "leg"
    api_prefix: str = ""

    def __init__(
        self,
        *,
        api_url: str,
        api_key: str | None = None,
        api_secret: str | None = None,
        recv_window_ms: int = _DEFAULT_RECV_WINDOW,
        timeout_s: float = _DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.api_secret = api_secret
        self.recv_window_ms = recv_window_ms
        self.timeout_s = timeout_s
        self._client = client
        self._step_sizes: Dict[str, str] = {}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _require_credentials(self) -> None:
        if not self.api_key or not self.api_secret:
            raise VenueRequestError(f"{self.venue} {self.leg_name} credentials missing")

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            return {}
        return {"X-MBX-APIKEY": str(self.api_key)}

    def _query(self, params: Mapping[str, Any], *, signed: bool) -> str:
        items: list[tuple[str, str]] = []
        for key, value in params.items():
            if value is None:
                continue
            if isinstance(value, bool):
                items.append((key, "true" if value else "false"))
            else:
                items.append((key, str(value)))
        if signed:
            items.append(("timestamp", str(_timestamp_ms())))
            items.append(("recvWindow", str(self.recv_window_ms)))
        query = urlencode(items)
        if not signed:
            return query
        signature = hmac.new(
            (self.api_secret or "").encode("utf-8"),
            query.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
        return f"{query}&signature={signature}"

    async def _send(self, method: str, url: str) -> httpx.Response:
        if self._client is not None:
            return await self._client.request(method, url, headers=self._headers())
        async with httpx.AsyncClient(timeout=self.timeout_s) as client:
            return await client.request(method, url, headers=self._headers())

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        signed: bool = False,
    ) -> Any:
        if signed:
            self._require_credentials()
        query = self._query(params or {}, signed=signed)
        url = f"{self.api_url}{self.api_prefix}{path}"
        if query:
            url = f"{url}?{query}"
        if LOGGER.isEnabledFor(logging.DEBUG):
            LOGGER.debug(
                "%s %s request %s %s",
                self.venue,
                self.leg_name,
                method,
                url.split("signature=")[0] + ("signature=..." if signed else ""),
            )
        try:
            response = await self._send(method, url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise VenueRequestError(
                f"{self.venue} {self.leg_name} HTTP {exc.response.status_code}: "
                f"{_error_detail(exc.response)}",
                status_code=exc.response.status_code,
                payload=exc.response.text,
            ) from exc
        except httpx.HTTPError as exc:
            raise VenueRequestError(f"{self.venue} {self.leg_name} request failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise VenueRequestError(
                f"{self.venue} {self.leg_name} returned non-JSON payload: {response.text[:200]}"
            ) from exc
        if isinstance(payload, dict) and payload.get("code") not in (None, 0, 200):
            message = payload.get("msg") or payload.get("message") or "unknown error"
            raise VenueRequestError(
                f"{self.venue} {self.leg_name} error {payload.get('code')}: {message}",
                code=payload.get("code"),
                payload=payload,
            )
        LOGGER.debug("%s %s response %s", self.venue, self.leg_name, payload)
        return payload

    # ------------------------------------------------------------------
    # Symbol metadata
    # ------------------------------------------------------------------
    async def get_step_size(self, symbol: str) -> str:
        cached = self._step_sizes.get(symbol)
        if cached is not None:
            return cached
        try:
            payload = await self._request("GET", "/exchangeInfo")
            step = decode_step_size(payload, symbol)
        except (VenueRequestError, LookupError) as exc:
            LOGGER.warning(
                "%s %s symbol info unavailable for %s, using step %s: %s",
                self.venue,
                self.leg_name,
                symbol,
                DEFAULT_STEP_SIZE,
                exc,
            )
            return DEFAULT_STEP_SIZE
        if step is None:
            LOGGER.warning(
                "LOT_SIZE filter not found for %s on %s %s, using step %s",
                symbol,
                self.venue,
                self.leg_name,
                DEFAULT_STEP_SIZE,
            )
            step = DEFAULT_STEP_SIZE
        self._step_sizes[symbol] = step
        return step

    async def round_quantity(self, symbol: str, quantity: float) -> float:
        step = await self.get_step_size(symbol)
        rounded = round_to_step(quantity, step)
        LOGGER.debug("quantity rounding %s -> %s (stepSize=%s)", quantity, rounded, step)
        return rounded

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def get_price(self, symbol: str) -> float:
        try:
            payload = await self._request("GET", "/ticker/price", params={"symbol": symbol})
        except VenueRequestError as exc:
            raise PriceUnavailableError(
                f"Failed to get {self.leg_name} price for {symbol}: {exc}"
            ) from exc
        price = decode_price(payload)
        if price <= 0:
            raise PriceUnavailableError(f"Invalid {self.leg_name} price for {symbol}: {price}")
        return price

    def _decode_order(self, payload: Mapping[str, Any], side: OrderSide | None) -> LegOrderResult:
        raise NotImplementedError

    def _order_params(
        self, symbol: str, side: OrderSide, quantity: str, reduce_only: bool
    ) -> Dict[str, Any]:
        return {"symbol": symbol, "side": side.value, "type": "MARKET", "quantity": quantity}

    async def place_market_order(
        self,
        symbol: str,
        side: OrderSide,
        quantity: float,
        reduce_only: bool = False,
    ) -> LegOrderResult:
        rounded = await self.round_quantity(symbol, quantity)
        if rounded <= 0:
            raise OrderPlacementError(
                f"{self.leg_name} quantity {quantity} for {symbol} rounds to zero"
            )
        params = self._order_params(symbol, side, format_quantity(rounded), reduce_only)
        try:
            payload = await self._request("POST", "/order", params=params, signed=True)
        except VenueRequestError as exc:
            raise OrderPlacementError(
                f"Failed to place {self.leg_name} market order "
                f"({side.value} {rounded} {symbol}): {exc}"
            ) from exc
        return self._decode_order(payload, side)

    async def get_order(self, symbol: str, order_id: str) -> LegOrderResult:
        payload = await self._request(
            "GET", "/order", params={"symbol": symbol, "orderId": order_id}, signed=True
        )
        return self._decode_order(payload, None)


__all__ = ["AsterRestClient"]
