"""Helpers for working with spot/futures pair symbols."""

from __future__ import annotations


_KNOWN_QUOTES = (
    "USDT",
    "USDC",
    "BUSD",
    "FDUSD",
    "USD",
)


def normalise_symbol(symbol: str) -> str:
    """Return an uppercase alphanumeric key for a trading symbol."""

    cleaned = [ch for ch in str(symbol) if ch.isalnum()]
    return "".join(cleaned).upper()


def split_symbol(symbol: str) -> tuple[str, str]:
    """Split ``symbol`` into ``(base, quote)`` using the known quote suffixes."""

    symbol_norm = normalise_symbol(symbol)
    for quote in _KNOWN_QUOTES:
        if symbol_norm.endswith(quote) and len(symbol_norm) > len(quote):
            return symbol_norm[: -len(quote)], quote
    return symbol_norm, ""


def base_asset(symbol: str) -> str:
    return split_symbol(symbol)[0]


__all__ = ["base_asset", "normalise_symbol", "split_symbol"]
