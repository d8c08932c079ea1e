"""Utilities for enforcing venue quantity step sizes."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Any


DEFAULT_STEP_SIZE = "0.01"


def _to_decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValueError(f"invalid decimal value: {value!r}") from exc


def _floor_to_step(value: Decimal, step: Decimal) -> Decimal:
    if step <= 0:
        return value
    scaled = (value / step).to_integral_value(rounding=ROUND_DOWN)
    return scaled * step


def step_decimals(step_size: str) -> int:
    """Number of decimal places implied by a step such as ``"0.001000"``."""

    text = str(step_size)
    if "." not in text:
        return 0
    return len(text.split(".", 1)[1])


def round_to_step(quantity: float, step_size: str) -> float:
    """Floor ``quantity`` onto the ``step_size`` grid."""

    qty_dec = _to_decimal(quantity)
    step_dec = _to_decimal(step_size)
    floored = _floor_to_step(qty_dec, step_dec)
    decimals = step_decimals(step_size)
    quantized = floored.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_DOWN)
    return float(quantized)


def format_quantity(quantity: float) -> str:
    normalised = _to_decimal(quantity).normalize()
    return format(normalised, "f")


__all__ = ["DEFAULT_STEP_SIZE", "format_quantity", "round_to_step", "step_decimals"]
