"""Exception hierarchy for lot execution runs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover
    from basisbot.models import LegOrderResult


class BasisBotError(RuntimeError):
    """Base class for every fatal error raised by the engine."""


class ConfigurationError(BasisBotError):
    """Raised when settings or CLI arguments are invalid."""


class VenueRequestError(BasisBotError):
    """Raised when a venue REST call fails at transport, HTTP or API level."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: Any = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.payload = payload


class PriceUnavailableError(BasisBotError):
    """Raised when a leg price is missing or non-positive."""


class OrderPlacementError(BasisBotError):
    """Raised when a leg order request could not be submitted."""


class FillFailureError(BasisBotError):
    """Raised when a lot finished with a zero-filled leg."""

    def __init__(
        self,
        message: str,
        *,
        futures: "LegOrderResult | None" = None,
        spot: "LegOrderResult | None" = None,
    ) -> None:
        super().__init__(message)
        self.futures = futures
        self.spot = spot


class LotTooSmallError(BasisBotError):
    """Raised when the first lot cannot meet the venue minimum on either leg."""

    def __init__(self, message: str, *, suggested_lot_percent: int) -> None:
        super().__init__(message)
        self.suggested_lot_percent = suggested_lot_percent


class NoPositionError(BasisBotError):
    """Raised when a close run finds nothing to close."""


class RetryExhaustedError(BasisBotError):
    """Raised when a bounded retry loop gives up."""

    def __init__(self, message: str, *, attempts: int, last_error: BaseException) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class SpreadTimeoutError(BasisBotError):
    """Raised when an explicit spread attempt cap is exhausted."""


__all__ = [
    "BasisBotError",
    "ConfigurationError",
    "FillFailureError",
    "LotTooSmallError",
    "NoPositionError",
    "OrderPlacementError",
    "PriceUnavailableError",
    "RetryExhaustedError",
    "SpreadTimeoutError",
    "VenueRequestError",
]
