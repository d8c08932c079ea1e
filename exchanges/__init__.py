"""Client interfaces for the futures and spot legs of a basis position."""

from .aster_futures import AsterFuturesClient  # noqa: F401
from .aster_spot import AsterSpotClient  # noqa: F401
from .base import FuturesLegClient, VenueLegClient  # noqa: F401

__all__ = [
    "AsterFuturesClient",
    "AsterSpotClient",
    "FuturesLegClient",
    "VenueLegClient",
]
