"""Open and close strategies driving the lot execution engine."""

from .close_position import ClosePositionStrategy  # noqa: F401
from .open_position import OpenPositionStrategy  # noqa: F401

__all__ = [
    "ClosePositionStrategy",
    "OpenPositionStrategy",
]
