"""Lot-based basis (futures/spot) position executor."""

__version__ = "0.3.0"
