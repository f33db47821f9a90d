"""Market closure polling and settlement."""
from __future__ import annotations

from poly_lock_bot.closure.resolver import ClosureResolver, MarketStatusSource

__all__ = [
    "ClosureResolver",
    "MarketStatusSource",
]
