"""Market discovery and lifecycle tracking."""
from __future__ import annotations

from poly_lock_bot.market.discovery import (
    Market,
    discover_market,
    market_type_from_slug,
)
from poly_lock_bot.market.tracking import MarketRegistry, MarketState

__all__ = [
    "discover_market",
    "market_type_from_slug",
    "Market",
    "MarketRegistry",
    "MarketState",
]
