"""Market data: price ticks for tracked markets."""
from __future__ import annotations

from poly_lock_bot.market_data.quote_feed import OrderBookSource, QuoteFeed

__all__ = [
    "OrderBookSource",
    "QuoteFeed",
]
