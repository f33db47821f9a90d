"""Exchange connectivity: live Polymarket client and the paper order sink."""
from __future__ import annotations

from poly_lock_bot.exchange.models import (
    OrderBookSnapshot,
    OrderResponse,
    parse_market_resolution,
    parse_order_response,
)
from poly_lock_bot.exchange.paper import PaperExchange

__all__ = [
    "OrderBookSnapshot",
    "OrderResponse",
    "PaperExchange",
    "parse_market_resolution",
    "parse_order_response",
]
