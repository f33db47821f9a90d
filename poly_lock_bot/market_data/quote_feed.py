"""Price-tick source built on REST top-of-book for both outcome tokens."""
from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Optional, Protocol

from poly_lock_bot.types import PriceTick, Side

if TYPE_CHECKING:
    from poly_lock_bot.exchange.models import OrderBookSnapshot
    from poly_lock_bot.market.discovery import Market

logger = logging.getLogger(__name__)


class OrderBookSource(Protocol):
    def get_orderbook(self, token_id: str) -> "OrderBookSnapshot":
        ...


class QuoteFeed:
    """
    Polls best asks for a market's Up and Down tokens.

    A side whose book cannot be fetched, or has no asks, is reported as None;
    the tick pipeline turns that into NoQuote.
    """

    def __init__(self, source: OrderBookSource):
        self.source = source

    def best_ask(self, token_id: str) -> Optional[float]:
        try:
            book = self.source.get_orderbook(token_id)
        except Exception as e:
            logger.warning("Failed to fetch orderbook for %s...: %s", token_id[:12], e)
            return None
        return book.best_ask

    def poll(self, market: "Market") -> PriceTick:
        return PriceTick(
            market_id=market.market_id,
            up_ask=self.best_ask(market.token_for(Side.UP)),
            down_ask=self.best_ask(market.token_for(Side.DOWN)),
            observed_at=time.time(),
        )
