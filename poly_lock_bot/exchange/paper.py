"""Simulated order sink: every marketable buy fills in full at its limit price."""
from __future__ import annotations

import logging
import threading
import uuid

from poly_lock_bot.exchange.models import OrderResponse

logger = logging.getLogger(__name__)


class PaperExchange:
    """
    Drop-in replacement for PolymarketClient.place_buy in simulation mode.

    Quotes and market status still come from the live read-only client;
    only order submission is simulated.
    """

    def __init__(self):
        self.orders: list[OrderResponse] = []
        self._lock = threading.Lock()

    def place_buy(
        self,
        token_id: str,
        size: float,
        price: float,
        order_type: str = "FAK",
        market_slug: str = "",
    ) -> OrderResponse:
        resp = OrderResponse(
            order_id=f"paper-{uuid.uuid4().hex[:16]}",
            status="matched",
            requested_size=size,
            filled_size=size,
            avg_price=price,
            raw={"token_id": token_id, "order_type": order_type, "simulated": True},
        )
        with self._lock:
            self.orders.append(resp)
        logger.info(
            "[SIM] [%s] BUY %.2f @ $%.4f token=%s... id=%s",
            market_slug, size, price, token_id[:12], resp.order_id,
        )
        return resp

    @property
    def total_spent(self) -> float:
        with self._lock:
            return sum(o.filled_size * o.avg_price for o in self.orders)
