"""Order submission: turn an exchange response into a confirmed fill or a rejection."""
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Protocol

from poly_lock_bot.errors import OrderRejected
from poly_lock_bot.orders.manager import OrderManager
from poly_lock_bot.types import Side
from poly_lock_bot.utils.price_helpers import round_shares, round_to_tick

if TYPE_CHECKING:
    from poly_lock_bot.exchange.models import OrderResponse
    from poly_lock_bot.market.discovery import Market

logger = logging.getLogger(__name__)

DEFAULT_TICK_SIZE = 0.01


class OrderGateway(Protocol):
    def place_buy(
        self,
        token_id: str,
        size: float,
        price: float,
        order_type: str = "FAK",
        market_slug: str = "",
    ) -> "OrderResponse":
        ...


@dataclass(frozen=True)
class Fill:
    """A confirmed (possibly partial) execution of one buy leg."""
    order_id: str
    market_id: str
    side: Side
    quantity: float
    price: float
    timestamp: float


class OrderPlacer:
    """
    Buy-only order placement.

    Responsibilities:
    - Submit marketable (FAK) buys through the gateway
    - Track sent vs filled in the OrderManager
    - Return a Fill only when shares were actually received
    - Raise OrderRejected for refusals, zero fills and transport errors
      (no automatic retry)
    """

    def __init__(
        self,
        gateway: OrderGateway,
        order_manager: Optional[OrderManager] = None,
        fill_price_tolerance: float = 0.02,
        tick_size: float = DEFAULT_TICK_SIZE,
        order_type: str = "FAK",
    ):
        self.gateway = gateway
        self.order_manager = order_manager or OrderManager()
        self.fill_price_tolerance = fill_price_tolerance
        self.tick_size = tick_size
        self.order_type = order_type

    def buy(self, market: "Market", side: Side, size: float, price: float) -> Fill:
        """
        Place one buy leg.

        Args:
            market: Market being traded
            side: Up or Down token
            size: Shares requested
            price: Limit price (rounded to the tick)

        Returns:
            Fill with the executed quantity and average price

        Raises:
            OrderRejected: nothing was filled
        """
        token_id = market.token_for(side)
        limit = round_to_tick(price, self.tick_size)
        size = round_shares(size)
        client_ref = uuid.uuid4().hex

        self.order_manager.mark_sent(client_ref, {
            "market_id": market.market_id,
            "token_id": token_id,
            "side": side.value,
            "size": size,
            "price": limit,
        })
        logger.info(
            f"[{market.slug}] Placing BUY {side.value} size={size} price={limit} type={self.order_type}"
        )

        try:
            resp = self.gateway.place_buy(
                token_id=token_id,
                size=size,
                price=limit,
                order_type=self.order_type,
                market_slug=market.slug,
            )
        except Exception as e:
            reason = f"submission failed: {e}"
            self.order_manager.mark_rejected(client_ref, reason)
            raise OrderRejected(reason, market_id=market.market_id) from e

        if resp.error and not resp.is_filled:
            self.order_manager.mark_rejected(client_ref, resp.error)
            raise OrderRejected(resp.error, market_id=market.market_id, order_id=resp.order_id)

        if not resp.is_filled:
            reason = f"no fill (status={resp.status or 'unknown'})"
            self.order_manager.mark_rejected(client_ref, reason)
            raise OrderRejected(reason, market_id=market.market_id, order_id=resp.order_id)

        fill_price = resp.avg_price if resp.avg_price > 0 else limit
        if limit > 0 and abs(fill_price - limit) / limit > self.fill_price_tolerance:
            logger.warning(
                f"[{market.slug}] Fill price {fill_price:.4f} deviates from limit {limit:.4f} "
                f"beyond tolerance {self.fill_price_tolerance:.2%}"
            )

        order_id = resp.order_id or client_ref
        self.order_manager.mark_filled(client_ref, order_id, resp.filled_size, fill_price)
        logger.info(
            f"Order filled: BUY {side.value} {resp.filled_size}/{size} @ ${fill_price:.4f} "
            f"id={order_id[:12]}... market={market.slug}"
        )
        return Fill(
            order_id=order_id,
            market_id=market.market_id,
            side=side,
            quantity=resp.filled_size,
            price=fill_price,
            timestamp=time.time(),
        )
