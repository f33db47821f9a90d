"""Authoritative per-market inventory and cost-basis accounting."""
from __future__ import annotations

import logging
import math
import threading
import time
from collections import deque
from typing import Optional

from poly_lock_bot.errors import InvalidFill, StaleMarket
from poly_lock_bot.position.models import Position, ProjectedPosition
from poly_lock_bot.position.pnl_calculator import apply_fill, project
from poly_lock_bot.types import Side, Trade

logger = logging.getLogger(__name__)


def _valid_fill(quantity: float, price: float) -> bool:
    for x in (quantity, price):
        if isinstance(x, bool) or not isinstance(x, (int, float)) or not math.isfinite(x):
            return False
    return quantity > 0 and 0.0 < price < 1.0


class PositionLedger:
    """
    Thread-safe position state keyed by market id.

    Responsibilities:
    - Keep the append-only trade log per market
    - Keep an immutable Position snapshot per market, swapped atomically
      on every confirmed fill (readers never see qty without cost)
    - Ignore repeated fills for an order id already applied
    - Refuse fills once a market is frozen at settlement
    - Drop a settled market's state on prune(); it stays frozen
    """

    def __init__(self, pruned_maxlen: int = 500):
        self._positions: dict[str, Position] = {}
        self._trades: dict[str, list[Trade]] = {}
        self._applied_orders: dict[str, set[str]] = {}
        self._frozen: set[str] = set()
        self._pruned: deque[str] = deque(maxlen=pruned_maxlen)
        self._lock = threading.RLock()

    def get(self, market_id: str) -> Position:
        """Current snapshot; an empty Position if nothing was bought yet."""
        with self._lock:
            pos = self._positions.get(market_id)
        return pos if pos is not None else Position(market_id=market_id)

    def record_fill(
        self,
        market_id: str,
        side: Side,
        quantity: float,
        price: float,
        order_id: str = "",
        timestamp: Optional[float] = None,
    ) -> Optional[Trade]:
        """
        Apply a confirmed buy fill.

        Args:
            market_id: Market the fill belongs to
            side: Up or Down
            quantity: Filled shares (> 0)
            price: Fill price, in (0, 1)
            order_id: Exchange order id; a second fill with the same id is ignored
            timestamp: Fill time (defaults to now)

        Returns:
            The appended Trade, or None if the order id was already applied

        Raises:
            InvalidFill: bad quantity/price (ledger untouched)
            StaleMarket: market already settled
        """
        if not _valid_fill(quantity, price):
            raise InvalidFill(quantity, price, market_id=market_id)

        with self._lock:
            if market_id in self._frozen or market_id in self._pruned:
                raise StaleMarket(market_id)

            applied = self._applied_orders.setdefault(market_id, set())
            if order_id and order_id in applied:
                logger.warning(
                    "[%s] Duplicate fill for order %s ignored", market_id[:12], order_id[:12],
                )
                return None

            trade = Trade(
                market_id=market_id,
                side=side,
                quantity=float(quantity),
                price=float(price),
                timestamp=timestamp if timestamp is not None else time.time(),
                order_id=order_id,
            )
            old = self._positions.get(market_id) or Position(market_id=market_id)
            new = apply_fill(old, side, trade.quantity, trade.price)

            self._trades.setdefault(market_id, []).append(trade)
            if order_id:
                applied.add(order_id)
            self._positions[market_id] = new

        logger.info(
            "[%s] Fill %s %.2f @ $%.4f | %s",
            market_id[:12], side.value, trade.quantity, trade.price, new.describe(),
        )
        return trade

    def project(self, market_id: str, side: Side, quantity: float, price: float) -> ProjectedPosition:
        """Position after a hypothetical buy, without committing anything."""
        return project(self.get(market_id), side, quantity, price)

    def trades(self, market_id: str) -> tuple[Trade, ...]:
        """Every fill for the market, oldest first."""
        with self._lock:
            return tuple(self._trades.get(market_id, ()))

    def freeze(self, market_id: str) -> Position:
        """Make a market read-only and return its final snapshot."""
        with self._lock:
            if market_id not in self._pruned:
                self._frozen.add(market_id)
            return self.get(market_id)

    def is_frozen(self, market_id: str) -> bool:
        with self._lock:
            return market_id in self._frozen or market_id in self._pruned

    def prune(self, market_id: str) -> bool:
        """
        Release the positions, trades and order ids of a frozen market.

        Returns:
            False if the market is not frozen
        """
        with self._lock:
            if market_id not in self._frozen:
                return False
            self._frozen.discard(market_id)
            self._positions.pop(market_id, None)
            self._trades.pop(market_id, None)
            self._applied_orders.pop(market_id, None)
            self._pruned.append(market_id)
        return True

    def market_ids(self) -> list[str]:
        """Markets with at least one fill."""
        with self._lock:
            return list(self._positions)
