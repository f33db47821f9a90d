"""Engine error taxonomy.

All of these are raised inside the engine and converted into values by the
tick pipeline and the closure loop; none of them should reach the process top.
"""
from __future__ import annotations

from typing import Optional


class EngineError(Exception):
    """Base error for the position & decision engine."""

    def __init__(self, message: str, market_id: Optional[str] = None):
        self.message = message
        self.market_id = market_id
        super().__init__(message)


class InvalidPrice(EngineError):
    """A quoted ask is outside the open interval (0, 1)."""

    def __init__(self, price: object, market_id: Optional[str] = None, side: Optional[str] = None):
        self.price = price
        self.side = side
        label = f" {side}" if side else ""
        super().__init__(f"Invalid{label} price {price!r}: must be in (0, 1)", market_id)


class InvalidFill(EngineError):
    """A fill with non-positive quantity or a price outside (0, 1)."""

    def __init__(self, quantity: object, price: object, market_id: Optional[str] = None):
        self.quantity = quantity
        self.price = price
        super().__init__(
            f"Invalid fill qty={quantity!r} price={price!r}: qty must be > 0 and price in (0, 1)",
            market_id,
        )


class NoQuote(EngineError):
    """A required ask is missing for this tick."""

    def __init__(self, market_id: Optional[str] = None, side: Optional[str] = None):
        self.side = side
        super().__init__(f"No ask available for {side or 'market'}", market_id)


class StaleMarket(EngineError):
    """A decision or fill was attempted after the market closed."""

    def __init__(self, market_id: Optional[str] = None):
        super().__init__(f"Market {market_id} is closed", market_id)


class OrderRejected(EngineError):
    """The order sink declined or did not fill an order."""

    def __init__(self, reason: str, market_id: Optional[str] = None, order_id: str = ""):
        self.reason = reason
        self.order_id = order_id
        super().__init__(f"Order rejected: {reason}", market_id)
