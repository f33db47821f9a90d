"""Order submission and tracking."""
from __future__ import annotations

from poly_lock_bot.orders.manager import OrderManager
from poly_lock_bot.orders.placer import Fill, OrderGateway, OrderPlacer

__all__ = [
    "Fill",
    "OrderGateway",
    "OrderManager",
    "OrderPlacer",
]
