# poly_lock_bot/types/__init__.py
"""Custom type definitions for the poly_lock_bot package."""

from poly_lock_bot.types.common import (
    ActionKind,
    MarketStatus,
    Rule,
    Side,
    TrendState,
)
from poly_lock_bot.types.trading import (
    Action,
    Decision,
    MarketResolution,
    PriceTick,
    SettlementRecord,
    Trade,
)

__all__ = [
    # common.py
    "ActionKind",
    "MarketStatus",
    "Rule",
    "Side",
    "TrendState",
    # trading.py
    "Action",
    "Decision",
    "MarketResolution",
    "PriceTick",
    "SettlementRecord",
    "Trade",
]
