"""
Utility modules for the bot.
"""
from __future__ import annotations

from poly_lock_bot.utils.price_helpers import (
    round_shares,
    round_to_tick,
)
from poly_lock_bot.utils.slug_helpers import (
    current_window_slug,
    market_type_for,
    parse_window_slug,
)

__all__ = [
    "current_window_slug",
    "market_type_for",
    "parse_window_slug",
    "round_shares",
    "round_to_tick",
]
