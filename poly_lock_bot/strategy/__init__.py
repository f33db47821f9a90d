"""Sizing, rule evaluation and the per-market trading loop."""
from __future__ import annotations

from poly_lock_bot.strategy.base import StrategyEngine
from poly_lock_bot.strategy.decision import (
    MIN_ORDER_SIZE,
    DecisionEngine,
    LockCandidate,
    pick_lock,
)
from poly_lock_bot.strategy.sizing import SizingPolicy
from poly_lock_bot.strategy.trend_lock import TickResult, TrendLockStrategy

__all__ = [
    "DecisionEngine",
    "LockCandidate",
    "MIN_ORDER_SIZE",
    "pick_lock",
    "SizingPolicy",
    "StrategyEngine",
    "TickResult",
    "TrendLockStrategy",
]
