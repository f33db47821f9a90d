"""Trend-following pair-lock trading engine for Polymarket Up/Down markets."""
from __future__ import annotations

from poly_lock_bot.closure import ClosureResolver
from poly_lock_bot.errors import (
    EngineError,
    InvalidFill,
    InvalidPrice,
    NoQuote,
    OrderRejected,
    StaleMarket,
)
from poly_lock_bot.position import Position, PositionLedger
from poly_lock_bot.strategy import DecisionEngine, SizingPolicy, TrendLockStrategy
from poly_lock_bot.trend import TrendDetector

__version__ = "0.1.0"

__all__ = [
    "ClosureResolver",
    "DecisionEngine",
    "EngineError",
    "InvalidFill",
    "InvalidPrice",
    "NoQuote",
    "OrderRejected",
    "Position",
    "PositionLedger",
    "SizingPolicy",
    "StaleMarket",
    "TrendDetector",
    "TrendLockStrategy",
]
