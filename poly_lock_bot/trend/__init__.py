"""Trend detection over recent asks."""
from __future__ import annotations

from poly_lock_bot.trend.detector import TrendDetector, classify

__all__ = [
    "TrendDetector",
    "classify",
]
