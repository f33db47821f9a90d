"""
Configuration models for the bot.

This module contains all configuration classes and constants organized by
logical groups. Defaults come from POLY_LOCK_* environment variables so a
.env file can tune the engine without a config file.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field

# Shares per leg by market type (underlying-timespan) when no override is set
DEFAULT_BASE_SIZES: dict[str, float] = {
    "btc-15m": 24.0,
    "eth-15m": 14.0,
    "btc-1h": 26.0,
    "eth-1h": 16.0,
}


def _env_list(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [p.strip().lower() for p in raw.split(",") if p.strip()]


@dataclass
class EngineConfig:
    """Decision engine, sizing and closure tunables."""

    # Lock fires only when held_avg + opposing ask is strictly below this
    cost_per_pair_max: float = float(os.environ.get("POLY_LOCK_COST_PER_PAIR_MAX", "0.99"))
    # Never buy a side whose ask is outside [min_side_price, max_side_price]
    min_side_price: float = float(os.environ.get("POLY_LOCK_MIN_SIDE_PRICE", "0.05"))
    max_side_price: float = float(os.environ.get("POLY_LOCK_MAX_SIDE_PRICE", "0.99"))

    # Min seconds between buys per market (0 = react every tick)
    cooldown_seconds: float = float(os.environ.get("POLY_LOCK_COOLDOWN_SECONDS", "0"))
    cooldown_seconds_1h: float = float(os.environ.get("POLY_LOCK_COOLDOWN_SECONDS_1H", "45"))

    # Sizing
    shares_override: float = float(os.environ.get("POLY_LOCK_SHARES", "0"))
    default_base_size: float = 24.0
    base_sizes: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_BASE_SIZES))
    size_reduce_after_secs: float = float(os.environ.get("POLY_LOCK_SIZE_REDUCE_AFTER_SECS", "300"))
    size_min_ratio: float = float(os.environ.get("POLY_LOCK_SIZE_MIN_RATIO", "0.5"))
    size_min_shares: float = float(os.environ.get("POLY_LOCK_SIZE_MIN_SHARES", "5"))
    max_side_shares: float = float(os.environ.get("POLY_LOCK_MAX_SIDE_SHARES", "0"))  # 0 = unlimited

    # Trend classification
    trend_window: int = 5
    trend_min_samples: int = 3
    trend_threshold: float = float(os.environ.get("POLY_LOCK_TREND_THRESHOLD", "0.005"))

    # Rule execution shape
    entry_legs: int = 2
    lock_legs: int = 2
    expansion_max_buys: int = int(os.environ.get("POLY_LOCK_EXPANSION_MAX_BUYS", "8"))

    # Loops
    check_interval_ms: int = int(os.environ.get("POLY_LOCK_CHECK_INTERVAL_MS", "1000"))
    closure_poll_interval_seconds: float = float(
        os.environ.get("POLY_LOCK_CLOSURE_POLL_INTERVAL_SECONDS", "20")
    )

    # Relative deviation of fill price from limit price before we warn
    fill_price_tolerance: float = 0.02

    def validate(self) -> None:
        """Raise ValueError on inconsistent settings."""
        if self.cost_per_pair_max <= 0:
            raise ValueError("cost_per_pair_max must be > 0")
        if not (0 < self.min_side_price < self.max_side_price < 1):
            raise ValueError("side price bounds must satisfy 0 < min_side_price < max_side_price < 1")
        if self.cooldown_seconds < 0 or self.cooldown_seconds_1h < 0:
            raise ValueError("cooldowns must be >= 0")
        if not (0 <= self.size_min_ratio <= 1):
            raise ValueError("size_min_ratio must be in [0, 1]")
        if self.size_min_shares < 0 or self.size_reduce_after_secs < 0:
            raise ValueError("size_min_shares and size_reduce_after_secs must be >= 0")
        if self.trend_window < 2 or not (2 <= self.trend_min_samples <= self.trend_window):
            raise ValueError("need 2 <= trend_min_samples <= trend_window")
        if self.trend_threshold < 0:
            raise ValueError("trend_threshold must be >= 0")
        if self.entry_legs < 1 or self.lock_legs < 1 or self.expansion_max_buys < 0:
            raise ValueError("leg counts must be >= 1 and expansion_max_buys >= 0")
        if self.closure_poll_interval_seconds <= 0 or self.check_interval_ms <= 0:
            raise ValueError("loop intervals must be > 0")
        if any(v <= 0 for v in self.base_sizes.values()) or self.default_base_size <= 0:
            raise ValueError("base sizes must be > 0")


@dataclass
class MarketSelectionConfig:
    """Which recurring Up/Down markets to trade."""

    underlyings: list[str] = field(default_factory=lambda: _env_list("POLY_LOCK_UNDERLYINGS", "btc"))
    timespans: list[str] = field(default_factory=lambda: _env_list("POLY_LOCK_TIMESPANS", "15m,1h"))


@dataclass
class BotConfig:
    """Main bot configuration container."""
    trading: EngineConfig = field(default_factory=EngineConfig)
    markets: MarketSelectionConfig = field(default_factory=MarketSelectionConfig)
