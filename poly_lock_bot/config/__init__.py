"""Configuration management."""
from __future__ import annotations

from poly_lock_bot.config.loader import CONFIG_PATH, Config, ExchangeConfig, load_config
from poly_lock_bot.config.models import (
    DEFAULT_BASE_SIZES,
    BotConfig,
    EngineConfig,
    MarketSelectionConfig,
)

__all__ = [
    "BotConfig",
    "CONFIG_PATH",
    "Config",
    "DEFAULT_BASE_SIZES",
    "EngineConfig",
    "ExchangeConfig",
    "load_config",
    "MarketSelectionConfig",
]
