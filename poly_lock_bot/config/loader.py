# poly_lock_bot/config/loader.py
from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from poly_lock_bot.config.models import BotConfig, EngineConfig, MarketSelectionConfig

logger = logging.getLogger(__name__)

CONFIG_PATH = os.environ.get("POLY_LOCK_CONFIG", "config.yaml")


@dataclass
class ExchangeConfig:
  api_url: str = "https://clob.polymarket.com"
  gamma_api_url: str = "https://gamma-api.polymarket.com"
  funder_env: str = "POLY_FUNDER"
  private_key_env: str = "POLY_PRIVATE_KEY"
  signature_type: int = 2


@dataclass
class Config:
  polymarket: ExchangeConfig = field(default_factory=ExchangeConfig)
  bot: BotConfig = field(default_factory=BotConfig)


def _build(cls: type, raw: dict[str, Any] | None, section: str) -> Any:
  """Instantiate a config dataclass from a mapping, rejecting unknown keys."""
  raw = raw or {}
  known = {f.name for f in dataclasses.fields(cls)}
  unknown = sorted(set(raw) - known)
  if unknown:
    raise ValueError(f"Unknown keys in '{section}' config section: {', '.join(unknown)}")
  return cls(**raw)


def load_config(path: str | Path = CONFIG_PATH) -> Config:
  """
  Load config.yaml. A missing file yields the defaults (which still honor
  POLY_LOCK_* environment variables).
  """
  p = Path(path)
  if not p.exists():
    logger.warning("Config file %s not found, using defaults", p)
    cfg = Config()
    cfg.bot.trading.validate()
    return cfg

  with open(p, "r") as f:
    raw = yaml.safe_load(f) or {}

  exchange_raw = (raw.get("exchanges") or {}).get("polymarket")
  trading_raw = dict(raw.get("trading") or {})

  # base_sizes merges over the defaults instead of replacing them
  base_sizes = trading_raw.pop("base_sizes", None)
  trading = _build(EngineConfig, trading_raw, "trading")
  if base_sizes:
    trading.base_sizes.update({str(k).lower(): float(v) for k, v in base_sizes.items()})
  trading.validate()

  markets = _build(MarketSelectionConfig, raw.get("markets"), "markets")
  markets.underlyings = [u.lower() for u in markets.underlyings]
  markets.timespans = [t.lower() for t in markets.timespans]

  return Config(
    polymarket=_build(ExchangeConfig, exchange_raw, "exchanges.polymarket"),
    bot=BotConfig(trading=trading, markets=markets),
  )
