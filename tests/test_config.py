"""Tests for poly_lock_bot.config."""
from __future__ import annotations

from dataclasses import replace

import pytest

from poly_lock_bot.config import DEFAULT_BASE_SIZES, Config, EngineConfig, load_config


def _write(tmp_path, text: str):
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return path


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        cfg = load_config(tmp_path / "nope.yaml")
        assert isinstance(cfg, Config)
        assert cfg.polymarket.api_url == "https://clob.polymarket.com"
        assert cfg.bot.trading.base_sizes == DEFAULT_BASE_SIZES

    def test_empty_file_gives_defaults(self, tmp_path):
        cfg = load_config(_write(tmp_path, ""))
        assert cfg.polymarket.signature_type == 2

    def test_sections_are_read(self, tmp_path):
        cfg = load_config(_write(tmp_path, """
exchanges:
  polymarket:
    signature_type: 1
    gamma_api_url: "https://gamma.example"
markets:
  underlyings: ["BTC", "eth"]
  timespans: ["15M"]
trading:
  cost_per_pair_max: 0.98
  cooldown_seconds_1h: 30
  expansion_max_buys: 4
  base_sizes:
    BTC-15m: 30
"""))
        assert cfg.polymarket.signature_type == 1
        assert cfg.polymarket.gamma_api_url == "https://gamma.example"
        assert cfg.bot.markets.underlyings == ["btc", "eth"]
        assert cfg.bot.markets.timespans == ["15m"]

        trading = cfg.bot.trading
        assert trading.cost_per_pair_max == 0.98
        assert trading.cooldown_seconds_1h == 30
        assert trading.expansion_max_buys == 4
        assert trading.base_sizes["btc-15m"] == 30.0
        # Unlisted types keep their defaults
        assert trading.base_sizes["eth-1h"] == 16.0

    def test_unknown_trading_key_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="cost_per_pair"):
            load_config(_write(tmp_path, "trading:\n  cost_per_pair: 0.9\n"))

    def test_unknown_exchange_key_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="exchanges.polymarket"):
            load_config(_write(tmp_path, "exchanges:\n  polymarket:\n    api_key: x\n"))

    def test_invalid_values_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            load_config(_write(tmp_path, "trading:\n  min_side_price: 0.9\n  max_side_price: 0.5\n"))


class TestEngineConfigValidate:
    def test_defaults_are_valid(self, engine_config):
        engine_config.validate()

    @pytest.mark.parametrize(
        "changes",
        [
            {"cost_per_pair_max": 0},
            {"cooldown_seconds": -1},
            {"size_min_ratio": 1.5},
            {"trend_window": 3, "trend_min_samples": 4},
            {"trend_threshold": -0.1},
            {"lock_legs": 0},
            {"check_interval_ms": 0},
            {"base_sizes": {"btc-15m": 0}},
        ],
    )
    def test_rejects_inconsistent_settings(self, engine_config, changes):
        with pytest.raises(ValueError):
            replace(engine_config, **changes).validate()

    def test_base_sizes_are_per_instance(self):
        a, b = EngineConfig(), EngineConfig()
        a.base_sizes["btc-15m"] = 99.0
        assert b.base_sizes["btc-15m"] == DEFAULT_BASE_SIZES["btc-15m"]
