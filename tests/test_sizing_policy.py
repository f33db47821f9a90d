"""Tests for poly_lock_bot.strategy.sizing."""
from __future__ import annotations

from dataclasses import replace

import pytest

from poly_lock_bot.position import Position
from poly_lock_bot.strategy import DecisionEngine, SizingPolicy
from poly_lock_bot.strategy.decision import split_legs
from poly_lock_bot.types import Rule, Side, TrendState


class TestBaseSize:
    @pytest.mark.parametrize(
        "market_type,expected",
        [("btc-15m", 24.0), ("eth-15m", 14.0), ("btc-1h", 26.0), ("eth-1h", 16.0), ("BTC-15M", 24.0)],
    )
    def test_size_by_market_type(self, engine_config, market_type, expected):
        assert SizingPolicy(engine_config).base_size(market_type) == expected

    def test_unknown_type_uses_default(self, engine_config):
        assert SizingPolicy(engine_config).base_size("doge-5m") == engine_config.default_base_size

    def test_override_wins(self, engine_config):
        policy = SizingPolicy(replace(engine_config, shares_override=10.0))
        assert policy.base_size("btc-15m") == 10.0
        assert policy.base_size("eth-1h") == 10.0

    def test_configured_base_sizes(self, engine_config):
        policy = SizingPolicy(replace(engine_config, base_sizes={"btc-15m": 30.0}))
        assert policy.base_size("btc-15m") == 30.0
        # Types missing from the configured map fall back to the built-in table
        assert policy.base_size("eth-15m") == 14.0


class TestDecay:
    def test_full_size_outside_reduction_window(self, engine_config):
        policy = SizingPolicy(engine_config)
        assert policy.size_for("btc-15m", 899) == 24.0
        assert policy.size_for("btc-15m", 300) == 24.0

    def test_linear_ramp(self, engine_config):
        policy = SizingPolicy(engine_config)
        assert policy.decay_ratio(150) == pytest.approx(0.75)
        assert policy.size_for("btc-15m", 150) == 18.0

    def test_minimum_ratio_at_close(self, engine_config):
        policy = SizingPolicy(engine_config)
        assert policy.size_for("btc-15m", 0) == 12.0
        assert policy.size_for("btc-15m", -30) == 12.0

    def test_never_below_min_shares(self, engine_config):
        policy = SizingPolicy(replace(engine_config, size_min_shares=10.0))
        # 14 * 0.5 = 7 is lifted to the floor
        assert policy.size_for("eth-15m", 0) == 10.0

    def test_disabled_reduction(self, engine_config):
        policy = SizingPolicy(replace(engine_config, size_reduce_after_secs=0))
        assert policy.size_for("btc-15m", 10) == 24.0


class TestSideCap:
    def test_unlimited_by_default(self, engine_config):
        assert SizingPolicy(engine_config).size_for("btc-15m", 899, shares_so_far=1000) == 24.0

    def test_clipped_to_headroom(self, engine_config):
        policy = SizingPolicy(replace(engine_config, max_side_shares=50.0))
        assert policy.size_for("btc-15m", 899, shares_so_far=40) == 10.0
        assert policy.size_for("btc-15m", 899, shares_so_far=0) == 24.0

    def test_no_size_once_headroom_below_minimum(self, engine_config):
        policy = SizingPolicy(replace(engine_config, max_side_shares=50.0))
        assert policy.size_for("btc-15m", 899, shares_so_far=48) == 0.0
        assert policy.size_for("btc-15m", 899, shares_so_far=60) == 0.0

    def test_headroom(self, engine_config):
        assert SizingPolicy(engine_config).headroom(1000) == float("inf")
        policy = SizingPolicy(replace(engine_config, max_side_shares=30.0))
        assert policy.headroom(12) == 18.0
        assert policy.headroom(45) == 0.0

    def test_entry_capped_across_legs(self, engine_config, market, make_tick):
        cfg = replace(engine_config, max_side_shares=30.0)
        engine = DecisionEngine(cfg, SizingPolicy(cfg))
        flat = Position(market_id=market.market_id)
        decision = engine.decide(market, flat, make_tick(0.52, 0.48), TrendState.RISING, TrendState.FALLING)
        assert decision.rule is Rule.NO_POSITION
        assert decision.action.legs == 2
        assert decision.action.leg_size == 15.0
        assert decision.action.quantity <= 30.0

    def test_lock_capped_across_legs(self, engine_config, market, make_tick):
        cfg = replace(engine_config, max_side_shares=30.0)
        engine = DecisionEngine(cfg, SizingPolicy(cfg))
        pos = Position(market_id=market.market_id, up_shares=48, up_cost=24.96)
        decision = engine.decide(market, pos, make_tick(0.57, 0.44), TrendState.FALLING, TrendState.FALLING)
        assert decision.rule is Rule.LOCK
        assert decision.action.side is Side.DOWN
        assert decision.action.quantity == 30.0

    def test_full_side_is_not_bought(self, engine_config, market, make_tick):
        cfg = replace(engine_config, max_side_shares=30.0)
        engine = DecisionEngine(cfg, SizingPolicy(cfg))
        pos = Position(market.market_id, up_shares=48, up_cost=24.96, down_shares=28, down_cost=12.32)
        decision = engine.decide(
            market, pos, make_tick(0.57, 0.44), TrendState.NO_PROGRESS, TrendState.NO_PROGRESS,
        )
        assert decision.rule is Rule.NO_PROGRESS
        assert not decision.action.is_buy


class TestSplitLegs:
    @pytest.mark.parametrize(
        "total,max_legs,expected",
        [(48.0, 2, (24.0, 2)), (30.0, 2, (15.0, 2)), (8.0, 2, (8.0, 1)), (3.0, 2, (3.0, 1)), (10.01, 2, (5.0, 2))],
    )
    def test_split(self, total, max_legs, expected):
        leg_size, legs = split_legs(total, max_legs)
        assert (leg_size, legs) == expected
        assert leg_size * legs <= total
