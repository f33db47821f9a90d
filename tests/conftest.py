"""Shared test fixtures."""
from __future__ import annotations

import itertools

import pytest

from poly_lock_bot.config import EngineConfig
from poly_lock_bot.exchange import PaperExchange
from poly_lock_bot.market import Market, MarketRegistry
from poly_lock_bot.orders import OrderManager, OrderPlacer
from poly_lock_bot.position import PositionLedger
from poly_lock_bot.strategy import DecisionEngine, SizingPolicy, TrendLockStrategy
from poly_lock_bot.trend import TrendDetector
from poly_lock_bot.types import PriceTick

WINDOW_START = 1_760_000_400.0


@pytest.fixture
def engine_config() -> EngineConfig:
    # Explicit values so POLY_LOCK_* variables in the environment cannot leak in
    return EngineConfig(
        cost_per_pair_max=0.99,
        min_side_price=0.05,
        max_side_price=0.99,
        cooldown_seconds=0.0,
        cooldown_seconds_1h=45.0,
        shares_override=0.0,
        size_reduce_after_secs=300.0,
        size_min_ratio=0.5,
        size_min_shares=5.0,
        max_side_shares=0.0,
        trend_window=5,
        trend_min_samples=3,
        trend_threshold=0.005,
        entry_legs=2,
        lock_legs=2,
        expansion_max_buys=8,
        check_interval_ms=1000,
        closure_poll_interval_seconds=20.0,
    )


@pytest.fixture
def market() -> Market:
    return Market(
        market_id="0xcondition-btc-15m",
        slug="btc-updown-15m-1760000400",
        market_type="btc-15m",
        up_token_id="token-up",
        down_token_id="token-down",
        start_ts=WINDOW_START,
        end_ts=WINDOW_START + 900,
    )


@pytest.fixture
def make_tick(market):
    """Ticks one second apart from the window start, unless ``at`` is given."""
    clock = itertools.count(1)

    def _make(up, down, at=None, market_id=None):
        return PriceTick(
            market_id=market_id or market.market_id,
            up_ask=up,
            down_ask=down,
            observed_at=at if at is not None else market.start_ts + next(clock),
        )

    return _make


@pytest.fixture
def registry() -> MarketRegistry:
    return MarketRegistry()


@pytest.fixture
def ledger() -> PositionLedger:
    return PositionLedger()


@pytest.fixture
def detector(engine_config) -> TrendDetector:
    return TrendDetector(
        window=engine_config.trend_window,
        min_samples=engine_config.trend_min_samples,
        threshold=engine_config.trend_threshold,
    )


@pytest.fixture
def decision_engine(engine_config) -> DecisionEngine:
    return DecisionEngine(engine_config, SizingPolicy(engine_config))


@pytest.fixture
def paper() -> PaperExchange:
    return PaperExchange()


@pytest.fixture
def order_placer(paper) -> OrderPlacer:
    return OrderPlacer(paper, order_manager=OrderManager())


@pytest.fixture
def strategy(market, registry, ledger, detector, order_placer, decision_engine, engine_config) -> TrendLockStrategy:
    return TrendLockStrategy(
        market,
        registry=registry,
        ledger=ledger,
        detector=detector,
        order_placer=order_placer,
        decision_engine=decision_engine,
        config=engine_config,
    )
