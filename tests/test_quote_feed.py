"""Tests for poly_lock_bot.market_data.quote_feed and the feed-driven tick hook."""
from __future__ import annotations

from poly_lock_bot.exchange import OrderBookSnapshot
from poly_lock_bot.market_data import QuoteFeed
from poly_lock_bot.strategy import TrendLockStrategy
from poly_lock_bot.types import Side


class StubBooks:
    def __init__(self, asks):
        self.asks = asks

    def get_orderbook(self, token_id):
        ask = self.asks[token_id]
        if isinstance(ask, Exception):
            raise ask
        return OrderBookSnapshot(best_bid=None, best_bid_size=0.0, best_ask=ask, best_ask_size=100.0, ts=0.0)


class TestQuoteFeed:
    def test_poll_builds_tick(self, market):
        feed = QuoteFeed(StubBooks({"token-up": 0.52, "token-down": 0.49}))
        tick = feed.poll(market)
        assert tick.market_id == market.market_id
        assert tick.up_ask == 0.52
        assert tick.down_ask == 0.49
        assert tick.observed_at > 0

    def test_failed_book_is_missing_ask(self, market):
        feed = QuoteFeed(StubBooks({"token-up": RuntimeError("502"), "token-down": None}))
        tick = feed.poll(market)
        assert tick.up_ask is None
        assert tick.down_ask is None


class TestFeedDrivenStrategy:
    def test_on_tick_polls_feed(self, market, registry, ledger, detector, order_placer, decision_engine, engine_config):
        strategy = TrendLockStrategy(
            market,
            registry=registry,
            ledger=ledger,
            detector=detector,
            order_placer=order_placer,
            decision_engine=decision_engine,
            config=engine_config,
            feed=QuoteFeed(StubBooks({"token-up": 0.52, "token-down": 0.49})),
        )
        strategy.on_start()
        strategy.on_tick()
        assert registry.is_tracked(market.market_id)
        assert detector.window(market.market_id, Side.UP) == [0.52]

    def test_interval_follows_config(self, strategy, engine_config):
        assert strategy.tick_interval_sec() == engine_config.check_interval_ms / 1000.0

