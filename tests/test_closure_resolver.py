"""Tests for poly_lock_bot.closure.resolver."""
from __future__ import annotations

from dataclasses import replace

import pytest

from poly_lock_bot.closure import ClosureResolver
from poly_lock_bot.errors import StaleMarket
from poly_lock_bot.types import MarketResolution, MarketStatus, Side


class StubStatusSource:
    def __init__(self):
        self.resolutions: dict[str, MarketResolution] = {}
        self.failing: set[str] = set()
        self.calls: list[str] = []

    def get_resolution(self, market):
        self.calls.append(market.market_id)
        if market.market_id in self.failing:
            raise ConnectionError("status endpoint timeout")
        return self.resolutions.get(market.market_id, MarketResolution(closed=False))


@pytest.fixture
def status_source() -> StubStatusSource:
    return StubStatusSource()


@pytest.fixture
def resolver(registry, ledger, status_source, detector) -> ClosureResolver:
    return ClosureResolver(registry, ledger, status_source, detector=detector)


@pytest.fixture
def locked_market(market, registry, ledger):
    """48 Up @ 0.52 and 48 Down @ 0.48: break-even whichever side wins."""
    registry.track(market)
    ledger.record_fill(market.market_id, Side.UP, 48, 0.52, order_id="u1")
    ledger.record_fill(market.market_id, Side.DOWN, 48, 0.48, order_id="d1")
    return market


class TestResolveOnce:
    def test_settles_closed_market(self, resolver, status_source, locked_market, registry, ledger):
        mid = locked_market.market_id
        status_source.resolutions[mid] = MarketResolution(closed=True, winner=Side.UP)

        settled = resolver.resolve_once(now=locked_market.end_ts + 1)

        assert len(settled) == 1
        record = settled[0]
        assert record.winner is Side.UP
        assert record.payout == 48
        assert record.total_cost == pytest.approx(48.0)
        assert record.actual_pnl == pytest.approx(0.0)
        assert registry.status(mid) is MarketStatus.CLOSED
        assert registry.winner(mid) is Side.UP
        assert ledger.is_frozen(mid)
        assert resolver.settlement(mid) == record

    def test_window_not_ended_is_not_polled(self, resolver, status_source, locked_market):
        status_source.resolutions[locked_market.market_id] = MarketResolution(closed=True, winner=Side.UP)
        assert resolver.resolve_once(now=locked_market.end_ts - 1) == []
        assert status_source.calls == []

    def test_not_closed_yet(self, resolver, locked_market, registry):
        assert resolver.resolve_once(now=locked_market.end_ts + 1) == []
        assert not registry.is_closed(locked_market.market_id)

    def test_settlement_happens_once(self, resolver, status_source, locked_market):
        mid = locked_market.market_id
        status_source.resolutions[mid] = MarketResolution(closed=True, winner=Side.UP)
        resolver.resolve_once(now=locked_market.end_ts + 1)

        assert resolver.resolve_once(now=locked_market.end_ts + 30) == []
        assert resolver.settle_market(locked_market, Side.DOWN) is None
        assert len(resolver.settlements()) == 1
        assert resolver.settlement(mid).winner is Side.UP

    def test_closed_without_winner_is_retried(self, resolver, status_source, locked_market, registry):
        mid = locked_market.market_id
        status_source.resolutions[mid] = MarketResolution(closed=True, winner=None)
        assert resolver.resolve_once(now=locked_market.end_ts + 1) == []
        assert not registry.is_closed(mid)

        status_source.resolutions[mid] = MarketResolution(closed=True, winner=Side.DOWN)
        settled = resolver.resolve_once(now=locked_market.end_ts + 21)
        assert [r.winner for r in settled] == [Side.DOWN]

    def test_status_error_does_not_block_other_markets(
        self, resolver, status_source, locked_market, registry, ledger,
    ):
        other = replace(
            locked_market,
            market_id="0xcondition-eth-15m",
            slug="eth-updown-15m-1760000400",
            market_type="eth-15m",
        )
        registry.track(other)
        ledger.record_fill(other.market_id, Side.UP, 14, 0.60, order_id="e1")

        status_source.failing.add(locked_market.market_id)
        status_source.resolutions[other.market_id] = MarketResolution(closed=True, winner=Side.UP)

        settled = resolver.resolve_once(now=locked_market.end_ts + 1)

        assert [r.market_id for r in settled] == [other.market_id]
        assert settled[0].actual_pnl == pytest.approx(14 - 8.4)
        assert not registry.is_closed(locked_market.market_id)

        status_source.failing.clear()
        status_source.resolutions[locked_market.market_id] = MarketResolution(closed=True, winner=Side.UP)
        assert len(resolver.resolve_once(now=locked_market.end_ts + 21)) == 1


class TestSettleMarket:
    def test_losing_heavy_side(self, resolver, market, registry, ledger):
        registry.track(market)
        ledger.record_fill(market.market_id, Side.UP, 48, 0.52, order_id="u1")

        record = resolver.settle_market(market, Side.DOWN, now=market.end_ts)

        assert record.payout == 0
        assert record.actual_pnl == pytest.approx(-24.96)
        assert resolver.total_profit == pytest.approx(-24.96)

    def test_market_with_no_fills(self, resolver, market, registry):
        registry.track(market)
        record = resolver.settle_market(market, Side.UP)
        assert record.total_cost == 0
        assert record.actual_pnl == 0

    def test_ticks_after_settlement_are_stale(self, resolver, strategy, locked_market, make_tick, paper):
        resolver.settle_market(locked_market, Side.UP)
        result = strategy.process_tick(make_tick(0.50, 0.44))
        assert isinstance(result.error, StaleMarket)
        assert paper.orders == []

    def test_fills_after_settlement_are_refused(self, resolver, locked_market, ledger):
        resolver.settle_market(locked_market, Side.UP)
        with pytest.raises(StaleMarket):
            ledger.record_fill(locked_market.market_id, Side.DOWN, 10, 0.4, order_id="late")

    def test_trend_windows_are_dropped(self, resolver, locked_market, detector):
        detector.observe(locked_market.market_id, Side.UP, 0.5)
        resolver.settle_market(locked_market, Side.UP)
        assert detector.window(locked_market.market_id, Side.UP) == []

    def test_listener_receives_record(self, resolver, locked_market):
        seen = []
        resolver.add_listener(lambda m, record: seen.append((m.slug, record.winner)))
        resolver.settle_market(locked_market, Side.DOWN)
        assert seen == [(locked_market.slug, Side.DOWN)]


class TestPrune:
    def test_releases_settled_market(self, resolver, locked_market, registry, ledger):
        mid = locked_market.market_id
        assert not resolver.prune(mid)
        resolver.settle_market(locked_market, Side.UP)
        assert resolver.prune(mid)
        assert not registry.is_tracked(mid)
        assert ledger.market_ids() == []
        assert resolver.settlement(mid) is None
        assert resolver.total_profit == pytest.approx(0.0)

    def test_pruned_market_stays_settled(self, resolver, strategy, locked_market, make_tick, paper, ledger):
        resolver.settle_market(locked_market, Side.UP)
        resolver.prune(locked_market.market_id)
        assert resolver.settle_market(locked_market, Side.DOWN) is None
        result = strategy.process_tick(make_tick(0.50, 0.44))
        assert isinstance(result.error, StaleMarket)
        assert paper.orders == []
        with pytest.raises(StaleMarket):
            ledger.record_fill(locked_market.market_id, Side.DOWN, 10, 0.4, order_id="late")


class TestProfitTracking:
    def test_period_and_total(self, resolver, market, registry, ledger):
        second = replace(market, market_id="0xsecond", slug="btc-updown-15m-1760001300")
        for m in (market, second):
            registry.track(m)
            ledger.record_fill(m.market_id, Side.UP, 10, 0.40, order_id=f"{m.market_id}-1")

        resolver.settle_market(market, Side.UP)
        assert resolver.reset_period() == pytest.approx(6.0)
        assert resolver.period_profit == 0.0

        resolver.settle_market(second, Side.DOWN)
        assert resolver.period_profit == pytest.approx(-4.0)
        assert resolver.total_profit == pytest.approx(2.0)
