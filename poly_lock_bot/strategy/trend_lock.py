"""Trend-following pair-lock strategy: the serialized per-market tick pipeline."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

from poly_lock_bot.config.models import EngineConfig
from poly_lock_bot.errors import (
    EngineError,
    InvalidFill,
    InvalidPrice,
    NoQuote,
    OrderRejected,
    StaleMarket,
)
from poly_lock_bot.orders.placer import Fill, OrderPlacer
from poly_lock_bot.position.ledger import PositionLedger
from poly_lock_bot.strategy.base import StrategyEngine
from poly_lock_bot.strategy.decision import DecisionEngine
from poly_lock_bot.trend.detector import TrendDetector
from poly_lock_bot.types import Action, Decision, PriceTick, Rule, Side, Trade

if TYPE_CHECKING:
    from poly_lock_bot.market.discovery import Market
    from poly_lock_bot.market.tracking import MarketRegistry
    from poly_lock_bot.market_data.quote_feed import QuoteFeed

logger = logging.getLogger(__name__)

TradeListener = Callable[["Market", Trade, Decision], None]


@dataclass(frozen=True)
class TickResult:
    """Outcome of one tick. Engine errors are carried here instead of raised."""
    market_id: str
    decision: Optional[Decision] = None
    fills: tuple[Fill, ...] = ()
    error: Optional[EngineError] = None
    ignored: bool = False
    cooldown: bool = False

    @property
    def traded(self) -> bool:
        return bool(self.fills)

    @property
    def rule(self) -> Optional[Rule]:
        return self.decision.rule if self.decision else None

    @property
    def quantity(self) -> float:
        return sum(f.quantity for f in self.fills)


def _check_ask(market_id: str, side: Side, ask: Optional[float]) -> float:
    if ask is None:
        raise NoQuote(market_id=market_id, side=side.value)
    if isinstance(ask, bool) or not isinstance(ask, (int, float)) or not math.isfinite(ask) or not (0.0 < ask < 1.0):
        raise InvalidPrice(ask, market_id=market_id, side=side.value)
    return float(ask)


class TrendLockStrategy(StrategyEngine):
    """
    Per-market engine instance.

    Each tick runs as one unit under the market's exclusive lock:
    trend update -> decision -> order legs -> ledger update. Only a
    confirmed fill changes the position; a rejected leg stops the
    remaining legs and is reported, never retried.

    Shared components (registry, ledger, detector) are keyed by market id,
    so several instances can run side by side without interfering.
    """

    def __init__(
        self,
        market: "Market",
        *,
        registry: "MarketRegistry",
        ledger: PositionLedger,
        detector: TrendDetector,
        order_placer: OrderPlacer,
        decision_engine: Optional[DecisionEngine] = None,
        config: Optional[EngineConfig] = None,
        feed: Optional["QuoteFeed"] = None,
    ):
        super().__init__(market)
        self.config = config or EngineConfig()
        self.registry = registry
        self.ledger = ledger
        self.detector = detector
        self.order_placer = order_placer
        self.decision_engine = decision_engine or DecisionEngine(self.config)
        self.feed = feed

        # Expansion buys since the last lock; reset whenever a lock fills
        self._expansion_buys = 0
        self._trade_listeners: list[TradeListener] = []

    def add_trade_listener(self, listener: TradeListener) -> None:
        self._trade_listeners.append(listener)

    @property
    def expansion_buys(self) -> int:
        return self._expansion_buys

    # ── StrategyEngine hooks ─────────────────────────────────────

    def on_start(self) -> None:
        self.registry.track(self.market)

    def on_tick(self) -> None:
        if self.feed is None:
            return
        self.process_tick(self.feed.poll(self.market))

    def tick_interval_sec(self) -> float:
        return self.config.check_interval_ms / 1000.0

    # ── tick pipeline ────────────────────────────────────────────

    def process_tick(self, tick: PriceTick) -> TickResult:
        """
        Run one tick through trend detection, the rule set and execution.

        Never raises engine errors; they come back in TickResult.error.
        """
        mid = self.market.market_id
        if tick.market_id != mid:
            raise ValueError(f"Tick for {tick.market_id} routed to strategy for {mid}")

        with self.registry.exclusive(mid):
            self.registry.track(self.market)

            if self.registry.is_closed(mid) or self.ledger.is_frozen(mid):
                err = StaleMarket(mid)
                logger.error("[%s] Tick after closure rejected: %s", self.market.slug, err)
                return TickResult(mid, error=err)

            if not self.registry.accept_tick(mid, tick.observed_at):
                logger.debug("[%s] Ignoring stale/duplicate tick at %.3f", self.market.slug, tick.observed_at)
                return TickResult(mid, ignored=True)

            try:
                up_ask = _check_ask(mid, Side.UP, tick.up_ask)
                down_ask = _check_ask(mid, Side.DOWN, tick.down_ask)
                trend_up = self.detector.observe(mid, Side.UP, up_ask)
                trend_down = self.detector.observe(mid, Side.DOWN, down_ask)

                if self.market.time_to_close(tick.observed_at) <= 0:
                    decision = Decision(Action.none(), Rule.NO_PROGRESS, reason="window over")
                    return TickResult(mid, decision=decision)

                decision = self.decision_engine.decide(
                    self.market,
                    self.ledger.get(mid),
                    tick,
                    trend_up,
                    trend_down,
                    expansion_buys=self._expansion_buys,
                )
            except (NoQuote, InvalidPrice) as e:
                logger.warning("[%s] %s", self.market.slug, e)
                return TickResult(mid, error=e)

            logger.debug(
                "[%s] Up %.4f (%s) Down %.4f (%s) -> %s %s",
                self.market.slug, up_ask, trend_up.value, down_ask, trend_down.value,
                decision.rule.value, decision.reason,
            )

            if not decision.action.is_buy:
                return TickResult(mid, decision=decision)

            if self._in_cooldown(tick.observed_at):
                logger.debug("[%s] %s suppressed by cooldown", self.market.slug, decision.rule.value)
                return TickResult(mid, decision=decision, cooldown=True)

            return self._execute(decision, tick)

    def _execute(self, decision: Decision, tick: PriceTick) -> TickResult:
        mid = self.market.market_id
        action = decision.action
        side = action.side
        logger.info(
            "[%s] %s: BUY %s %d x %.2f @ $%.4f | %s",
            self.market.slug, decision.rule.value.upper(), side.value,
            action.legs, action.leg_size, decision.price, decision.reason,
        )

        fills: list[Fill] = []
        error: Optional[EngineError] = None
        for leg in range(action.legs):
            try:
                fill = self.order_placer.buy(self.market, side, action.leg_size, decision.price)
            except OrderRejected as e:
                logger.warning(
                    "[%s] Leg %d/%d rejected, skipping remaining legs: %s",
                    self.market.slug, leg + 1, action.legs, e.reason,
                )
                error = e
                break

            try:
                trade = self.ledger.record_fill(
                    mid, fill.side, fill.quantity, fill.price,
                    order_id=fill.order_id, timestamp=fill.timestamp,
                )
            except (InvalidFill, StaleMarket) as e:
                logger.error("[%s] Fill %s not recorded: %s", self.market.slug, fill.order_id, e)
                error = e
                break

            if trade is None:
                continue
            fills.append(fill)
            for listener in self._trade_listeners:
                try:
                    listener(self.market, trade, decision)
                except Exception:
                    logger.exception("Trade listener failed for %s", self.market.slug)

        if fills:
            self.registry.record_buy(mid, tick.observed_at)
            if decision.rule is Rule.LOCK:
                self._expansion_buys = 0
            elif decision.rule is Rule.EXPANSION:
                self._expansion_buys += 1
            logger.info("[%s] Position: %s", self.market.slug, self.ledger.get(mid).describe())

        return TickResult(mid, decision=decision, fills=tuple(fills), error=error)

    def _in_cooldown(self, now: float) -> bool:
        cooldown = self.config.cooldown_seconds_1h if self.market.is_hourly else self.config.cooldown_seconds
        if cooldown <= 0:
            return False
        last = self.registry.last_buy_at(self.market.market_id)
        return last is not None and now - last < cooldown
