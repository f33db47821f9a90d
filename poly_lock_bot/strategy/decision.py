"""Priority-ordered rule set: No-Position, Lock, Expansion, Ride / No-Progress."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

from poly_lock_bot.config.models import EngineConfig
from poly_lock_bot.errors import NoQuote
from poly_lock_bot.market.discovery import Market
from poly_lock_bot.position.models import Position
from poly_lock_bot.position.pnl_calculator import project
from poly_lock_bot.strategy.sizing import SizingPolicy
from poly_lock_bot.types import Action, Decision, PriceTick, Rule, Side, TrendState

logger = logging.getLogger(__name__)

MIN_ORDER_SIZE = 5.0        # exchange minimum order size

# held_avg + ask is compared after rounding so 0.52 + 0.47 == 0.99 exactly
_PAIR_COST_PLACES = 9


@dataclass(frozen=True)
class LockCandidate:
    """A side that could be bought to pair off existing inventory."""
    side: Side
    price: float
    leg_size: float
    legs: int
    projected_cost_per_pair: float
    underweight: bool

    @property
    def quantity(self) -> float:
        return self.leg_size * self.legs


def split_legs(total: float, max_legs: int) -> tuple[float, int]:
    """
    Split ``total`` shares into at most ``max_legs`` legs of at least
    MIN_ORDER_SIZE each (a single leg when total is below that).

    Leg size is floored to 2 decimals so legs * leg_size never exceeds total.
    """
    legs = max(1, min(max_legs, int(total // MIN_ORDER_SIZE)))
    leg_size = math.floor(total / legs * 100 + 1e-9) / 100
    return leg_size, legs


def pick_lock(candidates: Sequence[LockCandidate]) -> Optional[LockCandidate]:
    """Lowest projected cost per pair wins; on a tie, the underweight side."""
    # Only the side with fewer shares has a positive imbalance, so decide()
    # never passes more than one candidate here.
    if not candidates:
        return None
    return min(candidates, key=lambda c: (round(c.projected_cost_per_pair, _PAIR_COST_PLACES), not c.underweight))


class DecisionEngine:
    """
    Turns (position, tick, trends) into at most one buy per tick.

    Rules are evaluated in strict priority order and the first match wins:

    1. No-Position: flat book and a side is Rising -> enter that side in
       ``entry_legs`` legs.
    2. Lock: the held side's average plus the underweight side's ask is
       strictly below ``cost_per_pair_max`` -> buy the underweight side in
       ``lock_legs`` legs, up to the share imbalance.
    3. Expansion: lock unavailable, underweight side Rising, and its win-PnL
       still trails -> buy one increment of the underweight side.
    4. Ride / No-Progress: NoAction.

    The engine is pure with respect to the ledger: it reads a Position
    snapshot and never mutates anything.
    """

    def __init__(self, config: Optional[EngineConfig] = None, sizing: Optional[SizingPolicy] = None):
        self.config = config or EngineConfig()
        self.sizing = sizing or SizingPolicy(self.config)

    # ── public interface ──────────────────────────────────────────

    def decide(
        self,
        market: Market,
        position: Position,
        tick: PriceTick,
        trend_up: TrendState,
        trend_down: TrendState,
        expansion_buys: int = 0,
    ) -> Decision:
        """
        Evaluate the rule set for one tick.

        Args:
            market: Market the tick belongs to (type and end time drive sizing)
            position: Current ledger snapshot for the market
            tick: Latest asks
            trend_up: Trend of the Up ask after observing this tick
            trend_down: Trend of the Down ask after observing this tick
            expansion_buys: Expansion buys since the last lock

        Raises:
            NoQuote: either ask is missing
        """
        for side in Side:
            if tick.ask(side) is None:
                raise NoQuote(market_id=market.market_id, side=side.value)

        trends = {Side.UP: trend_up, Side.DOWN: trend_down}
        ttc = market.time_to_close(tick.observed_at)

        if position.is_empty:
            return self._no_position(market, tick, trends, ttc)

        lock = pick_lock(self.lock_candidates(market, position, tick, ttc))
        if lock is not None:
            projected_pnl = project(position, lock.side, lock.quantity, lock.price)
            return Decision(
                action=Action.buy(lock.side, lock.leg_size, lock.legs),
                rule=Rule.LOCK,
                reason=(
                    f"held avg {position.avg_price(lock.side.opposite):.4f} + {lock.side.value} ask "
                    f"{lock.price:.4f} < {self.config.cost_per_pair_max:.4f}; "
                    f"cost/pair -> {lock.projected_cost_per_pair:.4f}, "
                    f"PnL Up {projected_pnl.pnl_if_up_wins:.2f} / Down {projected_pnl.pnl_if_down_wins:.2f}"
                ),
                price=lock.price,
            )

        expansion = self._expansion(market, position, tick, trends, ttc, expansion_buys)
        if expansion is not None:
            return expansion

        return self._ride_or_no_progress(position, trends)

    def lock_candidates(
        self,
        market: Market,
        position: Position,
        tick: PriceTick,
        time_to_close: float,
    ) -> list[LockCandidate]:
        """Every side whose purchase would lock pairs below the cost ceiling."""
        cfg = self.config
        candidates: list[LockCandidate] = []
        for side in Side:
            held = side.opposite
            imbalance = position.shares(held) - position.shares(side)
            if imbalance < MIN_ORDER_SIZE:
                continue
            ask = tick.ask(side)
            if ask is None or not self._buyable(ask):
                continue
            if not self.lock_condition(position, side, ask):
                continue

            shares = position.shares(side)
            size = self.sizing.size_for(market.market_type, time_to_close, shares)
            if size <= 0:
                continue
            total = min(size * cfg.lock_legs, imbalance, self.sizing.headroom(shares))
            leg_size, legs = split_legs(total, cfg.lock_legs)

            projected = project(position, side, leg_size * legs, ask)
            candidates.append(LockCandidate(
                side=side,
                price=ask,
                leg_size=leg_size,
                legs=legs,
                projected_cost_per_pair=projected.cost_per_pair or 0.0,
                underweight=position.underweight_side() is side,
            ))
        return candidates

    # ── rules ────────────────────────────────────────────────────

    def _no_position(self, market: Market, tick: PriceTick, trends: dict[Side, TrendState], ttc: float) -> Decision:
        rising = [
            s for s in Side
            if trends[s] is TrendState.RISING and self._buyable(tick.ask(s))
        ]
        if not rising:
            return Decision(Action.none(), Rule.NO_POSITION, reason="flat, no side rising")

        # Both rising: follow the stronger (pricier) side
        side = max(rising, key=lambda s: tick.ask(s))
        size = self.sizing.size_for(market.market_type, ttc, 0.0)
        if size <= 0:
            return Decision(Action.none(), Rule.NO_POSITION, reason=f"flat, {side.value} side cap reached")
        total = min(size * self.config.entry_legs, self.sizing.headroom(0.0))
        leg_size, legs = split_legs(total, self.config.entry_legs)
        price = tick.ask(side)
        return Decision(
            action=Action.buy(side, leg_size, legs),
            rule=Rule.NO_POSITION,
            reason=f"flat, {side.value} rising @ {price:.4f}",
            price=price,
        )

    def _expansion(
        self,
        market: Market,
        position: Position,
        tick: PriceTick,
        trends: dict[Side, TrendState],
        ttc: float,
        expansion_buys: int,
    ) -> Optional[Decision]:
        side = position.underweight_side()
        if side is None or trends[side] is not TrendState.RISING:
            return None
        ask = tick.ask(side)
        if not self._buyable(ask):
            return None

        # Lock territory, even when the imbalance is too small to lock
        if self.lock_condition(position, side, ask):
            return None

        other = side.opposite
        if position.pnl_if_wins(side) >= position.pnl_if_wins(other):
            return None

        if expansion_buys >= self.config.expansion_max_buys:
            logger.debug(
                "[%s] Expansion cap reached (%d buys since last lock)", market.market_id[:12], expansion_buys,
            )
            return None

        size = self.sizing.size_for(market.market_type, ttc, position.shares(side))
        if size <= 0:
            return None
        after = project(position, side, size, ask)
        if not (after.pnl_if_wins(side) < after.pnl_if_wins(other) or after.pnl_if_wins(side) < 0):
            return None

        return Decision(
            action=Action.buy(side, size, 1),
            rule=Rule.EXPANSION,
            reason=(
                f"{side.value} rising, lock unavailable; PnL if {side.value} wins "
                f"{position.pnl_if_wins(side):.2f} -> {after.pnl_if_wins(side):.2f} "
                f"(if {other.value} wins {after.pnl_if_wins(other):.2f})"
            ),
            price=ask,
        )

    def _ride_or_no_progress(self, position: Position, trends: dict[Side, TrendState]) -> Decision:
        underweight = position.underweight_side()
        if underweight is not None and trends[underweight.opposite] is TrendState.RISING:
            return Decision(
                Action.none(), Rule.RIDE, reason=f"{underweight.opposite.value} overweight and rising",
            )
        return Decision(Action.none(), Rule.NO_PROGRESS, reason="no lock, no expansion")

    # ── helpers ──────────────────────────────────────────────────

    def lock_condition(self, position: Position, side: Side, ask: float) -> bool:
        """held_avg(opposite) + ask(side) strictly below cost_per_pair_max."""
        held = side.opposite
        if position.shares(held) <= 0:
            return False
        pair_cost = round(position.avg_price(held) + ask, _PAIR_COST_PLACES)
        return pair_cost < self.config.cost_per_pair_max

    def _buyable(self, ask: Optional[float]) -> bool:
        if ask is None:
            return False
        return self.config.min_side_price <= ask <= self.config.max_side_price
