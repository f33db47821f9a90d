"""Value objects passed between the feed, engine, ledger and resolver."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional

from poly_lock_bot.types.common import ActionKind, Rule, Side


@dataclass(frozen=True)
class PriceTick:
    """Best asks for both sides of one market at one instant."""
    market_id: str
    up_ask: Optional[float]
    down_ask: Optional[float]
    observed_at: float = field(default_factory=time.time)

    def ask(self, side: Side) -> Optional[float]:
        return self.up_ask if side is Side.UP else self.down_ask


@dataclass(frozen=True)
class Trade:
    """One confirmed fill. Append-only; the ledger derives averages from these."""
    market_id: str
    side: Side
    quantity: float
    price: float
    timestamp: float
    order_id: str = ""

    @property
    def cost(self) -> float:
        return self.quantity * self.price


@dataclass(frozen=True)
class Action:
    """
    Tagged variant over NoAction / BuyUp(qty) / BuyDown(qty).

    A buy is executed as ``legs`` successive fills of ``leg_size`` shares.
    """
    kind: ActionKind
    leg_size: float = 0.0
    legs: int = 0

    @classmethod
    def none(cls) -> "Action":
        return cls(ActionKind.NO_ACTION)

    @classmethod
    def buy(cls, side: Side, leg_size: float, legs: int = 1) -> "Action":
        kind = ActionKind.BUY_UP if side is Side.UP else ActionKind.BUY_DOWN
        return cls(kind, leg_size=leg_size, legs=legs)

    @property
    def is_buy(self) -> bool:
        return self.kind is not ActionKind.NO_ACTION

    @property
    def side(self) -> Optional[Side]:
        if self.kind is ActionKind.BUY_UP:
            return Side.UP
        if self.kind is ActionKind.BUY_DOWN:
            return Side.DOWN
        return None

    @property
    def quantity(self) -> float:
        return self.leg_size * self.legs


@dataclass(frozen=True)
class Decision:
    action: Action
    rule: Rule
    reason: str = ""
    # Ask the buy is priced at (limit price for every leg)
    price: Optional[float] = None


@dataclass(frozen=True)
class MarketResolution:
    """Result of a market status query. ``winner`` is meaningful only when closed."""
    closed: bool
    winner: Optional[Side] = None


@dataclass(frozen=True)
class SettlementRecord:
    """Terminal PnL record written once per market by the closure resolver."""
    market_id: str
    winner: Side
    total_cost: float
    payout: float
    actual_pnl: float
    up_shares: float = 0.0
    down_shares: float = 0.0
    settled_at: float = field(default_factory=time.time)
