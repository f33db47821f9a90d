"""Immutable position snapshots."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from poly_lock_bot.types import Side


@dataclass(frozen=True)
class Position:
    """
    Inventory and cost basis for one market.

    Only shares and cumulative cost are stored; averages, PnL outcomes and
    pair metrics are always recomputed.
    """
    market_id: str
    up_shares: float = 0.0
    up_cost: float = 0.0
    down_shares: float = 0.0
    down_cost: float = 0.0

    def shares(self, side: Side) -> float:
        return self.up_shares if side is Side.UP else self.down_shares

    def cost(self, side: Side) -> float:
        return self.up_cost if side is Side.UP else self.down_cost

    def avg_price(self, side: Side) -> float:
        shares = self.shares(side)
        return self.cost(side) / shares if shares > 0 else 0.0

    @property
    def up_avg_price(self) -> float:
        return self.avg_price(Side.UP)

    @property
    def down_avg_price(self) -> float:
        return self.avg_price(Side.DOWN)

    @property
    def is_empty(self) -> bool:
        return self.up_shares == 0 and self.down_shares == 0

    @property
    def total_cost(self) -> float:
        return self.up_cost + self.down_cost

    def pnl_if_wins(self, side: Side) -> float:
        return self.shares(side) * 1.0 - self.total_cost

    @property
    def pnl_if_up_wins(self) -> float:
        return self.pnl_if_wins(Side.UP)

    @property
    def pnl_if_down_wins(self) -> float:
        return self.pnl_if_wins(Side.DOWN)

    @property
    def pairs(self) -> float:
        return min(self.up_shares, self.down_shares)

    @property
    def cost_per_pair(self) -> Optional[float]:
        """total_cost / pairs, or None while no pair exists."""
        pairs = self.pairs
        return self.total_cost / pairs if pairs > 0 else None

    def underweight_side(self) -> Optional[Side]:
        """Side holding fewer shares, None when balanced."""
        if self.up_shares < self.down_shares:
            return Side.UP
        if self.down_shares < self.up_shares:
            return Side.DOWN
        return None

    def describe(self) -> str:
        return (
            f"Up {self.up_shares:.2f} @ ${self.up_avg_price:.4f} (invest ${self.up_cost:.2f}) | "
            f"Down {self.down_shares:.2f} @ ${self.down_avg_price:.4f} (invest ${self.down_cost:.2f}) | "
            f"total ${self.total_cost:.2f} | PnL if Up wins ${self.pnl_if_up_wins:.2f} | "
            f"if Down wins ${self.pnl_if_down_wins:.2f}"
        )


@dataclass(frozen=True)
class ProjectedPosition:
    """What a position would become if ``quantity`` at ``price`` were added to ``side``."""
    side: Side
    quantity: float
    price: float
    position: Position

    @property
    def cost_per_pair(self) -> Optional[float]:
        return self.position.cost_per_pair

    @property
    def pnl_if_up_wins(self) -> float:
        return self.position.pnl_if_up_wins

    @property
    def pnl_if_down_wins(self) -> float:
        return self.position.pnl_if_down_wins

    def pnl_if_wins(self, side: Side) -> float:
        return self.position.pnl_if_wins(side)
