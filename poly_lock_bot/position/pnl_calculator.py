"""PnL calculation utilities."""
from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Iterable, Optional

from poly_lock_bot.position.models import Position, ProjectedPosition
from poly_lock_bot.types import SettlementRecord, Side, Trade

logger = logging.getLogger(__name__)


def apply_fill(position: Position, side: Side, quantity: float, price: float) -> Position:
    """Return a new Position with ``quantity`` at ``price`` added to ``side``."""
    if side is Side.UP:
        return replace(
            position,
            up_shares=position.up_shares + quantity,
            up_cost=position.up_cost + quantity * price,
        )
    return replace(
        position,
        down_shares=position.down_shares + quantity,
        down_cost=position.down_cost + quantity * price,
    )


def project(position: Position, side: Side, quantity: float, price: float) -> ProjectedPosition:
    """What-if view of ``position`` after a buy; nothing is committed."""
    return ProjectedPosition(
        side=side,
        quantity=quantity,
        price=price,
        position=apply_fill(position, side, quantity, price),
    )


def replay(market_id: str, trades: Iterable[Trade]) -> Position:
    """
    Rebuild a Position from its trade log.

    The ledger's running snapshot must always equal this.
    """
    position = Position(market_id=market_id)
    for trade in trades:
        position = apply_fill(position, trade.side, trade.quantity, trade.price)
    return position


def settle(
    position: Position,
    winner: Side,
    settled_at: Optional[float] = None,
) -> SettlementRecord:
    """
    Realized PnL once the winner is known.

    Args:
        position: Final (frozen) position for the market
        winner: Winning side; its shares pay $1 each

    Returns:
        SettlementRecord with payout = winning shares and
        actual_pnl = payout - total_cost
    """
    total_cost = position.total_cost
    payout = position.shares(winner) * 1.0
    return SettlementRecord(
        market_id=position.market_id,
        winner=winner,
        total_cost=total_cost,
        payout=payout,
        actual_pnl=payout - total_cost,
        up_shares=position.up_shares,
        down_shares=position.down_shares,
        settled_at=settled_at if settled_at is not None else time.time(),
    )
