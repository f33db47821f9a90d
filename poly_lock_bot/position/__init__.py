"""Position tracking and PnL calculation."""
from __future__ import annotations

from poly_lock_bot.position.ledger import PositionLedger
from poly_lock_bot.position.models import Position, ProjectedPosition
from poly_lock_bot.position.pnl_calculator import (
    apply_fill,
    project,
    replay,
    settle,
)

__all__ = [
    "Position",
    "PositionLedger",
    "ProjectedPosition",
    "apply_fill",
    "project",
    "replay",
    "settle",
]
