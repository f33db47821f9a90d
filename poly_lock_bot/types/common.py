"""Enumerations shared across the engine."""
from __future__ import annotations

from enum import Enum


class Side(str, Enum):
    """Outcome side of a binary Up/Down market."""

    UP = "Up"
    DOWN = "Down"

    @property
    def opposite(self) -> "Side":
        return Side.DOWN if self is Side.UP else Side.UP

    @classmethod
    def parse(cls, value: str) -> "Side":
        """Parse an outcome label ("Up", "down", "YES"...) into a Side."""
        v = str(value).strip().lower()
        if v in ("up", "yes"):
            return cls.UP
        if v in ("down", "no"):
            return cls.DOWN
        raise ValueError(f"Unknown outcome side: {value!r}")


class TrendState(str, Enum):
    """Short-term momentum of one side's ask."""

    RISING = "rising"
    FALLING = "falling"
    NO_PROGRESS = "no_progress"


class MarketStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class ActionKind(str, Enum):
    NO_ACTION = "no_action"
    BUY_UP = "buy_up"
    BUY_DOWN = "buy_down"


class Rule(str, Enum):
    """Which rule of the decision engine produced a decision."""

    NO_POSITION = "no_position"
    LOCK = "lock"
    EXPANSION = "expansion"
    RIDE = "ride"
    NO_PROGRESS = "no_progress"
