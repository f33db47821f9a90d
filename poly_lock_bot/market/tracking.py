"""Tracked market lifecycle and per-market serialization."""
from __future__ import annotations

import logging
import threading
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from poly_lock_bot.market.discovery import Market
from poly_lock_bot.types import MarketStatus, Side

logger = logging.getLogger(__name__)


@dataclass
class MarketState:
    """Mutable lifecycle record; only touched under the registry lock."""
    market: Market
    status: MarketStatus = MarketStatus.OPEN
    winner: Optional[Side] = None
    last_tick_at: Optional[float] = None
    last_buy_at: Optional[float] = None


class MarketRegistry:
    """
    Thread-safe registry of tracked markets.

    Responsibilities:
    - Track each market once (OPEN on first sight)
    - Move a market to CLOSED exactly once, with its winner
    - Hand out one re-entrant lock per market so the tick pipeline and the
      closure resolver never interleave on the same market
    - Drop settled markets on prune(), remembering their ids so late ticks
      still see them as CLOSED
    """

    def __init__(self, retired_maxlen: int = 500):
        self._states: dict[str, MarketState] = {}
        self._market_locks: dict[str, threading.RLock] = {}
        self._retired: deque[str] = deque(maxlen=retired_maxlen)
        self._lock = threading.RLock()

    def track(self, market: Market) -> bool:
        """
        Start tracking a market (idempotent).

        Returns:
            True if the market was new
        """
        with self._lock:
            if market.market_id in self._retired:
                logger.debug("Market already settled: %s", market.slug)
                return False
            if market.market_id in self._states:
                logger.debug("Market already tracked: %s", market.slug)
                return False
            self._states[market.market_id] = MarketState(market=market)
            self._market_locks.setdefault(market.market_id, threading.RLock())
        logger.info("Market tracked: %s (%s) closes at %d", market.slug, market.market_type, int(market.end_ts))
        return True

    def get(self, market_id: str) -> Optional[Market]:
        with self._lock:
            state = self._states.get(market_id)
            return state.market if state else None

    def is_tracked(self, market_id: str) -> bool:
        with self._lock:
            return market_id in self._states

    def status(self, market_id: str) -> Optional[MarketStatus]:
        with self._lock:
            state = self._states.get(market_id)
            return state.status if state else None

    def is_closed(self, market_id: str) -> bool:
        with self._lock:
            if market_id in self._retired:
                return True
        return self.status(market_id) is MarketStatus.CLOSED

    def winner(self, market_id: str) -> Optional[Side]:
        with self._lock:
            state = self._states.get(market_id)
            return state.winner if state else None

    def mark_closed(self, market_id: str, winner: Side) -> bool:
        """
        Transition OPEN -> CLOSED(winner).

        Returns:
            False if the market was unknown or already closed
        """
        with self._lock:
            state = self._states.get(market_id)
            if state is None or state.status is MarketStatus.CLOSED:
                return False
            state.status = MarketStatus.CLOSED
            state.winner = winner
        logger.info("Market closed: %s winner=%s", state.market.slug, winner.value)
        return True

    def prune(self, market_id: str) -> bool:
        """
        Forget a CLOSED market; it keeps reporting closed and cannot be re-tracked.

        Returns:
            False if the market is unknown or still open
        """
        with self._lock:
            state = self._states.get(market_id)
            if state is None or state.status is not MarketStatus.CLOSED:
                return False
            del self._states[market_id]
            self._market_locks.pop(market_id, None)
            self._retired.append(market_id)
        logger.debug("Market pruned: %s", state.market.slug)
        return True

    def open_markets(self) -> list[Market]:
        """Snapshot of markets still OPEN."""
        with self._lock:
            return [s.market for s in self._states.values() if s.status is MarketStatus.OPEN]

    def all_markets(self) -> list[Market]:
        with self._lock:
            return [s.market for s in self._states.values()]

    # ── per-market bookkeeping for the tick pipeline ──────────────────────

    def last_tick_at(self, market_id: str) -> Optional[float]:
        with self._lock:
            state = self._states.get(market_id)
            return state.last_tick_at if state else None

    def accept_tick(self, market_id: str, observed_at: float) -> bool:
        """
        Record a tick timestamp if it is strictly newer than the last one.

        Returns:
            False for duplicate or out-of-order ticks
        """
        with self._lock:
            state = self._states.get(market_id)
            if state is None:
                return False
            if state.last_tick_at is not None and observed_at <= state.last_tick_at:
                return False
            state.last_tick_at = observed_at
            return True

    def last_buy_at(self, market_id: str) -> Optional[float]:
        with self._lock:
            state = self._states.get(market_id)
            return state.last_buy_at if state else None

    def record_buy(self, market_id: str, at: float) -> None:
        with self._lock:
            state = self._states.get(market_id)
            if state is not None:
                state.last_buy_at = at

    @contextmanager
    def exclusive(self, market_id: str) -> Iterator[None]:
        """Hold the market's lock for the duration of the block."""
        with self._lock:
            if market_id in self._retired:
                lock = threading.RLock()
            else:
                lock = self._market_locks.setdefault(market_id, threading.RLock())
        with lock:
            yield

