"""Market closure detection and realized PnL settlement."""
from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Callable, Optional, Protocol

from poly_lock_bot.position.ledger import PositionLedger
from poly_lock_bot.position.pnl_calculator import settle
from poly_lock_bot.trend.detector import TrendDetector
from poly_lock_bot.types import MarketResolution, SettlementRecord, Side

if TYPE_CHECKING:
    from poly_lock_bot.market.discovery import Market
    from poly_lock_bot.market.tracking import MarketRegistry

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SEC = 20.0

SettlementListener = Callable[["Market", SettlementRecord], None]


class MarketStatusSource(Protocol):
    def get_resolution(self, market: "Market") -> MarketResolution:
        ...


class ClosureResolver:
    """
    Single writer of the OPEN -> CLOSED transition.

    Each poll asks the status source about every open market whose window
    has ended. The first time a market reports closed with a winner, the
    final position is frozen, settled and the market is marked closed, all
    under the market's exclusive lock so no tick can slip a buy in between.
    Re-polling a closed market is a no-op.
    """

    def __init__(
        self,
        registry: "MarketRegistry",
        ledger: PositionLedger,
        status_source: MarketStatusSource,
        detector: Optional[TrendDetector] = None,
        poll_interval_sec: float = DEFAULT_POLL_INTERVAL_SEC,
        clock: Callable[[], float] = time.time,
    ):
        self.registry = registry
        self.ledger = ledger
        self.status_source = status_source
        self.detector = detector
        self.poll_interval_sec = poll_interval_sec
        self._clock = clock

        self._settlements: dict[str, SettlementRecord] = {}
        self._listeners: list[SettlementListener] = []
        self._total_profit = 0.0
        self._period_profit = 0.0
        self._lock = threading.RLock()

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def add_listener(self, listener: SettlementListener) -> None:
        """Called with (market, record) after each settlement, outside the market lock."""
        self._listeners.append(listener)

    # ── polling ──────────────────────────────────────────────────

    def resolve_once(self, now: Optional[float] = None) -> list[SettlementRecord]:
        """
        Poll every open market whose window has ended.

        Returns:
            SettlementRecords created by this poll (empty if nothing closed)
        """
        now = self._clock() if now is None else now
        settled: list[SettlementRecord] = []

        for market in self.registry.open_markets():
            if market.end_ts > now:
                continue
            try:
                resolution = self.status_source.get_resolution(market)
            except Exception as e:
                logger.warning("[%s] Market status query failed, retrying next poll: %s", market.slug, e)
                continue

            if not resolution.closed:
                logger.debug("[%s] Window ended, market not closed yet", market.slug)
                continue
            if resolution.winner is None:
                logger.info("[%s] Market closed but winner not published yet", market.slug)
                continue

            record = self.settle_market(market, resolution.winner, now)
            if record is not None:
                settled.append(record)

        if settled:
            logger.info(
                "Closure poll settled %d market(s) | period profit $%.2f | total profit $%.2f",
                len(settled), self.period_profit, self.total_profit,
            )
        return settled

    def settle_market(self, market: "Market", winner: Side, now: Optional[float] = None) -> Optional[SettlementRecord]:
        """
        Terminal transition for one market.

        Returns:
            The new SettlementRecord, or None if the market was already closed
        """
        now = self._clock() if now is None else now
        mid = market.market_id

        with self.registry.exclusive(mid):
            if self.registry.is_closed(mid) or mid in self._settlements:
                return None

            position = self.ledger.freeze(mid)
            record = settle(position, winner, settled_at=now)
            self.registry.mark_closed(mid, winner)
            if self.detector is not None:
                self.detector.reset(mid)

            with self._lock:
                self._settlements[mid] = record
                self._total_profit += record.actual_pnl
                self._period_profit += record.actual_pnl

        logger.info(
            "[%s] SETTLED winner=%s | cost $%.2f | payout $%.2f | PnL $%+.2f | Up %.2f / Down %.2f",
            market.slug, winner.value, record.total_cost, record.payout, record.actual_pnl,
            record.up_shares, record.down_shares,
        )

        for listener in self._listeners:
            try:
                listener(market, record)
            except Exception:
                logger.exception("Settlement listener failed for %s", market.slug)
        return record

    def prune(self, market_id: str) -> bool:
        """
        Release everything held in memory for a settled market.

        The market keeps reading as closed and frozen, so a late tick or fill
        still gets StaleMarket. Profit totals are unaffected.

        Returns:
            False if the market has not been settled
        """
        with self.registry.exclusive(market_id):
            if not self.registry.prune(market_id):
                return False
            self.ledger.prune(market_id)
            with self._lock:
                self._settlements.pop(market_id, None)
        logger.debug("[%s] Settled market released", market_id[:12])
        return True

    # ── results ──────────────────────────────────────────────────

    def settlement(self, market_id: str) -> Optional[SettlementRecord]:
        with self._lock:
            return self._settlements.get(market_id)

    def settlements(self) -> list[SettlementRecord]:
        with self._lock:
            return list(self._settlements.values())

    @property
    def total_profit(self) -> float:
        with self._lock:
            return self._total_profit

    @property
    def period_profit(self) -> float:
        with self._lock:
            return self._period_profit

    def reset_period(self) -> float:
        """Start a new reporting period; returns the profit of the one that ended."""
        with self._lock:
            ended, self._period_profit = self._period_profit, 0.0
        return ended

    # ── background loop ──────────────────────────────────────────

    def start(self) -> None:
        """Spawn the closure polling daemon thread."""
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="closure-resolver",
            daemon=True,
        )
        self._thread.start()
        logger.info("Closure resolver started (interval=%ss)", self.poll_interval_sec)

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.resolve_once()
            except Exception:
                logger.exception("Error in closure resolver loop")
            self._stop_event.wait(timeout=self.poll_interval_sec)
