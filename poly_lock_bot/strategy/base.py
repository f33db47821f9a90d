"""Abstract base class for single-market trading strategies."""
from __future__ import annotations

import abc
import logging
import threading
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from poly_lock_bot.market.discovery import Market

logger = logging.getLogger(__name__)


class StrategyEngine(abc.ABC):
    """
    Abstract base for a strategy bound to one market window.

    Lifecycle:
        1. __init__()  receives the market + shared components
        2. start()     runs the strategy loop in a daemon thread
        3. stop()      ends the loop

    When a window ends the bot stops the old engine and starts a new one
    for the next window's market.
    """

    def __init__(self, market: "Market"):
        self.market = market

        self._running = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ── public interface ──────────────────────────────────────────

    def start(self) -> None:
        """Start the strategy loop in a background daemon thread."""
        if self._running:
            logger.warning("Strategy already running for %s", self.market.slug)
            return

        logger.info("Starting strategy for market %s", self.market.slug)
        self._running = True
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name=f"strategy-{self.market.slug}",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop the strategy loop and wait briefly for the thread to exit."""
        if not self._running:
            return

        logger.info("Stopping strategy for market %s", self.market.slug)
        self._stop_event.set()
        self._running = False

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    @property
    def is_running(self) -> bool:
        return self._running

    # ── methods subclasses MUST implement ────────────────────────

    @abc.abstractmethod
    def on_tick(self) -> None:
        """
        Called once per strategy loop iteration.

        Implementations fetch the latest quotes for self.market and act on
        them.
        """
        ...

    # ── optional hooks subclasses MAY override ───────────────────

    def on_start(self) -> None:
        """Called once when the strategy loop begins (inside the thread)."""
        pass

    def on_stop(self) -> None:
        """Called once when the strategy loop ends (inside the thread)."""
        pass

    def tick_interval_sec(self) -> float:
        """How often on_tick() is called. Override to change cadence."""
        return 1.0

    # ── internal machinery ───────────────────────────────────────

    def _run_loop(self) -> None:
        """Main loop: calls on_tick() at tick_interval_sec() cadence."""
        try:
            self.on_start()
            while not self._stop_event.is_set():
                try:
                    self.on_tick()
                except Exception:
                    logger.exception(
                        "Error in strategy tick for %s", self.market.slug
                    )
                self._stop_event.wait(timeout=self.tick_interval_sec())
        finally:
            self.on_stop()
