#!/usr/bin/env python3
"""
Poly-Lock-Bot: trend-following pair-lock trader for Polymarket Up/Down markets

Usage:
    # Simulation (real quotes and resolutions, paper fills)
    python -m poly_lock_bot.bot

    # Live trading
    python -m poly_lock_bot.bot --production --config config.yaml
"""
from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
import time
from dataclasses import dataclass
from typing import Optional

import yaml

# Load environment variables FIRST, before any imports that read environment
from dotenv import load_dotenv
load_dotenv()

from poly_lock_bot.closure import ClosureResolver
from poly_lock_bot.config import CONFIG_PATH, Config, load_config
from poly_lock_bot.db import TradeDatabase
from poly_lock_bot.exchange import PaperExchange
from poly_lock_bot.exchange.polymarket_client import PolymarketClient
from poly_lock_bot.logging_utils import setup_logging
from poly_lock_bot.market import Market, MarketRegistry, discover_market
from poly_lock_bot.market_data import QuoteFeed
from poly_lock_bot.orders import OrderManager, OrderPlacer
from poly_lock_bot.position import PositionLedger
from poly_lock_bot.strategy import DecisionEngine, SizingPolicy, TrendLockStrategy
from poly_lock_bot.trend import TrendDetector
from poly_lock_bot.types import Decision, SettlementRecord, Trade

logger = logging.getLogger(__name__)

PREFETCH_LEAD_SEC = 60      # fetch next window's market this long before the current one ends
REPORT_INTERVAL_SEC = 3600  # period profit summary cadence


@dataclass
class _MarketSlot:
    """Lifecycle state for one (underlying, timespan) series."""
    underlying: str
    timespan: str
    current: Optional[Market] = None
    next: Optional[Market] = None
    strategy: Optional[TrendLockStrategy] = None

    @property
    def label(self) -> str:
        return f"{self.underlying}-{self.timespan}"


class PairLockBot:
    """
    Main bot class.

    Responsibilities:
    - Build the shared engine components (registry, ledger, trend detector)
    - Run one lifecycle thread per configured series, each driving a
      TrendLockStrategy for the current window and rolling to the next
    - Run the closure resolver and record settlements
    - Handle graceful shutdown
    """

    def __init__(
        self,
        config: Config,
        production: bool = False,
        db_path: Optional[str] = "poly_lock_bot.db",
    ):
        self.config = config
        self.production = production
        self._db_path = db_path

        # State
        self.running = False
        self.shutdown_requested = False
        self._trade_count = 0
        self._trade_count_lock = threading.Lock()
        self._session_id: Optional[int] = None

        engine_cfg = config.bot.trading

        # Shared, market-keyed engine state
        self.registry = MarketRegistry()
        self.ledger = PositionLedger()
        self.detector = TrendDetector(
            window=engine_cfg.trend_window,
            min_samples=engine_cfg.trend_min_samples,
            threshold=engine_cfg.trend_threshold,
        )
        self.decision_engine = DecisionEngine(engine_cfg, SizingPolicy(engine_cfg))
        self.order_manager = OrderManager()

        # Components (to be initialized)
        self.client: Optional[PolymarketClient] = None
        self.order_placer: Optional[OrderPlacer] = None
        self.feed: Optional[QuoteFeed] = None
        self.resolver: Optional[ClosureResolver] = None
        self.db: Optional[TradeDatabase] = None

        self._slots = [
            _MarketSlot(underlying=u, timespan=t)
            for u in config.bot.markets.underlyings
            for t in config.bot.markets.timespans
        ]
        self._lifecycle_stop = threading.Event()
        self._lifecycle_threads: list[threading.Thread] = []

    def setup(self) -> None:
        """Initialize all bot components."""
        logger.info("==========================================")
        logger.info("Setting up bot components (%s mode)", "PRODUCTION" if self.production else "SIMULATION")
        logger.info("==========================================")

        engine_cfg = self.config.bot.trading

        self.client = PolymarketClient(self.config.polymarket, trading_enabled=self.production)
        gateway = self.client if self.production else PaperExchange()
        self.order_placer = OrderPlacer(
            gateway,
            order_manager=self.order_manager,
            fill_price_tolerance=engine_cfg.fill_price_tolerance,
        )
        self.feed = QuoteFeed(self.client)

        if self._db_path:
            self.db = TradeDatabase(self._db_path)
            self._session_id = self.db.start_session("production" if self.production else "simulation")

        self.resolver = ClosureResolver(
            registry=self.registry,
            ledger=self.ledger,
            status_source=self.client,
            detector=self.detector,
            poll_interval_sec=engine_cfg.closure_poll_interval_seconds,
        )
        self.resolver.add_listener(self._on_settled)

        logger.info(
            "Series: %s | cost_per_pair_max=%.4f cooldown=%ss/%ss(1h)",
            ", ".join(s.label for s in self._slots),
            engine_cfg.cost_per_pair_max, engine_cfg.cooldown_seconds, engine_cfg.cooldown_seconds_1h,
        )
        logger.info("Bot setup complete")

    def run(self) -> None:
        """Main bot loop."""
        logger.info("Starting bot...")
        self.running = True

        try:
            self.setup()
            self._start_market_lifecycles()
            self.resolver.start()

            logger.info("Bot started successfully")

            next_report = time.time() + REPORT_INTERVAL_SEC
            while self.running and not self.shutdown_requested:
                time.sleep(1.0)
                if time.time() >= next_report:
                    self._report_period()
                    next_report += REPORT_INTERVAL_SEC

        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received")
        finally:
            self.shutdown()

    # ── Market lifecycle management ────────────────────────────────

    def _start_market_lifecycles(self) -> None:
        """Spawn one lifecycle daemon thread per series."""
        self._lifecycle_stop.clear()
        for slot in self._slots:
            t = threading.Thread(
                target=self._market_lifecycle_loop,
                args=(slot,),
                name=f"lifecycle-{slot.label}",
                daemon=True,
            )
            t.start()
            self._lifecycle_threads.append(t)
        logger.info("Started %d market lifecycle thread(s)", len(self._lifecycle_threads))

    def _market_lifecycle_loop(self, slot: _MarketSlot) -> None:
        """
        Background loop that rolls a series from one window to the next.

            t=0             : discover current market, start strategy
            t=end-60        : pre-fetch next market
            t=end           : stop old strategy, start the next one
        """
        while not self._lifecycle_stop.is_set():
            try:
                if slot.current is None:
                    slot.current = self._discover(slot)
                    if slot.current is None:
                        logger.error("[%s] Failed to discover current market, retrying in 10s", slot.label)
                        self._lifecycle_stop.wait(timeout=10.0)
                        continue
                    self._activate_market(slot, slot.current)

                wait_for_prefetch = max(0.0, slot.current.end_ts - PREFETCH_LEAD_SEC - time.time())
                if wait_for_prefetch > 0 and self._lifecycle_stop.wait(timeout=wait_for_prefetch):
                    break

                slot.next = self._discover(slot, window_start_unix=int(slot.current.end_ts))

                wait_for_end = max(0.0, slot.current.end_ts - time.time())
                if wait_for_end > 0:
                    logger.info("[%s] Waiting %.1fs for current window to end", slot.label, wait_for_end)
                    if self._lifecycle_stop.wait(timeout=wait_for_end):
                        break

                self._transition_to_next_market(slot)

            except Exception:
                logger.exception("[%s] Error in market lifecycle loop", slot.label)
                self._lifecycle_stop.wait(timeout=5.0)

    def _discover(self, slot: _MarketSlot, window_start_unix: Optional[int] = None) -> Optional[Market]:
        try:
            market = discover_market(
                client=self.client,
                underlying=slot.underlying,
                timespan=slot.timespan,
                window_start_unix=window_start_unix,
            )
            logger.info("[%s] Discovered market %s (ends at %.0f)", slot.label, market.slug, market.end_ts)
            return market
        except Exception:
            logger.exception("[%s] Failed to discover market", slot.label)
            return None

    def _activate_market(self, slot: _MarketSlot, market: Market) -> None:
        self.registry.track(market)
        if self.db is not None:
            self.db.record_market(market)

        strategy = TrendLockStrategy(
            market,
            registry=self.registry,
            ledger=self.ledger,
            detector=self.detector,
            order_placer=self.order_placer,
            decision_engine=self.decision_engine,
            config=self.config.bot.trading,
            feed=self.feed,
        )
        strategy.add_trade_listener(self._on_trade)
        strategy.start()
        slot.strategy = strategy
        logger.info("[%s] Market activated: %s", slot.label, market.slug)

    def _transition_to_next_market(self, slot: _MarketSlot) -> None:
        old_market = slot.current
        if slot.strategy and slot.strategy.is_running:
            slot.strategy.stop()
            slot.strategy = None

        new_market = slot.next
        if new_market is None:
            logger.warning("[%s] Next market was not pre-fetched, discovering now...", slot.label)
            new_market = self._discover(slot)

        slot.current = new_market
        slot.next = None
        if new_market is None:
            logger.error("[%s] Cannot transition, no next market available", slot.label)
            return

        self._activate_market(slot, new_market)
        logger.info(
            "[%s] Transitioned: %s -> %s",
            slot.label, old_market.slug if old_market else "none", new_market.slug,
        )

    # ── Trade / settlement hooks ─────────────────────────────────

    def _on_trade(self, market: Market, trade: Trade, decision: Decision) -> None:
        with self._trade_count_lock:
            self._trade_count += 1
        if self.db is not None:
            self.db.record_trade(
                trade, market.slug, rule=decision.rule.value, simulated=not self.production,
            )

    def _on_settled(self, market: Market, record: SettlementRecord) -> None:
        if self.db is not None:
            self.db.record_settlement(record, market.slug)

        if self.production and record.payout > 0:
            try:
                self.client.redeem_positions(market.market_id, [record.up_shares, record.down_shares])
            except Exception:
                logger.exception("[REDEEM] Failed to redeem %s, redeem manually", market.slug)

        self.resolver.prune(market.market_id)

    def _report_period(self) -> None:
        ended = self.resolver.reset_period()
        logger.info(
            "Period summary: profit $%+.2f | total profit $%+.2f | fills %d",
            ended, self.resolver.total_profit, self._trade_count,
        )

    def shutdown(self) -> None:
        """Graceful shutdown: stop threads, close the session."""
        if not self.running:
            return

        logger.info("Shutting down bot...")
        self.running = False

        try:
            self._lifecycle_stop.set()
            for t in self._lifecycle_threads:
                if t.is_alive():
                    t.join(timeout=5.0)
            logger.info("Market lifecycle threads stopped")

            for slot in self._slots:
                if slot.strategy and slot.strategy.is_running:
                    slot.strategy.stop()

            if self.resolver is not None:
                self.resolver.stop()
                logger.info("Closure resolver stopped (total profit $%+.2f)", self.resolver.total_profit)

            if self.db is not None:
                if self._session_id is not None:
                    self.db.end_session(
                        self._session_id,
                        realized_pnl=self.resolver.total_profit if self.resolver else 0.0,
                        total_trades=self._trade_count,
                    )
                self.db.close()

            logger.info("Shutdown complete")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}", exc_info=True)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Polymarket Up/Down pair-lock bot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
            Examples:
            # Simulation with default settings (from .env / config.yaml)
            python -m poly_lock_bot.bot

            # Live trading, verbose logging
            python -m poly_lock_bot.bot --production -v
        """
    )
    parser.add_argument(
        "--config",
        default=CONFIG_PATH,
        help="Path to YAML config (default: %(default)s)"
    )
    parser.add_argument(
        "--production",
        action="store_true",
        help="Place real orders (default is simulation)"
    )
    parser.add_argument(
        "--db",
        default="poly_lock_bot.db",
        help="SQLite audit database path; empty string disables it"
    )
    parser.add_argument(
        "--history-file",
        default=None,
        help="Also append the log to this file"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose logging (DEBUG level)"
    )
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entry point."""
    args = build_arg_parser().parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    setup_logging(log_level, history_file=args.history_file)

    try:
        config = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(2)

    bot = PairLockBot(config, production=args.production, db_path=args.db or None)

    # Signal handlers for graceful shutdown
    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}, shutting down...")
        bot.shutdown_requested = True

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        bot.run()
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
