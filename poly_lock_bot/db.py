"""SQLite audit store for fills, markets, settlements and sessions."""
from __future__ import annotations

import logging
import sqlite3
import threading
import time
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from poly_lock_bot.market.discovery import Market
    from poly_lock_bot.types import SettlementRecord, Trade

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS trades (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    order_id TEXT,
    market_id TEXT NOT NULL,
    market_slug TEXT NOT NULL,
    side TEXT NOT NULL,
    size REAL NOT NULL,
    price REAL NOT NULL,
    usdc_value REAL NOT NULL,
    rule TEXT,
    simulated INTEGER DEFAULT 0,
    created_at REAL NOT NULL,
    UNIQUE(market_id, order_id)
);

CREATE TABLE IF NOT EXISTS markets (
    market_id TEXT PRIMARY KEY,
    slug TEXT NOT NULL,
    market_type TEXT,
    question TEXT,
    up_token_id TEXT,
    down_token_id TEXT,
    start_ts REAL,
    end_ts REAL,
    first_seen_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS settlements (
    market_id TEXT PRIMARY KEY,
    market_slug TEXT,
    winner TEXT NOT NULL,
    up_shares REAL NOT NULL,
    down_shares REAL NOT NULL,
    total_cost REAL NOT NULL,
    payout REAL NOT NULL,
    actual_pnl REAL NOT NULL,
    settled_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    started_at REAL NOT NULL,
    ended_at REAL,
    mode TEXT,
    realized_pnl REAL DEFAULT 0,
    total_trades INTEGER DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_trades_market_id ON trades(market_id);
CREATE INDEX IF NOT EXISTS idx_trades_created_at ON trades(created_at);
"""


class TradeDatabase:
    """Thread-safe SQLite persistence for bot data.

    Uses WAL mode so reports can read concurrently while the bot writes.
    Write failures are logged and never interrupt trading.
    """

    def __init__(self, db_path: str = "bot_data.db"):
        self._db_path = db_path
        self._write_lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.executescript(_SCHEMA)
        self._conn.commit()
        logger.info("TradeDatabase initialized at %s", db_path)

    # ── write methods (called from bot threads) ──────────────

    def record_trade(
        self,
        trade: "Trade",
        market_slug: str,
        rule: Optional[str] = None,
        simulated: bool = False,
    ) -> None:
        """Insert a fill, ignoring duplicates by (market_id, order_id)."""
        with self._write_lock:
            try:
                self._conn.execute(
                    """INSERT OR IGNORE INTO trades
                       (order_id, market_id, market_slug, side, size, price,
                        usdc_value, rule, simulated, created_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        trade.order_id or None, trade.market_id, market_slug,
                        trade.side.value, trade.quantity, trade.price,
                        round(trade.cost, 6), rule, int(simulated), trade.timestamp,
                    ),
                )
                self._conn.commit()
            except sqlite3.Error:
                logger.exception("Failed to record trade %s", trade.order_id)

    def record_market(self, market: "Market") -> None:
        """Insert or ignore a market record."""
        with self._write_lock:
            try:
                self._conn.execute(
                    """INSERT OR IGNORE INTO markets
                       (market_id, slug, market_type, question, up_token_id,
                        down_token_id, start_ts, end_ts, first_seen_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        market.market_id, market.slug, market.market_type,
                        market.question, market.up_token_id, market.down_token_id,
                        market.start_ts, market.end_ts, time.time(),
                    ),
                )
                self._conn.commit()
            except sqlite3.Error:
                logger.exception("Failed to record market %s", market.slug)

    def record_settlement(self, record: "SettlementRecord", market_slug: str = "") -> None:
        """Insert the terminal record for a market; a second insert is ignored."""
        with self._write_lock:
            try:
                self._conn.execute(
                    """INSERT OR IGNORE INTO settlements
                       (market_id, market_slug, winner, up_shares, down_shares,
                        total_cost, payout, actual_pnl, settled_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        record.market_id, market_slug, record.winner.value,
                        record.up_shares, record.down_shares, record.total_cost,
                        record.payout, record.actual_pnl, record.settled_at,
                    ),
                )
                self._conn.commit()
            except sqlite3.Error:
                logger.exception("Failed to record settlement %s", record.market_id)

    def start_session(self, mode: str = "simulation") -> int:
        """Create a new session row and return its id."""
        with self._write_lock:
            cur = self._conn.execute(
                "INSERT INTO sessions (started_at, mode) VALUES (?, ?)",
                (time.time(), mode),
            )
            self._conn.commit()
            session_id = cur.lastrowid
            logger.info("Session %d started (%s)", session_id, mode)
            return session_id

    def end_session(
        self, session_id: int, realized_pnl: float, total_trades: int
    ) -> None:
        """Finalize a session with summary stats."""
        with self._write_lock:
            try:
                self._conn.execute(
                    """UPDATE sessions
                       SET ended_at = ?, realized_pnl = ?, total_trades = ?
                       WHERE id = ?""",
                    (time.time(), realized_pnl, total_trades, session_id),
                )
                self._conn.commit()
            except sqlite3.Error:
                logger.exception("Failed to end session %d", session_id)

    # ── read methods ─────────────────────────────────────────

    def get_trades_for_market(self, market_id: str) -> list[dict]:
        cur = self._conn.execute(
            """SELECT order_id, market_id, market_slug, side, size, price,
                      usdc_value, rule, simulated, created_at
               FROM trades WHERE market_id = ? ORDER BY id""",
            (market_id,),
        )
        cols = [d[0] for d in cur.description]
        return [dict(zip(cols, row)) for row in cur.fetchall()]

    def get_settlements(self, limit: int = 100) -> list[dict]:
        cur = self._conn.execute(
            """SELECT market_id, market_slug, winner, up_shares, down_shares,
                      total_cost, payout, actual_pnl, settled_at
               FROM settlements ORDER BY settled_at DESC LIMIT ?""",
            (limit,),
        )
        cols = [d[0] for d in cur.description]
        return [dict(zip(cols, row)) for row in cur.fetchall()]

    def get_all_time_stats(self) -> dict:
        """Aggregate fills and realized PnL across all sessions."""
        trades = self._conn.execute(
            """SELECT COUNT(*), COALESCE(SUM(usdc_value), 0), COUNT(DISTINCT market_id)
               FROM trades""",
        ).fetchone()
        settled = self._conn.execute(
            "SELECT COUNT(*), COALESCE(SUM(actual_pnl), 0) FROM settlements",
        ).fetchone()
        return {
            "total_trades": trades[0],
            "total_volume": trades[1],
            "markets_traded": trades[2],
            "markets_settled": settled[0],
            "realized_pnl": settled[1],
        }

    def get_session_history(self, limit: int = 20) -> list[dict]:
        cur = self._conn.execute(
            """SELECT id, started_at, ended_at, mode, realized_pnl, total_trades
               FROM sessions ORDER BY started_at DESC LIMIT ?""",
            (limit,),
        )
        cols = [d[0] for d in cur.description]
        return [dict(zip(cols, row)) for row in cur.fetchall()]

    def close(self) -> None:
        self._conn.close()
