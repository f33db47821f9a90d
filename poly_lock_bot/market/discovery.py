"""Market model and discovery of the current Up/Down window market."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import timezone
from typing import TYPE_CHECKING, Any, Optional, Tuple

from poly_lock_bot.types import Side
from poly_lock_bot.utils.slug_helpers import (
    _parse_iso_dt,
    align_to_window_start,
    current_window_slug,
    market_type_for,
    parse_window_slug,
    slug_for_window,
    window_sec_for_timespan,
)

if TYPE_CHECKING:
    from poly_lock_bot.exchange.polymarket_client import PolymarketClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Market:
    """One binary Up/Down market window with resolved token IDs."""
    market_id: str          # condition id
    slug: str
    market_type: str        # sizing key, e.g. "btc-15m"
    up_token_id: str = ""
    down_token_id: str = ""
    start_ts: float = 0.0
    end_ts: float = 0.0
    question: str = ""
    raw_market: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def duration_secs(self) -> float:
        return max(0.0, self.end_ts - self.start_ts)

    @property
    def is_hourly(self) -> bool:
        return self.duration_secs >= 3600 or self.market_type.endswith("-1h")

    def time_to_close(self, now: float) -> float:
        return self.end_ts - now

    def token_for(self, side: Side) -> str:
        return self.up_token_id if side is Side.UP else self.down_token_id


def market_type_from_slug(slug: str, default: str = "unknown") -> str:
    parsed = parse_window_slug(slug)
    if parsed is None:
        return default
    underlying, timespan, _ = parsed
    return market_type_for(underlying, timespan)


def discover_market(
    *,
    client: "PolymarketClient",
    underlying: str = "btc",
    timespan: str = "15m",
    window_start_unix: int | None = None,
    now_unix: int | None = None,
) -> Market:
    """
    Discover the Up/Down market for a window via Gamma:
    - Compute slug from the window-aligned start
    - GET /markets/slug/<slug>
    - Map Up/Down outcomes -> clobTokenIds
    """
    ws = window_sec_for_timespan(timespan)

    if window_start_unix is None:
        slug, t0 = current_window_slug(underlying, timespan, now_unix=now_unix)
    else:
        t0 = align_to_window_start(int(window_start_unix), ws)
        slug = slug_for_window(underlying, t0, timespan)

    raw = client.get_market_by_slug(slug)
    if not raw:
        raise RuntimeError(f"No market found for slug={slug}")

    up_token, down_token = _extract_up_down_token_ids(raw)

    # Window boundaries come from the slug timestamp; Gamma dates may be date-only.
    start_ts = float(t0)
    end_ts = float(t0 + ws)

    end_date = raw.get("endDate")
    if end_date:
        try:
            api_end = _parse_iso_dt(str(end_date)).replace(tzinfo=timezone.utc).timestamp()
            if abs(api_end - end_ts) > 5:
                logger.warning("Gamma endDate mismatch vs slug window: api_end=%s slug_end=%s", api_end, end_ts)
        except ValueError:
            logger.warning("Failed to parse Gamma endDate: %s", end_date)

    return Market(
        market_id=str(raw.get("conditionId", "")),
        slug=slug,
        market_type=market_type_for(underlying, timespan),
        up_token_id=up_token,
        down_token_id=down_token,
        start_ts=start_ts,
        end_ts=end_ts,
        question=str(raw.get("question", "")),
        raw_market=raw,
    )


def _extract_up_down_token_ids(market: dict[str, Any]) -> Tuple[str, str]:
    """
    Extract Up and Down CLOB token IDs from a Gamma market dict.

    Gamma returns outcomes and clobTokenIds as positional parallel arrays
    (JSON-encoded strings or already-parsed lists):
      outcomes:     '["Up","Down"]'
      clobTokenIds: '["token_abc","token_xyz"]'
    """
    token_ids_raw = market.get("clobTokenIds")
    if token_ids_raw is None:
        raise KeyError("Gamma market missing clobTokenIds")

    outcomes_raw = market.get("outcomes")
    if outcomes_raw is None:
        raise KeyError("Gamma market missing outcomes")

    token_ids = json.loads(token_ids_raw) if isinstance(token_ids_raw, str) else token_ids_raw
    outcomes = json.loads(outcomes_raw) if isinstance(outcomes_raw, str) else outcomes_raw

    if len(token_ids) != len(outcomes):
        raise ValueError(
            f"clobTokenIds length ({len(token_ids)}) != outcomes length ({len(outcomes)})"
        )

    outcome_to_token = {o.strip().lower(): tid for o, tid in zip(outcomes, token_ids)}

    up_token: Optional[str] = outcome_to_token.get("up")
    down_token: Optional[str] = outcome_to_token.get("down")

    if up_token is None or down_token is None:
        raise ValueError(f"Expected 'Up' and 'Down' outcomes, got: {outcomes}")

    return up_token, down_token
