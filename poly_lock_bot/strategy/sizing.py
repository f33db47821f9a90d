"""Per-leg share sizing with time-to-close decay."""
from __future__ import annotations

import logging
import math
from typing import Optional

from poly_lock_bot.config.models import DEFAULT_BASE_SIZES, EngineConfig
from poly_lock_bot.utils.price_helpers import round_shares

logger = logging.getLogger(__name__)


class SizingPolicy:
    """
    Shares per leg for a market.

    Base size comes from the market type (e.g. 24 for "btc-15m"). Inside the
    last ``size_reduce_after_secs`` of the window the size ramps linearly from
    the base down to ``size_min_ratio`` of it, never below ``size_min_shares``.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    def base_size(self, market_type: str) -> float:
        cfg = self.config
        if cfg.shares_override > 0:
            return cfg.shares_override
        key = (market_type or "").strip().lower()
        if key in cfg.base_sizes:
            return cfg.base_sizes[key]
        return DEFAULT_BASE_SIZES.get(key, cfg.default_base_size)

    def decay_ratio(self, time_to_close: float) -> float:
        """1.0 outside the reduction window, down to size_min_ratio at close."""
        cfg = self.config
        ttc = max(0.0, float(time_to_close))
        if cfg.size_reduce_after_secs <= 0 or ttc >= cfg.size_reduce_after_secs:
            return 1.0
        return cfg.size_min_ratio + (1.0 - cfg.size_min_ratio) * ttc / cfg.size_reduce_after_secs

    def size_for(self, market_type: str, time_to_close: float, shares_so_far: float = 0.0) -> float:
        """
        Shares for one leg.

        Args:
            market_type: Sizing key such as "btc-15m"
            time_to_close: Seconds until the window ends (negative treated as 0)
            shares_so_far: Shares already held on the side being bought; only
                used when max_side_shares caps a side

        Returns:
            Quantity rounded to 2 decimals, at least size_min_shares;
            0.0 when the side cap leaves less than size_min_shares
        """
        cfg = self.config
        size = round_shares(self.base_size(market_type) * self.decay_ratio(time_to_close))

        headroom = self.headroom(shares_so_far)
        if headroom < cfg.size_min_shares:
            logger.debug("Side cap reached (%.2f held, headroom %.2f)", shares_so_far, headroom)
            return 0.0
        if size > headroom:
            logger.debug("Size %.2f clipped to side headroom %.2f", size, headroom)
            size = math.floor(headroom * 100 + 1e-9) / 100

        return max(size, cfg.size_min_shares, 0.0)

    def headroom(self, shares_so_far: float) -> float:
        """Shares a side may still add under max_side_shares (inf when uncapped)."""
        cap = self.config.max_side_shares
        if cap <= 0:
            return math.inf
        return max(0.0, cap - max(0.0, shares_so_far))
