"""Short-term trend classification over a bounded window of asks."""
from __future__ import annotations

import logging
import math
import threading
from collections import deque
from typing import Sequence

from poly_lock_bot.errors import InvalidPrice
from poly_lock_bot.types import Side, TrendState

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = 5
DEFAULT_MIN_SAMPLES = 3
DEFAULT_THRESHOLD = 0.005


def classify(window: Sequence[float], min_samples: int = DEFAULT_MIN_SAMPLES, threshold: float = DEFAULT_THRESHOLD) -> TrendState:
    """
    Classify a most-recent-last window of asks.

    RISING needs every step non-decreasing and a net rise of at least
    ``threshold`` (and strictly above zero); FALLING is the mirror image.
    Short windows, zigzags and flat windows are NO_PROGRESS.
    """
    if len(window) < min_samples:
        return TrendState.NO_PROGRESS

    steps = [b - a for a, b in zip(window, window[1:])]
    net = window[-1] - window[0]

    if net > 0 and net >= threshold and all(s >= 0 for s in steps):
        return TrendState.RISING
    if net < 0 and -net >= threshold and all(s <= 0 for s in steps):
        return TrendState.FALLING
    return TrendState.NO_PROGRESS


class TrendDetector:
    """
    Thread-safe per-(market, side) ring buffers of recent asks.

    Only ``observe`` mutates a window; everything else is a read.
    """

    def __init__(
        self,
        window: int = DEFAULT_WINDOW,
        min_samples: int = DEFAULT_MIN_SAMPLES,
        threshold: float = DEFAULT_THRESHOLD,
    ):
        self.window_size = window
        self.min_samples = min_samples
        self.threshold = threshold
        self._windows: dict[tuple[str, Side], deque[float]] = {}
        self._lock = threading.RLock()

    def observe(self, market_id: str, side: Side, price: float) -> TrendState:
        """
        Push a new ask for ``side`` and return the resulting classification.

        Raises:
            InvalidPrice: price is not a finite number in (0, 1); the window
                is left untouched.
        """
        if not isinstance(price, (int, float)) or not math.isfinite(price) or not (0.0 < price < 1.0):
            raise InvalidPrice(price, market_id=market_id, side=side.value)

        with self._lock:
            buf = self._windows.get((market_id, side))
            if buf is None:
                buf = deque(maxlen=self.window_size)
                self._windows[(market_id, side)] = buf
            buf.append(float(price))
            snapshot = list(buf)

        state = classify(snapshot, self.min_samples, self.threshold)
        logger.debug("[%s] %s trend %s window=%s", market_id[:12], side.value, state.value, snapshot)
        return state

    def state(self, market_id: str, side: Side) -> TrendState:
        """Classification of the current window without observing anything."""
        return classify(self.window(market_id, side), self.min_samples, self.threshold)

    def window(self, market_id: str, side: Side) -> list[float]:
        with self._lock:
            return list(self._windows.get((market_id, side), ()))

    def reset(self, market_id: str) -> None:
        """Drop both windows of a market (after closure)."""
        with self._lock:
            for side in Side:
                self._windows.pop((market_id, side), None)
