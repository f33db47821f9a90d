"""Order state tracking: sent and filled are distinct events."""
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Optional

logger = logging.getLogger(__name__)


class OrderManager:
    """
    Thread-safe order bookkeeping.

    Responsibilities:
    - Track in-flight orders from submission until the exchange answers
    - Remember which exchange order ids have been filled
    - Keep rejected submissions for inspection
    """

    def __init__(self, known_order_ids_maxlen: int = 500):
        self.in_flight: dict[str, dict] = {}   # {client_ref: order_details}
        self.filled: dict[str, dict] = {}      # {order_id: fill_details}, bounded by known_order_ids
        self.rejected: deque[dict] = deque(maxlen=known_order_ids_maxlen)
        self.known_order_ids: deque[str] = deque(maxlen=known_order_ids_maxlen)
        self._lock = threading.RLock()

    def mark_sent(self, client_ref: str, order_details: dict) -> None:
        """Order submitted; no position change yet."""
        with self._lock:
            self.in_flight[client_ref] = dict(order_details, sent_at=time.time())

    def mark_filled(self, client_ref: str, order_id: str, filled_size: float, avg_price: float) -> None:
        """Record a fill; the oldest fill is forgotten once known_order_ids is full."""
        with self._lock:
            details = self.in_flight.pop(client_ref, {})
            if order_id not in self.filled:
                if len(self.known_order_ids) == self.known_order_ids.maxlen:
                    self.filled.pop(self.known_order_ids[0], None)
                self.known_order_ids.append(order_id)
            self.filled[order_id] = dict(
                details, order_id=order_id, filled_size=filled_size, avg_price=avg_price, filled_at=time.time(),
            )

    def mark_rejected(self, client_ref: str, reason: str) -> None:
        with self._lock:
            details = self.in_flight.pop(client_ref, {})
            self.rejected.append(dict(details, reason=reason, rejected_at=time.time()))
        logger.debug("Order %s rejected: %s", client_ref[:12], reason)

    def is_known_order(self, order_id: str) -> bool:
        """Check if an exchange order id has already been filled."""
        with self._lock:
            return order_id in self.filled

    def get_fill(self, order_id: str) -> Optional[dict]:
        with self._lock:
            return self.filled.get(order_id)

    def get_in_flight_count(self) -> int:
        with self._lock:
            return len(self.in_flight)

    def get_rejected(self) -> list[dict]:
        with self._lock:
            return list(self.rejected)
