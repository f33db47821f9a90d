# poly_lock_bot/exchange/models.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from poly_lock_bot.types import MarketResolution, Side

logger = logging.getLogger(__name__)


@dataclass
class OrderResponse:
  order_id: str
  status: str
  requested_size: float
  filled_size: float
  avg_price: float
  raw: dict = field(default_factory=dict)
  error: str = ""

  @property
  def is_filled(self) -> bool:
    return self.filled_size > 0


@dataclass
class OrderBookSnapshot:
  best_bid: Optional[float]
  best_bid_size: float
  best_ask: Optional[float]
  best_ask_size: float
  ts: float  # epoch seconds


def _to_float(x: Any) -> float:
  try:
    return float(x)
  except (TypeError, ValueError):
    return 0.0


def parse_order_response(resp: dict[str, Any], size: float, price: float) -> OrderResponse:
  """
  Map a CLOB post_order response onto OrderResponse.

  For a BUY, takingAmount is shares received and makingAmount is USDC paid:
    {"success": true, "orderID": "0x..", "status": "matched",
     "takingAmount": "24", "makingAmount": "12.48", "errorMsg": ""}
  Older schemas carry filled_size / avg_price instead.
  """
  resp = resp or {}
  order_id = resp.get("orderID", resp.get("order_id", "")) or ""
  status = str(resp.get("status", "") or "")
  error = str(resp.get("errorMsg", resp.get("error", "")) or "")

  taking = _to_float(resp.get("takingAmount"))
  making = _to_float(resp.get("makingAmount"))
  if taking > 0:
    filled = taking
    avg_px = making / taking if making > 0 else price
  else:
    filled = _to_float(resp.get("filled_size", resp.get("size_filled", 0)))
    avg_px = _to_float(resp.get("avg_price", price)) or price

  if resp.get("success") is False and not error:
    error = "exchange reported success=false"

  return OrderResponse(
    order_id=order_id,
    status=status,
    requested_size=_to_float(resp.get("original_size", size)) or size,
    filled_size=filled,
    avg_price=avg_px,
    raw=resp,
    error=error,
  )


def parse_market_resolution(raw: dict[str, Any] | None) -> MarketResolution:
  """
  Read closed / winner from a CLOB market record:
    {"closed": true, "tokens": [{"outcome": "Up", "winner": true}, ...]}
  """
  if not raw:
    return MarketResolution(closed=False)

  closed = bool(raw.get("closed", False))
  if not closed:
    return MarketResolution(closed=False)

  for token in raw.get("tokens") or []:
    if isinstance(token, dict) and token.get("winner") is True:
      try:
        return MarketResolution(closed=True, winner=Side.parse(token.get("outcome", "")))
      except ValueError:
        logger.warning("Unrecognized winning outcome %r", token.get("outcome"))
        break

  return MarketResolution(closed=True, winner=None)
