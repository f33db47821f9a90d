# poly_lock_bot/exchange/polymarket_client.py
from __future__ import annotations

import logging
import os
import time
from typing import TYPE_CHECKING, Any, Optional

import requests

from py_clob_client.client import ClobClient, OrderArgs, OrderType  # from py-clob-client

from polymarket_apis import PolymarketGaslessWeb3Client

from poly_lock_bot.config import ExchangeConfig
from poly_lock_bot.exchange.models import (
  OrderBookSnapshot,
  OrderResponse,
  _to_float,
  parse_market_resolution,
  parse_order_response,
)
from poly_lock_bot.types import MarketResolution

if TYPE_CHECKING:
  from poly_lock_bot.market.discovery import Market

logger = logging.getLogger(__name__)

CHAIN_ID = 137  # Polygon mainnet


class PolymarketClient:
  """
  Minimal client wrapper for Polymarket CLOB + Gamma.

  Only BUY orders are implemented; positions are held to settlement and
  redeemed. With ``trading_enabled=False`` no key is needed and only the
  public endpoints (books, market status, Gamma lookups) work.
  """

  def __init__(self, cfg: ExchangeConfig, *, trading_enabled: bool = True):
    self._cfg = cfg
    self._gamma_url = cfg.gamma_api_url.rstrip("/")
    self.trading_enabled = trading_enabled
    self._web3_client: Optional[PolymarketGaslessWeb3Client] = None

    if not trading_enabled:
      self._client = ClobClient(host=cfg.api_url, chain_id=CHAIN_ID)
      return

    funder = os.environ.get(cfg.funder_env)
    private_key = os.environ.get(cfg.private_key_env)
    if not private_key:
      raise RuntimeError(
          f"Private key env var {cfg.private_key_env} not set"
      )

    self._funder = funder
    self._client = ClobClient(
      host=cfg.api_url,
      chain_id=CHAIN_ID,
      signature_type=cfg.signature_type,
      key=private_key,
      funder=funder,
    )
    self._client.set_api_creds(self._client.create_or_derive_api_creds())

    # Gasless relayer client for on-chain redemption
    self._web3_client = PolymarketGaslessWeb3Client(
      private_key=private_key,
      signature_type=cfg.signature_type,
    )

  # --- Market / book helpers ---

  def get_orderbook(self, token_id: str) -> OrderBookSnapshot:
    """
    Fetch top-of-book for given outcome token via REST.
    Returns best bid/ask and sizes.
    """
    ts = time.time()

    ob: dict[str, Any] | Any
    ob = self._client.get_order_book(token_id)
    if ob is None:
      raise RuntimeError(f"Failed to fetch orderbook for token {token_id}")

    bids = ob.get("bids") if isinstance(ob, dict) else getattr(ob, "bids", None)
    asks = ob.get("asks") if isinstance(ob, dict) else getattr(ob, "asks", None)

    def _level_price_size(lvl: Any) -> tuple[float, float]:
      # dict {"price": "...", "size": "..."} or OrderSummary(price='0.01', size='2298.8')
      if isinstance(lvl, dict):
        return _to_float(lvl.get("price")), _to_float(lvl.get("size"))
      return _to_float(getattr(lvl, "price", None)), _to_float(getattr(lvl, "size", None))

    def best(levels: list[Any], side: str) -> tuple[float | None, float]:
      parsed = [_level_price_size(x) for x in levels or []]
      parsed = [(p, s) for (p, s) in parsed if p > 0 and s > 0]
      if not parsed:
        return None, 0.0
      if side == "bid":
        return max(parsed, key=lambda t: t[0])
      return min(parsed, key=lambda t: t[0])

    best_bid, best_bid_size = best(bids, "bid")
    best_ask, best_ask_size = best(asks, "ask")

    return OrderBookSnapshot(
      best_bid=best_bid,
      best_bid_size=best_bid_size,
      best_ask=best_ask,
      best_ask_size=best_ask_size,
      ts=ts,
    )

  # --- Orders ---

  def place_buy(
    self,
    token_id: str,
    size: float,
    price: float,
    order_type: str = "FAK",
    market_slug: str = "",
  ) -> OrderResponse:
    """
    Place a marketable limit BUY.

    Args:
      token_id: The outcome token to buy.
      size: Number of shares.
      price: Limit price (0.01 - 0.99).
      order_type: "FAK" (Fill-And-Kill, default), "FOK" or "GTC".
    """
    if not self.trading_enabled:
      raise RuntimeError("PolymarketClient created without trading credentials")

    ot_map = {"GTC": OrderType.GTC, "FAK": OrderType.FAK, "FOK": OrderType.FOK}
    ot = ot_map.get(order_type.upper(), OrderType.FAK)

    order = self._client.create_order(
      OrderArgs(
        token_id=token_id,
        price=price,
        size=size,
        side="BUY",
      )
    )
    resp = self._client.post_order(order, orderType=ot)
    logger.debug(f"[{market_slug}] post_order response: {resp}")
    return parse_order_response(resp, size=size, price=price)

  # --- Market status ---

  def get_resolution(self, market: "Market") -> MarketResolution:
    """Closed flag and winning outcome from the CLOB market record."""
    raw = self._client.get_market(market.market_id)
    return parse_market_resolution(raw if isinstance(raw, dict) else vars(raw))

  def get_market_by_slug(self, slug: str) -> dict[str, Any]:
    """
    Fetch market details by slug using the Gamma API REST endpoint.

    Uses GET {gamma_api_url}/markets/slug/{slug}

    Retries on transient network errors.
    """
    url = f"{self._gamma_url}/markets/slug/{slug}"
    max_retries = 3
    for attempt in range(max_retries):
      try:
        response = requests.get(url, timeout=10)
        response.raise_for_status()
        return response.json()
      except requests.RequestException as e:
        if attempt < max_retries - 1:
          wait_time = 0.5 * (2 ** attempt)
          logger.warning(
            f"Error fetching market by slug '{slug}', "
            f"retrying in {wait_time}s (attempt {attempt + 1}/{max_retries}): {e}"
          )
          time.sleep(wait_time)
          continue
        raise

  # --- Redemption ---

  def redeem_positions(self, condition_id: str, amounts: list[float], neg_risk: bool = False) -> bool:
    """
    Redeem a resolved market into USDC via the gasless relayer.

    Args:
      condition_id: Market condition ID
      amounts: Shares per outcome index, [up, down]

    Returns:
      True if the redemption transaction succeeded on-chain.
    """
    if self._web3_client is None:
      raise RuntimeError("PolymarketClient created without trading credentials")

    logger.info(f"[REDEEM] Redeeming condition={condition_id[:12]}... amounts={amounts}")
    receipt = self._web3_client.redeem_position(
      condition_id=condition_id,
      amounts=amounts,
      neg_risk=neg_risk,
    )
    if receipt.status == 1:
      logger.info(f"[REDEEM] Success: condition={condition_id[:12]}... tx={receipt.tx_hash}")
      return True
    logger.warning(f"[REDEEM] Failed on-chain: condition={condition_id[:12]}... tx={receipt.tx_hash}")
    return False
