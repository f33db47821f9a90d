# poly_lock_bot/utils/slug_helpers.py
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Literal, Optional

Underlying = Literal["btc", "eth", "sol", "xrp"]
Timespan = Literal["5m", "15m", "1h"]

TIMESPAN_TO_SEC: dict[str, int] = {
    "5m": 5 * 60,
    "15m": 15 * 60,
    "1h": 60 * 60,
}

_SLUG_RE = re.compile(r"^([a-z0-9]+)-updown-(\d+[mh])-(\d+)$")


def _parse_iso_dt(s: str) -> datetime:
  # Handles "2025-12-12T20:45:00Z" and isoformat variants.
  s2 = s.replace("Z", "+00:00")
  return datetime.fromisoformat(s2)


def now_utc_unix() -> int:
  return int(datetime.now(timezone.utc).timestamp())


def window_sec_for_timespan(timespan: str) -> int:
  try:
    return TIMESPAN_TO_SEC[timespan]
  except KeyError:
    raise ValueError(f"Unsupported timespan {timespan!r}; expected one of {sorted(TIMESPAN_TO_SEC)}")


def align_to_window_start(unix_ts: int, window_sec: int) -> int:
  return (unix_ts // window_sec) * window_sec


def slug_for_window(underlying: str, window_start_unix: int, timespan: str) -> str:
  # canonical: btc-updown-15m-<timestamp>
  return f"{underlying}-updown-{timespan}-{int(window_start_unix)}"


def current_window_slug(
    underlying: str,
    timespan: str = "15m",
    *,
    now_unix: int | None = None,
) -> tuple[str, int]:
  t = int(now_unix if now_unix is not None else now_utc_unix())
  ws = window_sec_for_timespan(timespan)
  t0 = align_to_window_start(t, ws)
  return slug_for_window(underlying, t0, timespan), t0


def market_type_for(underlying: str, timespan: str) -> str:
  """Sizing key, e.g. ("BTC", "15m") -> "btc-15m"."""
  return f"{underlying.strip().lower()}-{timespan.strip().lower()}"


def parse_window_slug(slug: str) -> Optional[tuple[str, str, int]]:
  """btc-updown-15m-1760000000 -> ("btc", "15m", 1760000000); None if not a window slug."""
  m = _SLUG_RE.match((slug or "").strip().lower())
  if not m:
    return None
  return m.group(1), m.group(2), int(m.group(3))
