# poly_lock_bot/logging_utils.py
from __future__ import annotations

import logging
import os
import sys

_FMT = "[%(asctime)s.%(msecs)03d] [%(levelname)s] %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%dT%H:%M:%S"


# ANSI color codes
class Colors:
  RESET = "\033[0m"

  DEBUG = "\033[36m"     # Cyan
  INFO = "\033[32m"      # Green
  WARNING = "\033[33m"   # Yellow
  ERROR = "\033[31m"     # Red
  CRITICAL = "\033[35m"  # Magenta

  GRAY = "\033[90m"      # timestamps
  WHITE = "\033[37m"


class ColoredFormatter(logging.Formatter):
  """Console formatter that colors the level name and dims the timestamp."""

  LEVEL_COLORS = {
    logging.DEBUG: Colors.DEBUG,
    logging.INFO: Colors.INFO,
    logging.WARNING: Colors.WARNING,
    logging.ERROR: Colors.ERROR,
    logging.CRITICAL: Colors.CRITICAL,
  }

  def __init__(self, fmt: str, datefmt: str, use_colors: bool = True):
    super().__init__(fmt=fmt, datefmt=datefmt)
    self.use_colors = use_colors

  def format(self, record: logging.LogRecord) -> str:
    if not self.use_colors:
      return super().format(record)

    level_color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
    original_levelname = record.levelname
    record.levelname = f"{level_color}{record.levelname}{Colors.RESET}"
    formatted = super().format(record)
    # record may be handed to the history file handler next
    record.levelname = original_levelname

    stamp = f"[{self.formatTime(record, self.datefmt)}.{record.msecs:03.0f}]"
    return formatted.replace(stamp, f"{Colors.GRAY}{stamp}{Colors.RESET}", 1)


def setup_logging(
  level: int | None = None,
  use_colors: bool = True,
  history_file: str | None = None,
) -> None:
  """
  Setup logging with optional colored console output and a history file.

  Args:
    level: Logging level; defaults to $LOG_LEVEL or INFO
    use_colors: Whether to use ANSI colors (auto-disabled if not a TTY)
    history_file: Append every record to this file as well
      (defaults to $POLY_LOCK_HISTORY_FILE, unset = console only)
  """
  if level is None:
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
  if history_file is None:
    history_file = os.environ.get("POLY_LOCK_HISTORY_FILE") or None

  root = logging.getLogger()
  root.setLevel(level)

  # avoid duplicate handlers if called multiple times
  has_console = any(
    type(h) is logging.StreamHandler for h in root.handlers
  )
  if not has_console:
    if use_colors and not sys.stdout.isatty():
      use_colors = False
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColoredFormatter(fmt=_FMT, datefmt=_DATEFMT, use_colors=use_colors))
    root.addHandler(handler)

  if history_file:
    target = os.path.abspath(history_file)
    has_file = any(
      isinstance(h, logging.FileHandler) and h.baseFilename == target for h in root.handlers
    )
    if not has_file:
      file_handler = logging.FileHandler(target, mode="a", encoding="utf-8")
      file_handler.setFormatter(logging.Formatter(fmt=_FMT, datefmt=_DATEFMT))
      root.addHandler(file_handler)

  # Suppress noisy third-party loggers
  logging.getLogger("httpx").setLevel(logging.WARNING)
  logging.getLogger("httpcore").setLevel(logging.WARNING)
  logging.getLogger("urllib3").setLevel(logging.WARNING)
