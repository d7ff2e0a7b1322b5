"""Process-wide logging setup."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from deenx.config import Settings

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_HANDLER_MARKER = "_deenx_handler"


def _initialize_logging(settings: Settings) -> None:
  """Attach console and optional rotating file handlers to the root logger."""
  root = logging.getLogger()
  level = logging.getLevelName(settings.log_level)
  if not isinstance(level, int):
    level = logging.INFO
  if settings.debug:
    level = logging.DEBUG
  root.setLevel(level)

  # Re-running lifespan (tests, reloads) must not stack duplicate handlers.
  for handler in list(root.handlers):
    if getattr(handler, _HANDLER_MARKER, False):
      root.removeHandler(handler)
      handler.close()

  formatter = logging.Formatter(_LOG_FORMAT)

  console_handler = logging.StreamHandler(sys.stdout)
  console_handler.setFormatter(formatter)
  setattr(console_handler, _HANDLER_MARKER, True)
  root.addHandler(console_handler)

  if settings.log_file:
    log_path = Path(settings.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(log_path, maxBytes=settings.log_max_bytes, backupCount=settings.log_backup_count, encoding="utf-8")
    file_handler.setFormatter(formatter)
    setattr(file_handler, _HANDLER_MARKER, True)
    root.addHandler(file_handler)

  # Keep third-party HTTP clients quiet unless debugging.
  for noisy in ("httpx", "httpcore", "urllib3"):
    logging.getLogger(noisy).setLevel(logging.DEBUG if settings.debug else logging.WARNING)
