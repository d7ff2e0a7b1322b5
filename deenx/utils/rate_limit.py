"""In-process fixed-window rate limiting for public push routes."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class FixedWindowRateLimiter:
  """Allow `limit` hits per key inside each `window_seconds` window."""

  def __init__(self, *, limit: int, window_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
    self._limit = limit
    self._window_seconds = window_seconds
    self._clock = clock
    self._buckets: dict[str, tuple[int, float]] = {}
    self._lock = threading.Lock()

  def is_limited(self, key: str) -> bool:
    """Record a hit for `key` and return True when it exceeds the window budget."""
    now = self._clock()
    with self._lock:
      count, reset_at = self._buckets.get(key, (0, 0.0))
      if reset_at <= now:
        self._prune(now)
        self._buckets[key] = (1, now + self._window_seconds)
        return False

      if count >= self._limit:
        return True

      self._buckets[key] = (count + 1, reset_at)
      return False

  def reset(self) -> None:
    with self._lock:
      self._buckets.clear()

  def _prune(self, now: float) -> None:
    expired = [key for key, (_, reset_at) in self._buckets.items() if reset_at <= now]
    for key in expired:
      del self._buckets[key]
