"""Aladhan-backed prayer timing lookups with a short in-process cache."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Protocol
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)

_USER_AGENT = "DeenXZikr/1.0"


class TimingProviderError(Exception):
  """Raised when prayer timings cannot be fetched or parsed."""


class TimingProvider(Protocol):
  """Source of daily prayer timings."""

  async def get_timings(self, *, date_key: str, lat: float, lng: float, method: int) -> dict[str, str]:
    """Return prayer name -> "HH:MM" strings for the given local date (DD-MM-YYYY)."""


class _TimingsData(BaseModel):
  model_config = ConfigDict(extra="ignore")

  timings: dict[str, str]


class _TimingsPayload(BaseModel):
  model_config = ConfigDict(extra="ignore")

  data: _TimingsData


class AladhanTimingProvider(TimingProvider):
  """Fetch `/timings/{date}` from the Aladhan API.

  Responses are cached per request URL for `revalidate_seconds` so that nearby
  subscriptions in one dispatch pass share a single upstream call. Concurrent
  callers for a URL that is already being fetched await the same request.
  Failures are never cached, and expired entries are dropped whenever a new
  response is stored.
  """

  def __init__(
    self,
    *,
    client: httpx.AsyncClient,
    base_url: str = "https://api.aladhan.com/v1",
    revalidate_seconds: float = 120.0,
    timeout_seconds: float = 10.0,
    clock: Callable[[], float] = time.monotonic,
  ) -> None:
    self._client = client
    self._base_url = base_url.rstrip("/")
    self._revalidate_seconds = revalidate_seconds
    self._timeout_seconds = timeout_seconds
    self._clock = clock
    self._cache: dict[str, tuple[float, dict[str, str]]] = {}
    self._inflight: dict[str, asyncio.Future[dict[str, str]]] = {}

  def build_url(self, *, date_key: str, lat: float, lng: float, method: int) -> str:
    query = urlencode({"latitude": lat, "longitude": lng, "method": method})
    return f"{self._base_url}/timings/{date_key}?{query}"

  async def get_timings(self, *, date_key: str, lat: float, lng: float, method: int) -> dict[str, str]:
    url = self.build_url(date_key=date_key, lat=lat, lng=lng, method=method)

    cached = self._cache.get(url)
    if cached is not None and cached[0] > self._clock():
      return cached[1]

    pending = self._inflight.get(url)
    if pending is not None:
      return await asyncio.shield(pending)

    future: asyncio.Future[dict[str, str]] = asyncio.get_running_loop().create_future()
    self._inflight[url] = future
    try:
      timings = await self._fetch(url)
    except asyncio.CancelledError:
      # Waiters get an ordinary provider error; cancelling the shared future would cancel them too.
      future.set_exception(TimingProviderError("Timings fetch was cancelled"))
      future.exception()
      raise
    except Exception as exc:
      future.set_exception(exc)
      # Mark the exception retrieved when nobody else awaited the shared future.
      future.exception()
      raise
    else:
      now = self._clock()
      self._prune(now)
      self._cache[url] = (now + self._revalidate_seconds, timings)
      future.set_result(timings)
      return timings
    finally:
      self._inflight.pop(url, None)

  def _prune(self, now: float) -> None:
    expired = [url for url, (expires_at, _) in self._cache.items() if expires_at <= now]
    for url in expired:
      del self._cache[url]

  async def _fetch(self, url: str) -> dict[str, str]:
    try:
      response = await self._client.get(url, headers={"User-Agent": _USER_AGENT}, timeout=self._timeout_seconds)
      response.raise_for_status()
      payload = _TimingsPayload.model_validate(response.json())
    except httpx.HTTPStatusError as exc:
      raise TimingProviderError(f"Upstream request failed: {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
      raise TimingProviderError(f"Upstream request failed: {type(exc).__name__}") from exc
    except (ValidationError, ValueError) as exc:
      raise TimingProviderError("Upstream returned a malformed timings payload") from exc

    logger.debug("Fetched prayer timings url=%s", url)
    return payload.data.timings
