"""Shared FastAPI dependencies for the reminder routes."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from deenx.prayer.timing_provider import TimingProvider
from deenx.utils.rate_limit import FixedWindowRateLimiter


def get_timing_provider(request: Request) -> TimingProvider:
  """Return the process-wide timing provider created at startup.

  The provider and its HTTP client are owned by the app lifespan, which also
  closes the client on shutdown.
  """
  provider = getattr(request.app.state, "timing_provider", None)
  if provider is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Timing provider is not initialized")
  return provider


def client_ip(request: Request) -> str:
  """Resolve the caller address for rate limiting.

  Only the last X-Forwarded-For hop is used: it is appended by the fronting
  proxy, while earlier hops are whatever the client sent.
  """
  forwarded = request.headers.get("x-forwarded-for")
  if forwarded:
    last = forwarded.split(",")[-1].strip()
    if last:
      return last
  return request.client.host if request.client else "unknown"


def enforce_rate_limit(limiter: FixedWindowRateLimiter, *, scope: str, request: Request) -> None:
  if limiter.is_limited(f"{scope}:{client_ip(request)}"):
    raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Too many requests")
