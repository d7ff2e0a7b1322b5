"""Scheduler-triggered prayer reminder dispatch."""

from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from deenx.api.deps import get_timing_provider
from deenx.config import Settings, get_settings
from deenx.notifications.contracts import DispatchUnavailableError, SubscriptionStoreError
from deenx.notifications.factory import build_reminder_dispatcher
from deenx.notifications.push_subscription_repo import PushSubscriptionRepository
from deenx.prayer.timing_provider import TimingProvider

router = APIRouter()
logger = logging.getLogger(__name__)


def _secret_matches(expected: str, *, authorization: str | None, query_secret: str | None) -> bool:
  """Accept either `Authorization: Bearer <secret>` or `?secret=<secret>`."""
  header_secret = authorization[len("Bearer ") :] if authorization and authorization.startswith("Bearer ") else ""
  header_valid = secrets.compare_digest(header_secret.encode(), expected.encode())
  query_valid = secrets.compare_digest((query_secret or "").encode(), expected.encode())
  return header_valid or query_valid


@router.api_route("/prayer-reminders", methods=["GET", "POST"], status_code=status.HTTP_200_OK)
async def dispatch_prayer_reminders(
  settings: Annotated[Settings, Depends(get_settings)],
  timing_provider: Annotated[TimingProvider, Depends(get_timing_provider)],
  authorization: str | None = Header(default=None),
  secret: str | None = Query(default=None),
) -> dict[str, int | bool]:
  """Run one reminder pass for every active subscription and return the aggregate counts."""
  # Configuration is validated before the caller is authenticated and before any subscription is read.
  try:
    dispatcher = build_reminder_dispatcher(settings, timing_provider=timing_provider, subscription_repo=PushSubscriptionRepository())
  except DispatchUnavailableError as exc:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

  if not settings.cron_secret:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Cron secret is not configured")

  if not _secret_matches(settings.cron_secret, authorization=authorization, query_secret=secret):
    logger.warning("Unauthorized access attempt to prayer reminder dispatch")
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

  try:
    summary = await dispatcher.run()
  except SubscriptionStoreError as exc:
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load subscriptions") from exc

  return summary.as_response()
