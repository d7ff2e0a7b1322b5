"""Factory helpers for the prayer reminder pipeline."""

from __future__ import annotations

import httpx

from deenx.config import Settings
from deenx.notifications.contracts import DatabaseNotConfiguredError, PushSender
from deenx.notifications.dispatcher import PrayerReminderDispatcher
from deenx.notifications.push_sender import VapidConfig, WebPushSender
from deenx.notifications.push_subscription_repo import PushSubscriptionRepository
from deenx.prayer.evaluator import PrayerDueEvaluator
from deenx.prayer.timing_provider import AladhanTimingProvider, TimingProvider


def build_timing_provider(settings: Settings, *, client: httpx.AsyncClient) -> AladhanTimingProvider:
  """Construct the cached Aladhan provider around a caller-owned HTTP client."""
  return AladhanTimingProvider(client=client, base_url=settings.aladhan_base_url, revalidate_seconds=settings.timings_revalidate_seconds, timeout_seconds=settings.timings_timeout_seconds)


def build_push_sender(settings: Settings) -> WebPushSender:
  """Construct the Web Push sender, raising `PushNotConfiguredError` when VAPID settings are incomplete."""
  return WebPushSender(vapid_config=VapidConfig.from_settings(settings), timeout_seconds=settings.push_timeout_seconds)


def ensure_database_configured(settings: Settings) -> None:
  if not settings.pg_dsn:
    raise DatabaseNotConfiguredError("Database is not configured")


def build_reminder_dispatcher(
  settings: Settings,
  *,
  timing_provider: TimingProvider,
  subscription_repo: PushSubscriptionRepository | None = None,
  push_sender: PushSender | None = None,
  window_minutes: int | None = None,
) -> PrayerReminderDispatcher:
  """Construct a dispatcher after validating push and persistence configuration once."""
  # Validate push first, then persistence, so callers see the same order on every run.
  vapid_config = VapidConfig.from_settings(settings)
  ensure_database_configured(settings)
  sender = push_sender if push_sender is not None else WebPushSender(vapid_config=vapid_config, timeout_seconds=settings.push_timeout_seconds)

  return PrayerReminderDispatcher(
    subscription_repo=subscription_repo or PushSubscriptionRepository(),
    evaluator=PrayerDueEvaluator(timing_provider=timing_provider),
    push_sender=sender,
    window_minutes=settings.reminder_window_minutes if window_minutes is None else window_minutes,
    concurrency=settings.dispatch_concurrency,
  )
