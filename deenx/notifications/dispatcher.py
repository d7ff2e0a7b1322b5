"""Periodic prayer reminder dispatch across all active subscriptions."""

from __future__ import annotations

import asyncio
import datetime
import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass

from starlette.concurrency import run_in_threadpool

from deenx.notifications.contracts import DispatchUnavailableError, InvalidPushSubscriptionError, NotificationProviderError, PushNotification, PushSender, SubscriptionStoreError
from deenx.notifications.push_subscription_repo import PrayerSubscriptionEntry, PushSubscriptionRepository
from deenx.notifications.templates import render_prayer_reminder
from deenx.prayer.evaluator import DEFAULT_WINDOW_MINUTES, PrayerDueEvaluator
from deenx.prayer.timing_provider import TimingProviderError

logger = logging.getLogger(__name__)


class DispatchOutcome(enum.StrEnum):
  SENT = "sent"
  SKIPPED = "skipped"
  EXPIRED = "expired"


@dataclass(frozen=True)
class DispatchSummary:
  """Aggregate counts for one dispatch pass."""

  total: int
  sent: int
  skipped: int
  expired: int

  def as_response(self) -> dict[str, int | bool]:
    return {"success": True, "total": self.total, "sent": self.sent, "skipped": self.skipped, "expired": self.expired}


def _utcnow() -> datetime.datetime:
  return datetime.datetime.now(datetime.UTC)


def _endpoint_hint(endpoint: str) -> str:
  """Shorten push endpoints for logs; the full URL is a delivery capability."""
  return endpoint if len(endpoint) <= 48 else f"{endpoint[:40]}...{endpoint[-6:]}"


class PrayerReminderDispatcher:
  """Evaluate, deliver and reconcile prayer reminders for every active subscription.

  Each subscription is handled independently: its read-evaluate-send-write
  sequence runs sequentially while different subscriptions are processed
  concurrently up to `concurrency`. One subscription's failure never aborts
  the pass. At-most-once delivery per (subscription, prayer, day) comes from
  comparing the dedup key against `last_notified_key`; a failed write after a
  successful send can therefore repeat that reminder on the next pass.
  """

  def __init__(
    self,
    *,
    subscription_repo: PushSubscriptionRepository,
    evaluator: PrayerDueEvaluator,
    push_sender: PushSender,
    window_minutes: int = DEFAULT_WINDOW_MINUTES,
    concurrency: int = 8,
    clock: Callable[[], datetime.datetime] = _utcnow,
  ) -> None:
    if window_minutes < 0:
      raise ValueError("window_minutes must be >= 0")
    if concurrency <= 0:
      raise ValueError("concurrency must be a positive integer")

    self._subscription_repo = subscription_repo
    self._evaluator = evaluator
    self._push_sender = push_sender
    self._window_minutes = window_minutes
    self._concurrency = concurrency
    self._clock = clock

  async def run(self, now: datetime.datetime | None = None) -> DispatchSummary:
    """Run one dispatch pass and return aggregate counts."""
    now = now or self._clock()

    # Loading is the only step that fails the whole pass; nothing has been sent yet.
    try:
      subscriptions = await self._subscription_repo.list_active()
    except DispatchUnavailableError:
      raise
    except Exception as exc:
      logger.error("Active subscription lookup failed error=%s", exc, exc_info=True)
      raise SubscriptionStoreError("Failed to load active subscriptions") from exc

    semaphore = asyncio.Semaphore(self._concurrency)

    async def _guarded(subscription: PrayerSubscriptionEntry) -> DispatchOutcome:
      async with semaphore:
        return await self.process_subscription(subscription, now)

    outcomes = await asyncio.gather(*(_guarded(subscription) for subscription in subscriptions))

    summary = DispatchSummary(
      total=len(subscriptions),
      sent=sum(1 for outcome in outcomes if outcome is DispatchOutcome.SENT),
      skipped=sum(1 for outcome in outcomes if outcome is DispatchOutcome.SKIPPED),
      expired=sum(1 for outcome in outcomes if outcome is DispatchOutcome.EXPIRED),
    )
    logger.info("Prayer reminder dispatch complete total=%s sent=%s skipped=%s expired=%s", summary.total, summary.sent, summary.skipped, summary.expired)
    return summary

  async def process_subscription(self, subscription: PrayerSubscriptionEntry, now: datetime.datetime) -> DispatchOutcome:
    """Handle a single subscription; never raises."""
    endpoint_hint = _endpoint_hint(subscription.endpoint)

    try:
      due = await self._evaluator.evaluate(subscription, now, self._window_minutes)
    except TimingProviderError as exc:
      logger.warning("Prayer timings unavailable endpoint=%s error=%s", endpoint_hint, exc)
      return DispatchOutcome.SKIPPED
    except Exception as exc:  # noqa: BLE001
      logger.error("Reminder evaluation failed endpoint=%s error=%s", endpoint_hint, exc, exc_info=True)
      return DispatchOutcome.SKIPPED

    if due is None:
      return DispatchOutcome.SKIPPED

    if subscription.last_notified_key == due.key:
      logger.debug("Reminder already delivered endpoint=%s key=%s", endpoint_hint, due.key)
      return DispatchOutcome.SKIPPED

    content = render_prayer_reminder(due=due, location_name=subscription.location_name)
    notification = PushNotification(
      endpoint=subscription.endpoint,
      p256dh=subscription.p256dh,
      auth=subscription.auth,
      title=content.title,
      body=content.body,
      tag=content.tag,
      expiration_time=subscription.expiration_time,
      data=content.data,
    )

    try:
      await run_in_threadpool(self._push_sender.send, notification)
    except InvalidPushSubscriptionError as exc:
      logger.info("Push endpoint gone; deactivating endpoint=%s status=%s", endpoint_hint, exc.status_code)
      try:
        await self._subscription_repo.deactivate(endpoint=subscription.endpoint, now=now)
      except Exception as write_exc:  # noqa: BLE001
        logger.error("Failed deactivating expired subscription endpoint=%s error=%s", endpoint_hint, write_exc, exc_info=True)
      return DispatchOutcome.EXPIRED
    except NotificationProviderError as exc:
      # Left for the next scheduled pass because last_notified_key was not updated.
      logger.warning("Push delivery failed (provider error) endpoint=%s error=%s", endpoint_hint, exc)
      return DispatchOutcome.SKIPPED
    except Exception as exc:  # noqa: BLE001
      logger.error("Push delivery failed endpoint=%s error=%s", endpoint_hint, exc, exc_info=True)
      return DispatchOutcome.SKIPPED

    try:
      await self._subscription_repo.mark_notified(endpoint=subscription.endpoint, key=due.key, now=now)
    except Exception as exc:  # noqa: BLE001
      logger.error("Failed recording delivered reminder; a duplicate may follow endpoint=%s key=%s error=%s", endpoint_hint, due.key, exc, exc_info=True)

    logger.info("Prayer reminder sent endpoint=%s key=%s starts_in=%s", endpoint_hint, due.key, due.starts_in_minutes)
    return DispatchOutcome.SENT
