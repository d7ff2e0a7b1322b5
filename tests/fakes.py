"""Shared fakes and builders for the reminder pipeline tests."""

from __future__ import annotations

import datetime
from dataclasses import replace

from deenx.notifications.contracts import PushNotification
from deenx.notifications.push_subscription_repo import PrayerSubscriptionEntry

VALID_ENDPOINT = "https://fcm.googleapis.com/fcm/send/abc"
VALID_P256DH = "BEl6f5Y8X5Y_u7d8mV_AbpZfXfTLT3s1O3L4wM1x8QY2_5qWQ-jxJq7uKjv8mQ4I"
VALID_AUTH = "gq8Yh5xA9l2mQ6pR"

DHAKA_TIMINGS = {"Fajr": "05:03", "Sunrise": "06:10", "Dhuhr": "11:45", "Asr": "15:40", "Maghrib": "17:28", "Isha": "18:42"}


def make_subscription(**overrides) -> PrayerSubscriptionEntry:
  values = {
    "endpoint": VALID_ENDPOINT,
    "p256dh": VALID_P256DH,
    "auth": VALID_AUTH,
    "lat": 23.8103,
    "lng": 90.4125,
    "method": 1,
    "location_name": "Dhaka",
    "timezone": "Asia/Dhaka",
  }
  values.update(overrides)
  return PrayerSubscriptionEntry(**values)


def dhaka_instant(hour: int, minute: int, *, day: int = 19) -> datetime.datetime:
  """Return the UTC instant for a Dhaka (UTC+6) wall-clock time in October 2026."""
  local = datetime.datetime(2026, 10, day, hour, minute, tzinfo=datetime.timezone(datetime.timedelta(hours=6)))
  return local.astimezone(datetime.UTC)


class FakeTimingProvider:
  """Returns fixed timings and records each lookup."""

  def __init__(self, timings: dict[str, str] | None = None, *, error: Exception | None = None) -> None:
    self.timings = dict(DHAKA_TIMINGS if timings is None else timings)
    self.error = error
    self.calls: list[dict] = []

  async def get_timings(self, *, date_key: str, lat: float, lng: float, method: int) -> dict[str, str]:
    self.calls.append({"date_key": date_key, "lat": lat, "lng": lng, "method": method})
    if self.error is not None:
      raise self.error
    return self.timings


class InMemorySubscriptionRepository:
  """Dict-backed stand-in for the Postgres repository."""

  def __init__(self, subscriptions: list[PrayerSubscriptionEntry] | None = None) -> None:
    self.rows: dict[str, PrayerSubscriptionEntry] = {sub.endpoint: sub for sub in subscriptions or []}
    self.fail_mark_notified = False
    self.fail_deactivate = False

  async def list_active(self) -> list[PrayerSubscriptionEntry]:
    return [row for row in self.rows.values() if row.active]

  async def deactivate(self, *, endpoint: str, now: datetime.datetime | None = None) -> None:
    if self.fail_deactivate:
      raise RuntimeError("write failed")
    self.rows[endpoint] = replace(self.rows[endpoint], active=False, updated_at=now)

  async def mark_notified(self, *, endpoint: str, key: str, now: datetime.datetime | None = None) -> None:
    if self.fail_mark_notified:
      raise RuntimeError("write failed")
    self.rows[endpoint] = replace(self.rows[endpoint], last_notified_key=key, last_notified_at=now, updated_at=now)


class RecordingPushSender:
  """Synchronous sender that records notifications or raises a configured error."""

  def __init__(self, error: Exception | None = None) -> None:
    self.error = error
    self.sent: list[PushNotification] = []

  def send(self, notification: PushNotification) -> None:
    if self.error is not None:
      raise self.error
    self.sent.append(notification)
