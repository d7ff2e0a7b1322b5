"""Decide whether a prayer reminder is due for a subscription."""

from __future__ import annotations

import datetime
import re
from collections.abc import Mapping
from dataclasses import dataclass

from deenx.notifications.push_subscription_repo import PrayerSubscriptionEntry
from deenx.prayer.timing_provider import TimingProvider
from deenx.utils.timezones import MINUTES_PER_DAY, local_date_key, local_minutes_of_day

# Sunrise is published by the provider but is never a reminder candidate.
PRAYER_NAMES: tuple[str, ...] = ("Fajr", "Dhuhr", "Asr", "Maghrib", "Isha")
DEFAULT_WINDOW_MINUTES = 10

_TIMING_RE = re.compile(r"^(\d{1,2}):(\d{2})")


@dataclass(frozen=True)
class DueNotification:
  """A prayer starting within the reminder window."""

  key: str
  prayer: str
  starts_in_minutes: int


def parse_prayer_minutes(timing: str | None) -> int | None:
  """Parse "HH:MM" (ignoring any trailing annotation such as " (+06)") into minutes of day."""
  if not timing:
    return None

  matched = _TIMING_RE.match(timing.strip())
  if not matched:
    return None

  hours, minutes = int(matched.group(1)), int(matched.group(2))
  if hours > 23 or minutes > 59:
    return None

  return hours * 60 + minutes


def build_dedup_key(date_key: str, prayer: str) -> str:
  return f"{date_key}-{prayer}"


def find_due_prayer(timings: Mapping[str, str], *, date_key: str, now_minutes: int, window_minutes: int = DEFAULT_WINDOW_MINUTES) -> DueNotification | None:
  """Return the first prayer, in canonical order, that starts within `[0, window_minutes]` of now.

  The first match wins even if a later prayer is closer; prayers that already
  started (negative delta) never match.
  """
  if window_minutes < 0:
    raise ValueError("window_minutes must be >= 0")

  if not 0 <= now_minutes < MINUTES_PER_DAY:
    raise ValueError("now_minutes must be within a single day (0-1439)")

  for prayer in PRAYER_NAMES:
    prayer_minutes = parse_prayer_minutes(timings.get(prayer))
    if prayer_minutes is None:
      continue

    delta = prayer_minutes - now_minutes
    if delta < 0 or delta > window_minutes:
      continue

    return DueNotification(key=build_dedup_key(date_key, prayer), prayer=prayer, starts_in_minutes=delta)

  return None


class PrayerDueEvaluator:
  """Resolve local time for a subscription, fetch its timings and find a due prayer."""

  def __init__(self, *, timing_provider: TimingProvider) -> None:
    self._timing_provider = timing_provider

  async def evaluate(self, subscription: PrayerSubscriptionEntry, now: datetime.datetime, window_minutes: int = DEFAULT_WINDOW_MINUTES) -> DueNotification | None:
    """Return the due notification for `subscription` at `now`, or None.

    Raises `TimingProviderError` when timings cannot be fetched and
    `InvalidTimezoneError` when the stored zone is unknown.
    """
    if window_minutes < 0:
      raise ValueError("window_minutes must be >= 0")

    date_key = local_date_key(now, subscription.timezone)
    timings = await self._timing_provider.get_timings(date_key=date_key, lat=subscription.lat, lng=subscription.lng, method=subscription.method)
    now_minutes = local_minutes_of_day(now, subscription.timezone)
    return find_due_prayer(timings, date_key=date_key, now_minutes=now_minutes, window_minutes=window_minutes)
