from __future__ import annotations

import pytest
from deenx.prayer.evaluator import DueNotification, PrayerDueEvaluator, build_dedup_key, find_due_prayer, parse_prayer_minutes
from deenx.prayer.timing_provider import TimingProviderError

from tests.fakes import DHAKA_TIMINGS, FakeTimingProvider, dhaka_instant, make_subscription


@pytest.mark.parametrize(
  ("raw", "expected"),
  [("05:03", 303), ("5:07", 307), ("05:03 (+06)", 303), ("23:59", 1439), ("00:00", 0), ("24:00", None), ("12:60", None), ("abc", None), ("", None), (None, None)],
)
def test_parse_prayer_minutes(raw, expected):
  assert parse_prayer_minutes(raw) == expected


def test_build_dedup_key():
  assert build_dedup_key("19-10-2026", "Fajr") == "19-10-2026-Fajr"


def test_find_due_prayer_inside_window():
  due = find_due_prayer(DHAKA_TIMINGS, date_key="19-10-2026", now_minutes=300)

  assert due == DueNotification(key="19-10-2026-Fajr", prayer="Fajr", starts_in_minutes=3)


def test_find_due_prayer_matches_at_start_and_window_edge():
  assert find_due_prayer(DHAKA_TIMINGS, date_key="19-10-2026", now_minutes=303).starts_in_minutes == 0
  assert find_due_prayer(DHAKA_TIMINGS, date_key="19-10-2026", now_minutes=293).starts_in_minutes == 10


def test_find_due_prayer_ignores_started_and_distant_prayers():
  # One minute after Fajr, and eleven minutes before it.
  assert find_due_prayer(DHAKA_TIMINGS, date_key="19-10-2026", now_minutes=304) is None
  assert find_due_prayer(DHAKA_TIMINGS, date_key="19-10-2026", now_minutes=292) is None


def test_find_due_prayer_first_match_wins_over_closer_prayer():
  timings = {"Fajr": "04:00", "Dhuhr": "12:05", "Asr": "12:02", "Maghrib": "18:00", "Isha": "19:30"}

  due = find_due_prayer(timings, date_key="19-10-2026", now_minutes=12 * 60)

  assert due.prayer == "Dhuhr"
  assert due.starts_in_minutes == 5


def test_find_due_prayer_never_matches_sunrise():
  timings = {"Fajr": "04:00", "Sunrise": "06:05", "Dhuhr": "12:00"}

  assert find_due_prayer(timings, date_key="19-10-2026", now_minutes=6 * 60) is None


def test_find_due_prayer_skips_unparseable_entries():
  timings = {"Fajr": "not-a-time", "Dhuhr": "11:45"}

  assert find_due_prayer(timings, date_key="19-10-2026", now_minutes=11 * 60 + 40).prayer == "Dhuhr"


def test_find_due_prayer_rejects_negative_window():
  with pytest.raises(ValueError):
    find_due_prayer(DHAKA_TIMINGS, date_key="19-10-2026", now_minutes=300, window_minutes=-1)


def test_find_due_prayer_zero_window_only_matches_exact_start():
  assert find_due_prayer(DHAKA_TIMINGS, date_key="19-10-2026", now_minutes=303, window_minutes=0).prayer == "Fajr"
  assert find_due_prayer(DHAKA_TIMINGS, date_key="19-10-2026", now_minutes=302, window_minutes=0) is None


@pytest.mark.anyio
async def test_evaluator_uses_subscriber_local_date_and_time():
  provider = FakeTimingProvider()
  evaluator = PrayerDueEvaluator(timing_provider=provider)
  subscription = make_subscription()

  # 05:00 in Dhaka is 23:00 UTC on the previous calendar day.
  due = await evaluator.evaluate(subscription, dhaka_instant(5, 0))

  assert due == DueNotification(key="19-10-2026-Fajr", prayer="Fajr", starts_in_minutes=3)
  assert provider.calls == [{"date_key": "19-10-2026", "lat": 23.8103, "lng": 90.4125, "method": 1}]


@pytest.mark.anyio
async def test_evaluator_keys_change_across_local_midnight():
  evaluator = PrayerDueEvaluator(timing_provider=FakeTimingProvider())
  subscription = make_subscription()

  isha = await evaluator.evaluate(subscription, dhaka_instant(18, 35, day=18))
  fajr = await evaluator.evaluate(subscription, dhaka_instant(5, 0, day=19))

  assert isha.key == "18-10-2026-Isha"
  assert fajr.key == "19-10-2026-Fajr"


@pytest.mark.anyio
async def test_evaluator_returns_none_when_nothing_is_due():
  evaluator = PrayerDueEvaluator(timing_provider=FakeTimingProvider())

  assert await evaluator.evaluate(make_subscription(), dhaka_instant(9, 0)) is None


@pytest.mark.anyio
async def test_evaluator_propagates_timing_errors():
  evaluator = PrayerDueEvaluator(timing_provider=FakeTimingProvider(error=TimingProviderError("upstream down")))

  with pytest.raises(TimingProviderError):
    await evaluator.evaluate(make_subscription(), dhaka_instant(5, 0))
