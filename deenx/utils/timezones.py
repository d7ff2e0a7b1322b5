"""Explicit timezone arithmetic for reminder scheduling.

Prayer timings are published as local wall-clock times, so "now" has to be
projected into the subscriber's IANA zone before it can be compared. Both
helpers accept an aware instant; naive datetimes are interpreted as UTC.
"""

from __future__ import annotations

import datetime
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

MINUTES_PER_DAY = 24 * 60


class InvalidTimezoneError(ValueError):
  """Raised when a zone name is not a known IANA timezone."""


@lru_cache(maxsize=512)
def resolve_zone(zone: str) -> ZoneInfo:
  """Return the `ZoneInfo` for an IANA name, raising `InvalidTimezoneError` when unknown."""
  try:
    return ZoneInfo(zone)
  except (ZoneInfoNotFoundError, ValueError, TypeError) as exc:
    raise InvalidTimezoneError(f"Unknown timezone: {zone!r}") from exc


def is_valid_timezone(zone: str) -> bool:
  try:
    resolve_zone(zone)
  except InvalidTimezoneError:
    return False
  return True


def to_local(instant: datetime.datetime, zone: str) -> datetime.datetime:
  """Project an instant into the given zone."""
  if instant.tzinfo is None:
    instant = instant.replace(tzinfo=datetime.UTC)
  return instant.astimezone(resolve_zone(zone))


def local_date_key(instant: datetime.datetime, zone: str) -> str:
  """Return the local calendar date of `instant` in `zone` formatted as DD-MM-YYYY."""
  return to_local(instant, zone).strftime("%d-%m-%Y")


def local_minutes_of_day(instant: datetime.datetime, zone: str) -> int:
  """Return minutes since local midnight (0-1439) of `instant` in `zone`."""
  local = to_local(instant, zone)
  return local.hour * 60 + local.minute
