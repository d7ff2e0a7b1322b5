"""Push message content for prayer reminders."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from deenx.prayer.evaluator import DueNotification

PRAYER_REMINDER_URL = "/salah"
TEST_PUSH_TITLE = "Deen X Zikr"
TEST_PUSH_BODY = "Web push is active. You will receive prayer reminders."


@dataclass(frozen=True)
class PushContent:
  """Rendered title/body plus the extra payload fields the service worker reads."""

  title: str
  body: str
  tag: str
  data: dict[str, Any] = field(default_factory=dict)


def render_prayer_reminder(*, due: DueNotification, location_name: str) -> PushContent:
  """Render the reminder for a due prayer; within a minute of start it reads as "it is time"."""
  if due.starts_in_minutes <= 1:
    body = f"It is time for {due.prayer} in {location_name}."
  else:
    body = f"{due.prayer} starts in {due.starts_in_minutes} minutes ({location_name})."

  return PushContent(
    title=f"Prayer Reminder · {due.prayer}",
    body=body,
    tag=f"prayer-{due.key}",
    data={"prayer": due.prayer, "locationName": location_name, "url": PRAYER_REMINDER_URL},
  )


def render_test_push() -> PushContent:
  return PushContent(title=TEST_PUSH_TITLE, body=TEST_PUSH_BODY, tag="push-test", data={"url": PRAYER_REMINDER_URL})
