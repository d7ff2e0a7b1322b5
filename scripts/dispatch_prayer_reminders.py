"""Run one prayer reminder dispatch pass outside the HTTP trigger.

Useful for system cron or a one-off backfill when the web service is not
reachable. Exits 2 when push or database configuration is missing.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys

import httpx

# Add the project root to the path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from deenx.config import get_settings  # noqa: E402
from deenx.core.database import dispose_db_engine  # noqa: E402
from deenx.core.logging import _initialize_logging  # noqa: E402
from deenx.notifications.contracts import DispatchUnavailableError, SubscriptionStoreError  # noqa: E402
from deenx.notifications.factory import build_reminder_dispatcher, build_timing_provider  # noqa: E402

logger = logging.getLogger("scripts.dispatch_prayer_reminders")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
  parser = argparse.ArgumentParser(description="Send due prayer reminders to every active subscription.")
  parser.add_argument("--window-minutes", type=int, default=None, help="Lookahead window in minutes (default: DEENX_REMINDER_WINDOW_MINUTES)")
  return parser.parse_args(argv)


async def _run(window_minutes: int | None) -> int:
  settings = get_settings()
  _initialize_logging(settings)

  async with httpx.AsyncClient(trust_env=False) as client:
    timing_provider = build_timing_provider(settings, client=client)
    try:
      dispatcher = build_reminder_dispatcher(settings, timing_provider=timing_provider, window_minutes=window_minutes)
      summary = await dispatcher.run()
    except DispatchUnavailableError as exc:
      logger.error("Dispatch unavailable: %s", exc)
      return 2
    except SubscriptionStoreError:
      logger.error("Dispatch failed while loading subscriptions", exc_info=True)
      return 1
    finally:
      await dispose_db_engine()

  print(json.dumps(summary.as_response()))
  return 0


def main(argv: list[str] | None = None) -> int:
  args = _parse_args(argv)
  if args.window_minutes is not None and args.window_minutes < 0:
    print("--window-minutes must be >= 0", file=sys.stderr)
    return 2
  return asyncio.run(_run(args.window_minutes))


if __name__ == "__main__":
  sys.exit(main())
