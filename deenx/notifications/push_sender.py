"""Push notification delivery implementations."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from http import HTTPStatus

import requests
from pywebpush import WebPushException, webpush

from deenx.config import Settings
from deenx.notifications.contracts import InvalidPushSubscriptionError, PushNotConfiguredError, PushNotification, PushSender, TransientPushProviderError

logger = logging.getLogger(__name__)

_GONE_STATUSES = {HTTPStatus.GONE, HTTPStatus.NOT_FOUND}
_PUSH_TTL_SECONDS = 60


@dataclass(frozen=True)
class VapidConfig:
  """Configuration required to sign Web Push requests, validated on construction."""

  public_key: str
  private_key: str
  subject: str

  def __post_init__(self) -> None:
    if not self.public_key or not self.private_key or not self.subject:
      raise PushNotConfiguredError("Web push is not configured")

    if not (self.subject.startswith("mailto:") or self.subject.startswith("https://")):
      raise PushNotConfiguredError("VAPID subject must start with 'mailto:' or 'https://'")

  @classmethod
  def from_settings(cls, settings: Settings) -> VapidConfig:
    """Build a config from settings, raising `PushNotConfiguredError` when incomplete."""
    return cls(public_key=settings.push_vapid_public_key or "", private_key=settings.push_vapid_private_key or "", subject=settings.push_vapid_subject or "")


class WebPushSender(PushSender):
  """`pywebpush` backed sender with retry and invalid-endpoint handling."""

  def __init__(self, *, vapid_config: VapidConfig, timeout_seconds: float = 10.0) -> None:
    self._vapid_config = vapid_config
    self._timeout_seconds = timeout_seconds

  def send(self, notification: PushNotification) -> None:
    """Send a Web Push payload with bounded retries for 5xx provider responses."""
    payload = {"title": notification.title, "body": notification.body, **notification.data}
    if notification.tag:
      payload["tag"] = notification.tag
    subscription_info = {"endpoint": notification.endpoint, "expirationTime": notification.expiration_time, "keys": {"p256dh": notification.p256dh, "auth": notification.auth}}
    backoff_seconds = [0.5, 1.0]

    for attempt in range(3):
      # Send with VAPID signing so browser push services can verify origin.
      try:
        webpush(
          subscription_info=subscription_info,
          data=json.dumps(payload),
          vapid_private_key=self._vapid_config.private_key,
          vapid_claims={"sub": self._vapid_config.subject},
          ttl=_PUSH_TTL_SECONDS,
          headers={"Urgency": "high"},
          timeout=self._timeout_seconds,
        )
        return
      except WebPushException as exc:
        status_code = _extract_status_code(exc)

        if status_code in _GONE_STATUSES:
          raise InvalidPushSubscriptionError(f"Push subscription is invalid (status={int(status_code)})", status_code=int(status_code)) from exc

        if status_code is not None and 500 <= int(status_code) < 600:
          if attempt < len(backoff_seconds):
            # Back off briefly to avoid amplifying transient provider incidents.
            time.sleep(backoff_seconds[attempt])
            continue

          raise TransientPushProviderError(f"Transient push provider failure after retries (status={int(status_code)})", status_code=int(status_code)) from exc

        raise TransientPushProviderError(f"Push delivery failed (status={int(status_code) if status_code else 'unknown'})", status_code=status_code) from exc
      except requests.RequestException as exc:
        # Timeouts and connection resets are left for the next scheduled pass.
        raise TransientPushProviderError(f"Push delivery failed (network error: {type(exc).__name__})") from exc


def _extract_status_code(exc: WebPushException) -> int | None:
  """Extract an HTTP status code from a pywebpush exception when available."""
  response = getattr(exc, "response", None)
  if response is None:
    return None

  status = getattr(response, "status_code", None)
  if isinstance(status, int):
    return status

  return None
