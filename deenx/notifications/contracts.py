"""Contracts for prayer reminder delivery."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class PushNotification:
  """Represents a push notification payload addressed to one endpoint."""

  endpoint: str
  p256dh: str
  auth: str
  title: str
  body: str
  tag: str | None = None
  expiration_time: int | None = None
  data: dict[str, Any] = field(default_factory=dict)


class NotificationError(Exception):
  """Base class for all notification delivery failures."""


class NotificationProviderError(NotificationError):
  """Exception raised when the push provider returns a delivery error."""

  def __init__(self, message: str, *, status_code: int | None = None) -> None:
    super().__init__(message)
    self.status_code = status_code


class InvalidPushSubscriptionError(NotificationProviderError):
  """Exception raised when a push subscription endpoint is expired or invalid."""


class TransientPushProviderError(NotificationProviderError):
  """Exception raised for retryable delivery failures (network, rate limit, 5xx, unknown status)."""


class DispatchUnavailableError(Exception):
  """Raised when the dispatcher cannot run because required configuration is absent."""


class PushNotConfiguredError(DispatchUnavailableError):
  """Raised when VAPID credentials are missing or malformed."""


class DatabaseNotConfiguredError(DispatchUnavailableError):
  """Raised when no subscription store connection is configured."""


class SubscriptionStoreError(Exception):
  """Raised when active subscriptions cannot be loaded."""


class PushSender(Protocol):
  """Delivery contract for sending push notifications."""

  def send(self, notification: PushNotification) -> None:
    """Send a push notification synchronously."""
