"""Routes for prayer reminder subscription lifecycle management."""

from __future__ import annotations

import logging
import re
import urllib.parse
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_core import PydanticCustomError
from starlette.concurrency import run_in_threadpool

from deenx.api.deps import enforce_rate_limit
from deenx.config import Settings, get_settings
from deenx.notifications.contracts import DatabaseNotConfiguredError, InvalidPushSubscriptionError, NotificationProviderError, PushNotConfiguredError, PushNotification
from deenx.notifications.factory import build_push_sender, ensure_database_configured
from deenx.notifications.push_subscription_repo import PushSubscriptionRepository, SubscriptionRegistration
from deenx.notifications.templates import render_test_push
from deenx.utils.rate_limit import FixedWindowRateLimiter
from deenx.utils.timezones import is_valid_timezone

_ALLOWED_PUSH_HOSTS = {"fcm.googleapis.com", "updates.push.services.mozilla.com", "push.services.mozilla.com", "web.push.apple.com"}
_ALLOWED_PUSH_HOST_SUFFIXES = (".notify.windows.com", ".push.apple.com")
_BASE64_RE = re.compile(r"^[A-Za-z0-9_-]+={0,2}$")

subscribe_limiter = FixedWindowRateLimiter(limit=20, window_seconds=60)
unsubscribe_limiter = FixedWindowRateLimiter(limit=20, window_seconds=60)
test_push_limiter = FixedWindowRateLimiter(limit=12, window_seconds=60)

router = APIRouter()
logger = logging.getLogger(__name__)


def _validate_endpoint(value: str) -> str:
  """Restrict endpoints to known push provider hosts over HTTPS."""
  normalized = value.strip()
  parsed = urllib.parse.urlparse(normalized)

  if parsed.scheme.lower() != "https":
    raise PydanticCustomError("push_endpoint_https", "endpoint must use https.")

  host = (parsed.hostname or "").lower()
  if host not in _ALLOWED_PUSH_HOSTS and not host.endswith(_ALLOWED_PUSH_HOST_SUFFIXES):
    raise PydanticCustomError("push_endpoint_host", "endpoint host is not allowed.")

  return normalized


class PushSubscriptionKeys(BaseModel):
  """Browser-provided key material for Web Push encryption."""

  p256dh: str = Field(min_length=40, max_length=512)
  auth: str = Field(min_length=16, max_length=256)
  model_config = ConfigDict(extra="forbid")

  @field_validator("p256dh", "auth")
  @classmethod
  def validate_base64url(cls, value: str) -> str:
    """Validate key shape using a strict base64url policy."""
    normalized = value.strip()
    if not _BASE64_RE.fullmatch(normalized):
      raise PydanticCustomError("push_key_format", "push keys must be base64url encoded.")

    return normalized


class WebPushSubscriptionPayload(BaseModel):
  """Standard browser push subscription object."""

  endpoint: str = Field(min_length=1, max_length=2048)
  expiration_time: int | None = Field(default=None, alias="expirationTime")
  keys: PushSubscriptionKeys
  model_config = ConfigDict(extra="forbid", populate_by_name=True)

  @field_validator("endpoint")
  @classmethod
  def validate_endpoint(cls, value: str) -> str:
    return _validate_endpoint(value)


class PushSubscribeRequest(BaseModel):
  """Subscription plus the location settings used to compute prayer times."""

  subscription: WebPushSubscriptionPayload
  lat: float = Field(ge=-90, le=90)
  lng: float = Field(ge=-180, le=180)
  method: int = Field(ge=1, le=25)
  location_name: str = Field(min_length=1, max_length=160, alias="locationName")
  timezone: str = Field(min_length=1, max_length=120)
  language: str | None = Field(default=None, max_length=32)
  model_config = ConfigDict(extra="forbid", populate_by_name=True)

  @field_validator("timezone")
  @classmethod
  def validate_timezone(cls, value: str) -> str:
    """Reject zone names the dispatcher could not resolve later."""
    normalized = value.strip()
    if not is_valid_timezone(normalized):
      raise PydanticCustomError("push_timezone_unknown", "timezone must be a known IANA zone name.")

    return normalized


class PushUnsubscribeRequest(BaseModel):
  """Payload for deactivating an existing push subscription."""

  endpoint: str = Field(min_length=1, max_length=2048)
  model_config = ConfigDict(extra="forbid")

  @field_validator("endpoint")
  @classmethod
  def validate_endpoint(cls, value: str) -> str:
    return _validate_endpoint(value)


class PushTestRequest(BaseModel):
  """Either a stored endpoint or a full subscription to send a test push to."""

  endpoint: str | None = Field(default=None, min_length=1, max_length=2048)
  subscription: WebPushSubscriptionPayload | None = None
  model_config = ConfigDict(extra="forbid")

  @field_validator("endpoint")
  @classmethod
  def validate_endpoint(cls, value: str | None) -> str | None:
    return _validate_endpoint(value) if value is not None else None

  @model_validator(mode="after")
  def require_target(self) -> PushTestRequest:
    if not self.endpoint and self.subscription is None:
      raise PydanticCustomError("push_test_target", "endpoint or subscription is required.")
    return self


@router.get("/public-key")
async def get_public_key(settings: Annotated[Settings, Depends(get_settings)]) -> dict[str, str]:
  """Expose the VAPID public key browsers need to subscribe."""
  if not settings.push_vapid_public_key:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Web push is not configured")

  return {"publicKey": settings.push_vapid_public_key}


@router.post("/subscribe")
async def subscribe_to_push(payload: PushSubscribeRequest, request: Request, settings: Annotated[Settings, Depends(get_settings)]) -> dict[str, bool]:
  """Upsert a subscription keyed by endpoint and (re)activate it."""
  enforce_rate_limit(subscribe_limiter, scope="push-subscribe", request=request)

  if not settings.push_configured:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Web push is not configured")
  try:
    ensure_database_configured(settings)
  except DatabaseNotConfiguredError as exc:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

  registration = SubscriptionRegistration(
    endpoint=payload.subscription.endpoint,
    p256dh=payload.subscription.keys.p256dh,
    auth=payload.subscription.keys.auth,
    expiration_time=payload.subscription.expiration_time,
    lat=payload.lat,
    lng=payload.lng,
    method=payload.method,
    location_name=payload.location_name.strip(),
    timezone=payload.timezone,
    language=payload.language,
  )

  try:
    await PushSubscriptionRepository().upsert(registration)
  except Exception as exc:  # noqa: BLE001
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to persist push subscription") from exc

  return {"success": True}


@router.post("/unsubscribe")
async def unsubscribe_from_push(payload: PushUnsubscribeRequest, request: Request, settings: Annotated[Settings, Depends(get_settings)]) -> dict[str, bool]:
  """Deactivate a subscription; unknown endpoints are a no-op."""
  try:
    ensure_database_configured(settings)
  except DatabaseNotConfiguredError as exc:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

  enforce_rate_limit(unsubscribe_limiter, scope="push-unsubscribe", request=request)

  try:
    await PushSubscriptionRepository().deactivate(endpoint=payload.endpoint)
  except Exception as exc:  # noqa: BLE001
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to unsubscribe") from exc

  return {"success": True}


@router.post("/test", response_model=None)
async def send_test_push(payload: PushTestRequest, request: Request, settings: Annotated[Settings, Depends(get_settings)]) -> dict[str, bool | str] | JSONResponse:
  """Send a fixed test notification to a provided or stored subscription."""
  try:
    sender = build_push_sender(settings)
  except PushNotConfiguredError as exc:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

  enforce_rate_limit(test_push_limiter, scope="push-test", request=request)

  subscription = payload.subscription
  repo: PushSubscriptionRepository | None = None
  endpoint, p256dh, auth, expiration_time = None, None, None, None

  if subscription is not None:
    endpoint, p256dh, auth, expiration_time = subscription.endpoint, subscription.keys.p256dh, subscription.keys.auth, subscription.expiration_time
  elif payload.endpoint:
    if not settings.pg_dsn:
      raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subscription not found and database is unavailable")
    repo = PushSubscriptionRepository()
    try:
      stored = await repo.get_active(endpoint=payload.endpoint)
    except Exception as exc:  # noqa: BLE001
      raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load push subscription") from exc
    if stored is not None:
      endpoint, p256dh, auth, expiration_time = stored.endpoint, stored.p256dh, stored.auth, stored.expiration_time

  if endpoint is None or p256dh is None or auth is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subscription not found")

  content = render_test_push()
  notification = PushNotification(endpoint=endpoint, p256dh=p256dh, auth=auth, title=content.title, body=content.body, tag=content.tag, expiration_time=expiration_time, data=content.data)

  try:
    await run_in_threadpool(sender.send, notification)
  except NotificationProviderError as exc:
    if isinstance(exc, InvalidPushSubscriptionError) and settings.pg_dsn:
      # Best-effort: the endpoint is gone, so stop dispatching to it.
      try:
        await (repo or PushSubscriptionRepository()).deactivate(endpoint=endpoint)
      except Exception as write_exc:  # noqa: BLE001
        logger.error("Failed deactivating gone endpoint after test push error=%s", write_exc, exc_info=True)
    logger.warning("Test push failed status=%s error=%s", exc.status_code, exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": str(exc), "statusCode": exc.status_code})

  return {"success": True, "source": "request" if subscription is not None else "database"}
