"""Repository helpers for prayer reminder subscription persistence."""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from deenx.core.database import get_session_factory
from deenx.notifications.contracts import DatabaseNotConfiguredError
from deenx.schema.push_subscriptions import PrayerPushSubscription


@dataclass(frozen=True)
class PrayerSubscriptionEntry:
  """A stored subscription as seen by the dispatcher."""

  endpoint: str
  p256dh: str
  auth: str
  lat: float
  lng: float
  method: int
  location_name: str
  timezone: str
  active: bool = True
  expiration_time: int | None = None
  language: str | None = None
  created_at: datetime.datetime | None = None
  updated_at: datetime.datetime | None = None
  last_notified_key: str | None = None
  last_notified_at: datetime.datetime | None = None


@dataclass(frozen=True)
class SubscriptionRegistration:
  """Capture a client subscribe request for storage."""

  endpoint: str
  p256dh: str
  auth: str
  expiration_time: int | None
  lat: float
  lng: float
  method: int
  location_name: str
  timezone: str
  language: str | None


def _to_entry(row: PrayerPushSubscription) -> PrayerSubscriptionEntry:
  return PrayerSubscriptionEntry(
    endpoint=row.endpoint,
    p256dh=row.p256dh,
    auth=row.auth,
    lat=row.lat,
    lng=row.lng,
    method=row.method,
    location_name=row.location_name,
    timezone=row.timezone,
    active=row.active,
    expiration_time=row.expiration_time,
    language=row.language,
    created_at=row.created_at,
    updated_at=row.updated_at,
    last_notified_key=row.last_notified_key,
    last_notified_at=row.last_notified_at,
  )


class PushSubscriptionRepository:
  """Persist and manage prayer reminder subscriptions in Postgres."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory

  def _factory(self) -> async_sessionmaker[AsyncSession]:
    session_factory = self._session_factory or get_session_factory()
    if session_factory is None:
      raise DatabaseNotConfiguredError("Database is not configured")
    return session_factory

  async def upsert(self, registration: SubscriptionRegistration, *, now: datetime.datetime | None = None) -> None:
    """Insert or update a subscription row keyed by endpoint and mark it active."""
    async with self._factory()() as session:
      await self._upsert_with_session(session=session, registration=registration, now=now or datetime.datetime.now(datetime.UTC))

  async def _upsert_with_session(self, *, session: AsyncSession, registration: SubscriptionRegistration, now: datetime.datetime) -> None:
    # Re-subscription refreshes keys and location and re-activates the endpoint; created_at and the dedup marker survive.
    values: dict[str, Any] = {
      "p256dh": registration.p256dh,
      "auth": registration.auth,
      "expiration_time": registration.expiration_time,
      "lat": registration.lat,
      "lng": registration.lng,
      "method": registration.method,
      "location_name": registration.location_name,
      "timezone": registration.timezone,
      "language": registration.language,
      "active": True,
      "updated_at": now,
    }
    stmt = insert(PrayerPushSubscription).values(endpoint=registration.endpoint, created_at=now, **values)
    stmt = stmt.on_conflict_do_update(index_elements=["endpoint"], set_=values)
    await session.execute(stmt)
    await session.commit()

  async def list_active(self) -> list[PrayerSubscriptionEntry]:
    """List every active subscription for a dispatch pass."""
    async with self._factory()() as session:
      return await self._list_active_with_session(session=session)

  async def _list_active_with_session(self, *, session: AsyncSession) -> list[PrayerSubscriptionEntry]:
    stmt = select(PrayerPushSubscription).where(PrayerPushSubscription.active.is_(True)).order_by(PrayerPushSubscription.updated_at.desc())
    result = await session.execute(stmt)
    return [_to_entry(row) for row in result.scalars().all()]

  async def get_active(self, *, endpoint: str) -> PrayerSubscriptionEntry | None:
    """Return an active subscription by endpoint, or None."""
    async with self._factory()() as session:
      stmt = select(PrayerPushSubscription).where(PrayerPushSubscription.endpoint == endpoint, PrayerPushSubscription.active.is_(True))
      result = await session.execute(stmt)
      row = result.scalar_one_or_none()
      return _to_entry(row) if row is not None else None

  async def deactivate(self, *, endpoint: str, now: datetime.datetime | None = None) -> None:
    """Flag an endpoint inactive so later dispatch passes skip it."""
    async with self._factory()() as session:
      await self._update_by_endpoint(session=session, endpoint=endpoint, values={"active": False, "updated_at": now or datetime.datetime.now(datetime.UTC)})

  async def mark_notified(self, *, endpoint: str, key: str, now: datetime.datetime | None = None) -> None:
    """Record the dedup key of a delivered reminder."""
    at = now or datetime.datetime.now(datetime.UTC)
    async with self._factory()() as session:
      await self._update_by_endpoint(session=session, endpoint=endpoint, values={"updated_at": at, "last_notified_at": at, "last_notified_key": key})

  async def _update_by_endpoint(self, *, session: AsyncSession, endpoint: str, values: dict[str, Any]) -> None:
    # A single-row update keyed by endpoint is the atomicity boundary.
    stmt = update(PrayerPushSubscription).where(PrayerPushSubscription.endpoint == endpoint).values(**values)
    await session.execute(stmt)
    await session.commit()
