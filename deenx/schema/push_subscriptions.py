"""SQLAlchemy model for prayer reminder Web Push subscriptions."""

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import BigInteger, Boolean, DateTime, Float, Index, Integer, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from deenx.core.database import Base


class PrayerPushSubscription(Base):
  """Persist a single browser push endpoint together with its prayer location settings."""

  __tablename__ = "prayer_push_subscriptions"
  __table_args__ = (
    Index("ux_prayer_push_subscriptions_endpoint", "endpoint", unique=True),
    Index("ix_prayer_push_subscriptions_active_updated_at", "active", "updated_at"),
  )

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  endpoint: Mapped[str] = mapped_column(Text, nullable=False)
  p256dh: Mapped[str] = mapped_column(Text, nullable=False)
  auth: Mapped[str] = mapped_column(Text, nullable=False)
  expiration_time: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
  lat: Mapped[float] = mapped_column(Float, nullable=False)
  lng: Mapped[float] = mapped_column(Float, nullable=False)
  method: Mapped[int] = mapped_column(Integer, nullable=False)
  location_name: Mapped[str] = mapped_column(Text, nullable=False)
  timezone: Mapped[str] = mapped_column(Text, nullable=False)
  language: Mapped[str | None] = mapped_column(Text, nullable=True)
  active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  last_notified_key: Mapped[str | None] = mapped_column(Text, nullable=True)
  last_notified_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
