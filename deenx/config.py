"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from deenx.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)


@dataclass(frozen=True)
class Settings:
  """Typed settings for the DeenX reminder service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_level: str
  log_file: str | None
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  push_vapid_public_key: str | None
  push_vapid_private_key: str | None
  push_vapid_subject: str | None
  push_timeout_seconds: float
  cron_secret: str | None
  aladhan_base_url: str
  timings_revalidate_seconds: int
  timings_timeout_seconds: float
  reminder_window_minutes: int
  dispatch_concurrency: int

  @property
  def push_configured(self) -> bool:
    """Return True when every VAPID setting needed to sign pushes is present."""
    return bool(self.push_vapid_public_key and self.push_vapid_private_key and self.push_vapid_subject)


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return ()

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if "*" in origins:
    raise ValueError("DEENX_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None

  value = raw.strip().strip('"').strip("'")
  return value or None


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")

  return value


def _positive_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")

  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("DEENX_ENV", "development").lower()

  # Toggle verbose error output and diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("DEENX_DEBUG"))

  log_level = (os.getenv("DEENX_LOG_LEVEL") or "INFO").strip().upper()
  log_max_bytes = _positive_int("DEENX_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("DEENX_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("DEENX_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # Push, database and cron secret may be absent; the dispatch route reports that as 503.
  push_vapid_public_key = _optional_str(os.getenv("DEENX_PUSH_VAPID_PUBLIC_KEY"))
  push_vapid_private_key = _optional_str(os.getenv("DEENX_PUSH_VAPID_PRIVATE_KEY"))
  push_vapid_subject = _optional_str(os.getenv("DEENX_PUSH_VAPID_SUBJECT"))
  push_timeout_seconds = _positive_float("DEENX_PUSH_TIMEOUT_SECONDS", "10")

  reminder_window_minutes = int(os.getenv("DEENX_REMINDER_WINDOW_MINUTES", "10"))
  if reminder_window_minutes < 0:
    raise ValueError("DEENX_REMINDER_WINDOW_MINUTES must be zero or a positive integer.")

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("DEENX_ALLOWED_ORIGINS")),
    debug=debug,
    log_level=log_level,
    log_file=_optional_str(os.getenv("DEENX_LOG_FILE")),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("DEENX_LOG_HTTP_4XX")),
    pg_dsn=_optional_str(os.getenv("DEENX_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL")),
    pg_connect_timeout=_positive_int("DEENX_PG_CONNECT_TIMEOUT", "5"),
    push_vapid_public_key=push_vapid_public_key,
    push_vapid_private_key=push_vapid_private_key,
    push_vapid_subject=push_vapid_subject,
    push_timeout_seconds=push_timeout_seconds,
    cron_secret=_optional_str(os.getenv("DEENX_CRON_SECRET")),
    aladhan_base_url=(os.getenv("DEENX_ALADHAN_BASE_URL") or "https://api.aladhan.com/v1").strip().rstrip("/"),
    timings_revalidate_seconds=_positive_int("DEENX_TIMINGS_REVALIDATE_SECONDS", "120"),
    timings_timeout_seconds=_positive_float("DEENX_TIMINGS_TIMEOUT_SECONDS", "10"),
    reminder_window_minutes=reminder_window_minutes,
    dispatch_concurrency=_positive_int("DEENX_DISPATCH_CONCURRENCY", "8"),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration."""
  # Keep database configuration isolated so migrations and offline scripts don't require unrelated env vars.
  pg_connect_timeout = _positive_int("DEENX_PG_CONNECT_TIMEOUT", "5")
  pg_dsn = _optional_str(os.getenv("DEENX_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL"))
  return DatabaseSettings(debug=_parse_bool(os.getenv("DEENX_DEBUG")), pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)
