import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

import httpx
from fastapi import FastAPI

from deenx.core.database import dispose_db_engine
from deenx.core.logging import _initialize_logging
from deenx.notifications.factory import build_timing_provider


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging and the shared timing client; release both on shutdown."""
  from deenx.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("deenx.core.lifespan")

  _initialize_logging(settings)
  logger.info("Startup complete environment=%s pg_dsn=%s push_configured=%s cron_secret_set=%s", settings.environment, _redact_dsn(settings.pg_dsn), settings.push_configured, bool(settings.cron_secret))

  # One client and provider per process so the timings cache outlives individual dispatch runs.
  client = httpx.AsyncClient(trust_env=False)
  app.state.http_client = client
  app.state.timing_provider = build_timing_provider(settings, client=client)

  try:
    yield
  finally:
    app.state.timing_provider = None
    app.state.http_client = None
    await client.aclose()
    await dispose_db_engine()
    logger.info("Shutdown complete.")


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"
