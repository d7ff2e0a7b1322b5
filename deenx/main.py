from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from deenx import __version__
from deenx.api.routes import cron, push
from deenx.config import get_settings
from deenx.core.exceptions import dispatch_unavailable_exception_handler, global_exception_handler, http_exception_handler, request_validation_exception_handler
from deenx.core.lifespan import lifespan
from deenx.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from deenx.notifications.contracts import DispatchUnavailableError

settings = get_settings()

app = FastAPI(title="DeenX Reminders", version=__version__, lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

if settings.allowed_origins:
  app.add_middleware(CORSMiddleware, allow_origins=settings.allowed_origins, allow_credentials=False, allow_methods=["GET", "POST", "OPTIONS"], allow_headers=["content-type"], expose_headers=["content-length"])

app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(DispatchUnavailableError, dispatch_unavailable_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": __version__}


app.include_router(push.router, prefix="/api/push", tags=["push"])
app.include_router(cron.router, prefix="/api/cron", tags=["cron"])
