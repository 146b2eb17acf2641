from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI, Header, Query, Request, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__, storage
from .auth import AuthGate
from .config import load_settings
from .errors import LogVaultError, MethodError, StorageError, ValidationError
from .filters import QueryFilterBuilder
from .pipeline import ingest_record, retrieve_records
from .status import get_status
from .tenants import TenantRegistry
from .validation import RecordValidator

logger = logging.getLogger(__name__)


def create_app(registry: Optional[TenantRegistry] = None) -> FastAPI:
  """
  Build the HTTP application.

  The tenant registry is built once and shared read-only by every request.
  When none is passed it is loaded from LOGVAULT_TENANT_SECRETS at startup.
  """

  @asynccontextmanager
  async def lifespan(app: FastAPI):
    if getattr(app.state, "auth_gate", None) is None:
      app.state.auth_gate = AuthGate(load_settings().tenant_registry())
    yield

  app = FastAPI(title="LogVault", version=__version__, lifespan=lifespan)
  app.state.auth_gate = AuthGate(registry) if registry is not None else None
  app.state.validator = RecordValidator()
  app.state.filter_builder = QueryFilterBuilder()

  app.add_exception_handler(LogVaultError, _handle_logvault_error)
  app.add_exception_handler(StarletteHTTPException, _handle_http_error)

  @app.get("/status")
  async def status_endpoint() -> Dict[str, object]:
    """
    Lightweight liveness endpoint; requires no credentials.
    """
    return get_status()

  @app.post("/logdata", status_code=status.HTTP_201_CREATED)
  @app.post("/logdata/", status_code=status.HTTP_201_CREATED, include_in_schema=False)
  async def ingest_log(
    request: Request,
    authorization: Optional[str] = Header(None),
    x_tenant_id: Optional[str] = Header(None, alias="X-Tenant-ID"),
  ) -> JSONResponse:
    """
    Store one log record for the authenticated tenant.

    The tenant comes from the X-Tenant-ID header when present, otherwise from
    the body's `tenant` field; when both are sent they must agree.
    """
    raw = await request.body()
    try:
      payload = json.loads(raw) if raw else None
    except ValueError:
      payload = _INVALID_BODY
    # Only a JSON object can carry a record or a body tenant.
    if not isinstance(payload, dict):
      payload = _INVALID_BODY

    state = request.app.state
    gate = state.auth_gate

    def run() -> int:
      # Credentials are checked before the body so an unauthenticated caller
      # gets 401 even when the body is also broken.
      if payload is _INVALID_BODY:
        gate.require_credential(authorization)
        raise ValidationError("Invalid request body", reason=ValidationError.INVALID_BODY)
      return ingest_record(
        gate,
        state.validator,
        storage.get_storage(),
        authorization,
        x_tenant_id,
        payload,
      )

    record_id = await run_in_threadpool(run)
    return JSONResponse(
      status_code=status.HTTP_201_CREATED,
      content={"message": "Log data saved successfully", "id": record_id},
    )

  @app.get("/getdata")
  async def get_logs(
    request: Request,
    authorization: Optional[str] = Header(None),
    tenant: Optional[str] = Query(None, description="Tenant to read; must match the credential"),
    system: Optional[str] = Query(None, description="Exact system filter"),
    user: Optional[str] = Query(None, description="Exact user filter"),
    module: Optional[str] = Query(None, description="Exact module filter"),
    task: Optional[str] = Query(None, description="Exact task filter"),
    level: Optional[str] = Query(None, description="Exact integer level; ignored when not an integer"),
    start_time: Optional[str] = Query(None, description="Inclusive lower bound (RFC3339)"),
    end_time: Optional[str] = Query(None, description="Inclusive upper bound (RFC3339)"),
    limit: Optional[str] = Query(None, description="Max records (default 100)"),
    offset: Optional[str] = Query(None, description="Records to skip (default 0)"),
  ) -> JSONResponse:
    """
    Return the tenant's records matching every supplied filter, newest first.
    """
    params = {
      "tenant": tenant,
      "system": system,
      "user": user,
      "module": module,
      "task": task,
      "level": level,
      "start_time": start_time,
      "end_time": end_time,
      "limit": limit,
      "offset": offset,
    }
    state = request.app.state
    records = await run_in_threadpool(
      retrieve_records,
      state.auth_gate,
      state.filter_builder,
      storage.get_storage(),
      authorization,
      params,
    )
    return JSONResponse(content=[r.to_json_dict() for r in records])

  return app


_INVALID_BODY = object()


async def _handle_logvault_error(request: Request, exc: LogVaultError) -> JSONResponse:
  if isinstance(exc, StorageError):
    # Driver details stay in the logs; the caller only sees the generic message.
    logger.error(
      "Storage failure on %s %s: %s",
      request.method,
      request.url.path,
      exc.message,
      exc_info=exc.__cause__ or exc,
    )
  else:
    logger.info(
      "Rejected %s %s: %s (%s)",
      request.method,
      request.url.path,
      exc.reason,
      exc.status_code,
    )
  return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
  if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
    error = MethodError("Method not allowed")
    return JSONResponse(
      status_code=error.status_code,
      content=error.to_dict(),
      headers=getattr(exc, "headers", None),
    )
  return JSONResponse(
    status_code=exc.status_code,
    content={"error": str(exc.detail)},
    headers=getattr(exc, "headers", None),
  )


app = create_app()
