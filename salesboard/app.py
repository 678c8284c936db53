"""FastAPI application factory for Salesboard."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import settings
from .errors import ErrorCode, SalesboardError
from .oauth.client import OAuthError

logger = logging.getLogger(__name__)

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.AUTH_REQUIRED: 401,
    ErrorCode.SESSION_EXPIRED: 401,
    ErrorCode.ACCESS_DENIED: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INVALID_LOCATOR: 400,
    ErrorCode.EMPTY_SOURCE: 422,
    ErrorCode.MALFORMED_RESPONSE: 502,
    ErrorCode.NETWORK_ERROR: 503,
    ErrorCode.MAPPING_SUGGESTION_UNAVAILABLE: 503,
    ErrorCode.PERSISTENCE_ERROR: 500,
    ErrorCode.REFRESH_FAILED: 401,
    ErrorCode.CONFIG_NOT_FOUND: 404,
    ErrorCode.SYNC_IN_PROGRESS: 409,
    ErrorCode.INVALID_MAPPING: 422,
    ErrorCode.INVALID_ROW: 422,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Auto-create tables for SQLite (local dev); PostgreSQL uses Alembic migrations
    if "sqlite" in settings.database_url:
        from .database import engine
        from .models import Base
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    worker = None
    if settings.auto_sync_enabled:
        from .deps import get_sync_engine
        from .worker import AutoSyncWorker
        worker = AutoSyncWorker(get_sync_engine())
        worker.start()
    yield
    if worker is not None:
        await worker.stop()


app = FastAPI(title=settings.app_title, lifespan=lifespan)


@app.exception_handler(SalesboardError)
async def salesboard_error_handler(request: Request, exc: SalesboardError):
    body = exc.to_dict()
    body["request_id"] = request.headers.get("x-request-id")
    return JSONResponse(status_code=STATUS_BY_CODE.get(exc.code, 500), content=body)


@app.exception_handler(OAuthError)
async def oauth_error_handler(request: Request, exc: OAuthError):
    logger.warning("OAuth error: %s (%s)", exc, exc.error_code)
    return JSONResponse(
        status_code=400,
        content={"error": str(exc), "code": exc.error_code or "oauth_error", "remediation": ""},
    )


# Import and register routers
from .routers import connections, credentials, health, sheets, sync, write_back  # noqa: E402

app.include_router(sync.router)
app.include_router(sheets.router)
app.include_router(connections.router)
app.include_router(credentials.router)
app.include_router(write_back.router)
app.include_router(health.router)
