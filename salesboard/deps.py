"""FastAPI dependencies: caller identity and the shared sync engine."""

from __future__ import annotations

import hmac

from fastapi import Request

from .config import settings
from .database import async_session_factory
from .errors import ErrorCode, SalesboardError
from .oauth.manager import CredentialManager
from .sync.sync_engine import SyncEngine

_credential_manager: CredentialManager | None = None
_sync_engine: SyncEngine | None = None


def _bearer_token(request: Request) -> str:
    header = request.headers.get("authorization", "").strip()
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return ""


async def get_current_user(request: Request) -> str:
    """Resolve the bearer token to a user id."""
    provided = _bearer_token(request)
    if not provided:
        raise SalesboardError("Authentication required", code=ErrorCode.AUTH_REQUIRED, status_code=401)

    for token, user_id in settings.api_tokens_map.items():
        if hmac.compare_digest(provided, token):
            return user_id
    raise SalesboardError("Session expired or token not recognized", code=ErrorCode.SESSION_EXPIRED, status_code=401)


async def require_scheduler(request: Request) -> None:
    """Guard for the system-wide scheduled sync."""
    expected = settings.scheduler_secret
    provided = request.headers.get(settings.scheduler_header, "").strip()
    if not expected or not provided or not hmac.compare_digest(provided, expected):
        raise SalesboardError("Scheduler authorization required", code=ErrorCode.ACCESS_DENIED, status_code=403)


def get_credential_manager() -> CredentialManager:
    global _credential_manager
    if _credential_manager is None:
        _credential_manager = CredentialManager(async_session_factory)
    return _credential_manager


def get_sync_engine() -> SyncEngine:
    global _sync_engine
    if _sync_engine is None:
        _sync_engine = SyncEngine(async_session_factory, get_credential_manager())
    return _sync_engine
