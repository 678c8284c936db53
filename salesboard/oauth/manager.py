"""Credential manager - stored Google tokens with automatic refresh.

A failed refresh is never fatal: ``get_valid_token`` returns None and the
reader falls back to the public CSV export.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import settings
from ..errors import RefreshFailedError
from ..models.credential import SheetCredential
from ..schemas.connection import CredentialStatus
from .client import GoogleOAuthClient, OAuthError, OAuthTokens

logger = logging.getLogger(__name__)


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; stored values are UTC.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class CredentialManager:
    """Holds and refreshes per-user Google credentials.

    Usage:
        manager = CredentialManager(async_session_factory)
        token = await manager.get_valid_token(user_id)  # None -> use CSV export
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        oauth_client: GoogleOAuthClient | None = None,
        margin_seconds: int | None = None,
    ):
        self.session_factory = session_factory
        self.oauth_client = oauth_client or GoogleOAuthClient()
        self.margin = timedelta(
            seconds=settings.token_expiry_margin_seconds if margin_seconds is None else margin_seconds
        )
        self._refresh_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def is_valid(self, credential: SheetCredential, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return _aware(credential.expires_at) > now + self.margin

    async def get_credential(self, user_id: str) -> SheetCredential | None:
        async with self.session_factory() as db:
            stmt = select(SheetCredential).where(SheetCredential.user_id == user_id)
            return (await db.execute(stmt)).scalar_one_or_none()

    async def get_valid_token(self, user_id: str) -> str | None:
        """Return a usable access token, refreshing if needed, else None."""
        credential = await self.get_credential(user_id)
        if credential is None:
            return None
        if self.is_valid(credential):
            return credential.access_token

        lock = self._refresh_locks.get(user_id)
        if lock is None:
            lock = self._refresh_locks[user_id] = asyncio.Lock()
        async with lock:
            # Another sync may have refreshed while this one waited.
            credential = await self.get_credential(user_id)
            if credential is None:
                return None
            if self.is_valid(credential):
                return credential.access_token
            try:
                return await self.refresh(credential)
            except RefreshFailedError as e:
                logger.warning("Token refresh failed for user %s (%s); using public export", user_id, e.message)
                return None

    async def refresh(self, credential: SheetCredential) -> str:
        """Refresh and persist a new access token.

        Raises:
            RefreshFailedError: If Google rejects the refresh or OAuth is unconfigured
        """
        if not self.oauth_client.configured:
            raise RefreshFailedError("Google OAuth client is not configured")
        try:
            tokens = await self.oauth_client.refresh_tokens(credential.refresh_token)
        except OAuthError as e:
            raise RefreshFailedError(
                f"Token refresh failed: {e.error_code or e}", details=str(e.details) if e.details else None,
            ) from e

        await self.store_tokens(credential.user_id, tokens)
        logger.info("Refreshed Google token for user %s", credential.user_id)
        return tokens.access_token

    async def store_tokens(self, user_id: str, tokens: OAuthTokens) -> SheetCredential:
        """Upsert the user's credential; one live credential per user."""
        async with self.session_factory() as db:
            stmt = select(SheetCredential).where(SheetCredential.user_id == user_id)
            credential = (await db.execute(stmt)).scalar_one_or_none()
            if credential is None:
                credential = SheetCredential(
                    user_id=user_id,
                    access_token=tokens.access_token,
                    refresh_token=tokens.refresh_token or "",
                    expires_at=tokens.expires_at,
                    scope=tokens.scope,
                )
                db.add(credential)
            else:
                credential.access_token = tokens.access_token
                if tokens.refresh_token:
                    credential.refresh_token = tokens.refresh_token
                credential.expires_at = tokens.expires_at
                if tokens.scope:
                    credential.scope = tokens.scope
            await db.commit()
            await db.refresh(credential)
            return credential

    async def complete_authorization(self, user_id: str, code: str, state: str | None) -> SheetCredential:
        """Verify the callback state, exchange the code, and store the tokens."""
        if state is not None and not self.oauth_client.verify_state(user_id, state):
            raise OAuthError("State mismatch - possible CSRF attack", error_code="state_mismatch")
        tokens = await self.oauth_client.exchange_code(code)
        return await self.store_tokens(user_id, tokens)

    async def status(self, user_id: str) -> CredentialStatus | None:
        credential = await self.get_credential(user_id)
        if credential is None:
            return None
        return CredentialStatus(
            id=str(credential.id),
            user_id=credential.user_id,
            expires_at=_aware(credential.expires_at),
            created_at=credential.created_at,
            updated_at=credential.updated_at,
            is_valid=self.is_valid(credential),
        )
