"""OAuth 2.0 client for Google Sheets access.

Handles the Authorization Code flow:
1. Generate authorization URL (offline access so Google issues a refresh token)
2. Exchange the callback code for access + refresh tokens
3. Refresh the access token when it expires
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlencode

import httpx

from ..config import settings


@dataclass
class OAuthTokens:
    """Tokens returned from Google's token endpoint."""

    access_token: str
    refresh_token: str | None
    expires_in: int  # seconds
    token_type: str = "Bearer"
    scope: str = ""
    _issued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def expires_at(self) -> datetime:
        return self._issued_at + timedelta(seconds=self.expires_in)


class OAuthError(Exception):
    """OAuth-related error."""

    def __init__(self, message: str, error_code: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class GoogleOAuthClient:
    """Google OAuth client.

    Usage:
        client = GoogleOAuthClient()
        url = client.get_authorization_url(state=client.sign_state(user_id))
        tokens = await client.exchange_code(code)
        fresh = await client.refresh_tokens(tokens.refresh_token)
    """

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        redirect_uri: str | None = None,
        scopes: list[str] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.client_id = client_id if client_id is not None else settings.google_client_id
        self.client_secret = client_secret if client_secret is not None else settings.google_client_secret
        self.redirect_uri = redirect_uri or settings.google_redirect_uri
        self.scopes = scopes or settings.google_scope_list
        self.token_url = settings.google_token_url
        self._http = http_client

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def sign_state(self, user_id: str) -> str:
        """Stateless CSRF token binding the consent round-trip to a user."""
        nonce = secrets.token_urlsafe(16)
        return f"{nonce}.{self._state_digest(user_id, nonce)}"

    def verify_state(self, user_id: str, state: str) -> bool:
        nonce, _, digest = (state or "").partition(".")
        if not nonce or not digest:
            return False
        return hmac.compare_digest(digest, self._state_digest(user_id, nonce))

    def _state_digest(self, user_id: str, nonce: str) -> str:
        key = (self.client_secret or "salesboard").encode()
        return hmac.new(key, f"{user_id}:{nonce}".encode(), hashlib.sha256).hexdigest()[:32]

    def get_authorization_url(self, state: str) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.scopes),
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{settings.google_auth_url}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> OAuthTokens:
        """Exchange an authorization code for tokens.

        Raises:
            OAuthError: If the exchange fails
        """
        data = await self._post_token({
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": self.redirect_uri,
        }, "exchange_failed")
        tokens = self._parse_token_response(data)
        if not tokens.refresh_token:
            raise OAuthError(
                "Google did not return a refresh token; revoke access and reconnect",
                error_code="missing_refresh_token",
            )
        return tokens

    async def refresh_tokens(self, refresh_token: str) -> OAuthTokens:
        """Refresh the access token. Google usually omits a new refresh token.

        Raises:
            OAuthError: If refresh fails
        """
        data = await self._post_token({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }, "refresh_failed")
        tokens = self._parse_token_response(data)
        if not tokens.refresh_token:
            tokens.refresh_token = refresh_token
        return tokens

    async def _post_token(self, form: dict[str, Any], default_code: str) -> dict[str, Any]:
        try:
            if self._http is not None:
                response = await self._http.post(self.token_url, data=form)
            else:
                async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
                    response = await client.post(self.token_url, data=form)
        except httpx.HTTPError as e:
            raise OAuthError(f"Token endpoint unreachable: {e}", error_code="network_error") from e

        if response.status_code != 200:
            try:
                error_data = response.json() if response.content else {}
            except ValueError:
                error_data = None
            if not isinstance(error_data, dict):
                error_data = {"raw_response": response.text[:500]}
            raise OAuthError(
                f"Token request failed: {response.status_code}",
                error_code=error_data.get("error", default_code),
                details=error_data,
            )
        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise OAuthError(
                "Token endpoint returned an unreadable response",
                error_code="invalid_response",
                details={"raw_response": response.text[:500]},
            )
        return data

    def _parse_token_response(self, data: dict[str, Any]) -> OAuthTokens:
        try:
            return OAuthTokens(
                access_token=data["access_token"],
                refresh_token=data.get("refresh_token"),
                expires_in=int(data.get("expires_in", 3600)),
                token_type=data.get("token_type", "Bearer"),
                scope=data.get("scope", ""),
            )
        except KeyError as e:
            raise OAuthError(
                f"Invalid token response: missing {e}",
                error_code="invalid_response",
                details={"response_keys": list(data.keys())},
            ) from e
        except (TypeError, ValueError) as e:
            raise OAuthError(
                f"Invalid token response: {e}",
                error_code="invalid_response",
            ) from e
