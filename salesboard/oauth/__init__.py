"""Google OAuth client and stored-credential management."""

from .client import GoogleOAuthClient, OAuthError, OAuthTokens
from .manager import CredentialManager

__all__ = ["GoogleOAuthClient", "OAuthError", "OAuthTokens", "CredentialManager"]
