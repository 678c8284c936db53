"""Salesboard configuration via pydantic-settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class SalesboardSettings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///salesboard.db"
    echo_sql: bool = False
    app_title: str = "Salesboard"

    # Google OAuth (authenticated sheet access)
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = "http://localhost:8030/api/credentials/callback"
    google_scopes: str = "https://www.googleapis.com/auth/spreadsheets.readonly"
    google_auth_url: str = "https://accounts.google.com/o/oauth2/v2/auth"
    google_token_url: str = "https://oauth2.googleapis.com/token"
    sheets_api_base: str = "https://sheets.googleapis.com/v4/spreadsheets"
    sheets_export_base: str = "https://docs.google.com/spreadsheets/d"

    # Network behaviour
    http_timeout_seconds: float = 30.0
    token_expiry_margin_seconds: int = 60
    retry_max_attempts: int = 2
    retry_backoff_seconds: float = 1.0
    slow_warning_seconds: float = 10.0

    # Sync
    sync_max_concurrency: int = 4
    auto_sync_enabled: bool = False
    auto_sync_interval_seconds: int = 900
    preview_max_rows: int = 5
    analysis_sample_rows: int = 3
    placeholder_email_domain: str = "placeholder.salesboard.internal"

    # Mapping suggestions
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    suggestion_timeout_seconds: float = 45.0

    # API access: comma-separated user_id:token pairs
    api_tokens: str = ""
    scheduler_secret: str = ""
    scheduler_header: str = "X-Scheduler-Secret"

    model_config = {"env_prefix": "SB_", "env_file": ".env", "extra": "ignore"}

    @property
    def google_scope_list(self) -> list[str]:
        return [s for s in self.google_scopes.split() if s]

    @property
    def api_tokens_map(self) -> dict[str, str]:
        """Parse comma-separated user_id:token pairs into token -> user_id."""
        mapping: dict[str, str] = {}
        if not self.api_tokens.strip():
            return mapping

        for item in self.api_tokens.split(","):
            pair = item.strip()
            if not pair or ":" not in pair:
                continue
            user_id, token = pair.split(":", 1)
            user_id = user_id.strip()
            token = token.strip()
            if user_id and token:
                mapping[token] = user_id
        return mapping


settings = SalesboardSettings()
