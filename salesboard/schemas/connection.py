"""Sheet connection request/response schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, field_validator

from .mapping import ColumnMapping


class ConnectionCreate(BaseModel):
    sheet_url: str
    sheet_type: str
    sheet_name: str | None = None
    mappings: list[ColumnMapping] = []

    @field_validator("sheet_type")
    @classmethod
    def _known_type(cls, value: str) -> str:
        from ..models import SHEET_TYPES

        value = value.strip().lower()
        if value not in SHEET_TYPES:
            raise ValueError(f"sheet_type must be one of {', '.join(SHEET_TYPES)}")
        return value


class MappingsUpdate(BaseModel):
    mappings: list[ColumnMapping]


class ConnectionOut(BaseModel):
    id: str
    sheet_url: str
    spreadsheet_id: str
    gid: str | None = None
    sheet_name: str | None = None
    sheet_type: str
    mappings: list[ColumnMapping] = []
    is_active: bool = True
    last_synced_at: datetime | None = None


class CredentialStatus(BaseModel):
    """Non-sensitive credential projection; token values never leave the server."""

    id: str
    user_id: str
    expires_at: datetime
    created_at: datetime | None = None
    updated_at: datetime | None = None
    is_valid: bool


class OAuthCallback(BaseModel):
    code: str
    state: str | None = None


class WriteBackRequest(BaseModel):
    connection_id: uuid.UUID
    operation: str  # insert, update, delete
    source_row_number: int | None = None
    entity_id: uuid.UUID | None = None
    data: dict = {}
