"""Stored Google OAuth credential, one per user."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin


class SheetCredential(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "sheet_credential"

    user_id: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    access_token: Mapped[str] = mapped_column(Text)
    refresh_token: Mapped[str] = mapped_column(Text)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    scope: Mapped[str] = mapped_column(String(500), default="")

    def __repr__(self) -> str:
        # Token values never appear in reprs or logs.
        return f"<SheetCredential user={self.user_id!r} expires_at={self.expires_at}>"
