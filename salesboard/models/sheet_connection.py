"""Sheet connection model - one spreadsheet tab bound to one entity type."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin

SHEET_TYPES = ("team", "leads", "appointments", "calls", "deals")


class SheetConnection(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "sheet_connection"

    user_id: Mapped[str] = mapped_column(String(100), index=True)
    sheet_url: Mapped[str] = mapped_column(String(1000))
    spreadsheet_id: Mapped[str] = mapped_column(String(200))
    gid: Mapped[str | None] = mapped_column(String(50), default=None)
    sheet_name: Mapped[str | None] = mapped_column(String(200), default=None)
    sheet_type: Mapped[str] = mapped_column(String(20))  # team, leads, appointments, calls, deals
    mappings: Mapped[list] = mapped_column(JSON, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    def __repr__(self) -> str:
        return f"<SheetConnection {self.sheet_type} {self.spreadsheet_id!r}>"
