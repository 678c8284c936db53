"""Sync operation audit log - one row per connection sync."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin


class SyncOperation(UUIDMixin, Base):
    __tablename__ = "sync_operation"

    user_id: Mapped[str] = mapped_column(String(100), index=True)
    sheet_connection_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("sheet_connection.id", ondelete="CASCADE"), default=None, index=True
    )
    operation_type: Mapped[str] = mapped_column(String(30), default="pull")  # pull, live_read
    records_affected: Mapped[int] = mapped_column(Integer, default=0)
    records_failed: Mapped[int] = mapped_column(Integer, default=0)
    errors: Mapped[list | None] = mapped_column(JSON, default=None)
    status: Mapped[str] = mapped_column(String(20), default="running")  # running, completed, failed
    error_code: Mapped[str | None] = mapped_column(String(50), default=None)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    def __repr__(self) -> str:
        return f"<SyncOperation {self.operation_type} {self.status}>"
