"""Base model classes and mixins for Salesboard models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class UUIDMixin:
    """Adds a UUID primary key."""

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )


class TimestampMixin:
    """Adds created_at / updated_at columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class SheetSyncMixin:
    """Adds sheet provenance columns.

    ``(sheet_connection_id, sheet_row_number)`` is the reconciliation key; each
    table declares the matching unique constraint. ``modified_locally`` is set by
    the write-back collaborator and blocks sync overwrites until cleared.
    """

    sheet_connection_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("sheet_connection.id", ondelete="SET NULL"),
        default=None,
        index=True,
    )
    sheet_row_number: Mapped[int | None] = mapped_column(Integer, default=None)
    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    modified_locally: Mapped[bool] = mapped_column(Boolean, default=False)

    @property
    def sync_metadata(self) -> dict:
        return {
            "connection_id": str(self.sheet_connection_id) if self.sheet_connection_id else None,
            "source_row_number": self.sheet_row_number,
            "last_synced_at": self.last_synced_at.isoformat() if self.last_synced_at else None,
            "modified_locally": bool(self.modified_locally),
        }
