"""Call model - dials logged by setters and closers."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin, SheetSyncMixin


class Call(UUIDMixin, TimestampMixin, SheetSyncMixin, Base):
    __tablename__ = "call"
    __table_args__ = (
        UniqueConstraint("sheet_connection_id", "sheet_row_number", name="uq_call_sheet_row"),
    )

    lead_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("lead.id", ondelete="SET NULL"), default=None, index=True
    )
    setter_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profile.id", ondelete="SET NULL"), default=None
    )
    closer_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profile.id", ondelete="SET NULL"), default=None
    )
    call_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    status: Mapped[str] = mapped_column(String(20), default="connected")  # connected, no_answer, voicemail, completed
    duration_seconds: Mapped[int] = mapped_column(Integer, default=0)
    notes: Mapped[str | None] = mapped_column(Text, default=None)
    recording_url: Mapped[str | None] = mapped_column(String(1000), default=None)
    post_set_form_filled: Mapped[bool] = mapped_column(Boolean, default=False)
    closer_form_filled: Mapped[bool] = mapped_column(Boolean, default=False)
    external_id: Mapped[str | None] = mapped_column(String(100), default=None)
    custom_fields: Mapped[dict] = mapped_column(JSON, default=dict)

    def __repr__(self) -> str:
        return f"<Call {self.status} {self.call_time}>"
