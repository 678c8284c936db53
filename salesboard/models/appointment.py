"""Appointment model - booked sales calls."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UUIDMixin, TimestampMixin, SheetSyncMixin


class Appointment(UUIDMixin, TimestampMixin, SheetSyncMixin, Base):
    __tablename__ = "appointment"
    __table_args__ = (
        UniqueConstraint("sheet_connection_id", "sheet_row_number", name="uq_appointment_sheet_row"),
    )

    lead_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("lead.id", ondelete="CASCADE"), index=True
    )
    setter_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profile.id", ondelete="SET NULL"), default=None, index=True
    )
    closer_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profile.id", ondelete="SET NULL"), default=None, index=True
    )
    scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    booked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    # scheduled, completed, no_show, cancelled, rescheduled
    status: Mapped[str] = mapped_column(String(20), default="scheduled")
    # closed, no_close, follow_up, no_show, cancelled, pending
    call_outcome: Mapped[str] = mapped_column(String(20), default="pending")
    revenue_amount: Mapped[float | None] = mapped_column(Float, default=None)
    cash_collected: Mapped[float | None] = mapped_column(Float, default=None)
    payment_platform: Mapped[str | None] = mapped_column(String(100), default=None)
    recording_url: Mapped[str | None] = mapped_column(String(1000), default=None)
    notes: Mapped[str | None] = mapped_column(Text, default=None)
    post_set_form_filled: Mapped[bool] = mapped_column(Boolean, default=False)
    closer_form_filled: Mapped[bool] = mapped_column(Boolean, default=False)
    external_id: Mapped[str | None] = mapped_column(String(100), default=None)
    custom_fields: Mapped[dict] = mapped_column(JSON, default=dict)

    lead: Mapped["Lead"] = relationship(back_populates="appointments")  # noqa: F821

    def __repr__(self) -> str:
        return f"<Appointment {self.status} {self.scheduled_at}>"
