"""Deal model - closed revenue, imported or derived from appointments."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin, SheetSyncMixin


class Deal(UUIDMixin, TimestampMixin, SheetSyncMixin, Base):
    __tablename__ = "deal"
    __table_args__ = (
        UniqueConstraint("sheet_connection_id", "sheet_row_number", name="uq_deal_sheet_row"),
    )

    lead_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("lead.id", ondelete="SET NULL"), default=None, index=True
    )
    appointment_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("appointment.id", ondelete="SET NULL"), default=None, unique=True
    )
    closer_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profile.id", ondelete="SET NULL"), default=None, index=True
    )
    setter_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profile.id", ondelete="SET NULL"), default=None, index=True
    )
    status: Mapped[str] = mapped_column(String(20), default="pending")  # pending, won, lost, refunded, chargeback
    revenue_amount: Mapped[float] = mapped_column(Float, default=0.0)
    cash_collected: Mapped[float] = mapped_column(Float, default=0.0)
    cash_after_fees: Mapped[float | None] = mapped_column(Float, default=None)
    fees_amount: Mapped[float] = mapped_column(Float, default=0.0)
    currency: Mapped[str] = mapped_column(String(10), default="USD")
    payment_platform: Mapped[str | None] = mapped_column(String(100), default=None)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    recording_url: Mapped[str | None] = mapped_column(String(1000), default=None)
    external_id: Mapped[str | None] = mapped_column(String(100), default=None)
    custom_fields: Mapped[dict] = mapped_column(JSON, default=dict)

    def __repr__(self) -> str:
        return f"<Deal {self.status} {self.revenue_amount}>"
