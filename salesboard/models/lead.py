"""Lead model."""

from __future__ import annotations

import uuid

from sqlalchemy import JSON, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UUIDMixin, TimestampMixin, SheetSyncMixin


class Lead(UUIDMixin, TimestampMixin, SheetSyncMixin, Base):
    __tablename__ = "lead"
    __table_args__ = (
        UniqueConstraint("sheet_connection_id", "sheet_row_number", name="uq_lead_sheet_row"),
    )

    name: Mapped[str | None] = mapped_column(String(200), default=None)
    email: Mapped[str | None] = mapped_column(String(255), default=None, index=True)
    phone: Mapped[str | None] = mapped_column(String(50), default=None)
    source: Mapped[str] = mapped_column(String(50), default="other")
    utm_source: Mapped[str | None] = mapped_column(String(200), default=None)
    status: Mapped[str] = mapped_column(String(20), default="new")  # new, contacted, qualified, unqualified
    notes: Mapped[str | None] = mapped_column(Text, default=None)
    setter_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profile.id", ondelete="SET NULL"), default=None, index=True
    )
    closer_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profile.id", ondelete="SET NULL"), default=None, index=True
    )
    external_id: Mapped[str | None] = mapped_column(String(100), default=None)
    custom_fields: Mapped[dict] = mapped_column(JSON, default=dict)

    appointments: Mapped[list["Appointment"]] = relationship(  # noqa: F821
        back_populates="lead", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Lead {self.name or self.email!r}>"
