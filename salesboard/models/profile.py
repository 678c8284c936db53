"""Profile model - team members acting as setters, closers or admins."""

from __future__ import annotations

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin, SheetSyncMixin


class Profile(UUIDMixin, TimestampMixin, SheetSyncMixin, Base):
    __tablename__ = "profile"
    __table_args__ = (
        UniqueConstraint("sheet_connection_id", "sheet_row_number", name="uq_profile_sheet_row"),
    )

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    full_name: Mapped[str | None] = mapped_column(String(200), default=None, index=True)
    role: Mapped[str] = mapped_column(String(20), default="setter")  # setter, closer, admin
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_placeholder: Mapped[bool] = mapped_column(Boolean, default=False)
    external_id: Mapped[str | None] = mapped_column(String(100), default=None)

    def __repr__(self) -> str:
        return f"<Profile {self.full_name or self.email!r} ({self.role})>"
