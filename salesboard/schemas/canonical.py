"""Canonical record shapes produced from raw sheet rows.

One model per entity type, discriminated on ``entity_type``. Anything a mapping
routes to ``custom`` lands in ``custom_fields``; every other field is typed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class RawRow(BaseModel):
    """One sheet row keyed by header, with its 1-based sheet row number."""

    values: dict[str, str]
    row_number: int

    def get(self, column: str, default: str = "") -> str:
        return self.values.get(column, default)


class Skip(BaseModel):
    reason: str
    row_number: int
    deliberate: bool = False
    field: str | None = None


class _CanonicalBase(BaseModel):
    external_id: str | None = None
    source_row_number: int
    custom_fields: dict[str, str] = {}
    is_deleted: bool = False

    @property
    def has_identity(self) -> bool:
        return bool(getattr(self, "name", None) or getattr(self, "email", None))


class TeamMemberRecord(_CanonicalBase):
    entity_type: Literal["team"] = "team"
    email: str | None = None
    full_name: str | None = None
    role: str = "setter"
    active: bool = True

    @property
    def has_identity(self) -> bool:
        return bool(self.email)


class LeadRecord(_CanonicalBase):
    entity_type: Literal["leads"] = "leads"
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    source: str = "other"
    utm_source: str | None = None
    status: str = "new"
    notes: str | None = None
    setter_name: str | None = None
    closer_name: str | None = None


class AppointmentRecord(_CanonicalBase):
    entity_type: Literal["appointments"] = "appointments"
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    scheduled_at: datetime | None = None
    booked_at: datetime | None = None
    status: str = "scheduled"
    call_outcome: str = "pending"
    setter_name: str | None = None
    closer_name: str | None = None
    revenue_amount: float | None = None
    cash_collected: float | None = None
    payment_platform: str | None = None
    recording_url: str | None = None
    notes: str | None = None
    post_set_form_filled: bool = False
    closer_form_filled: bool = False


class CallRecord(_CanonicalBase):
    entity_type: Literal["calls"] = "calls"
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    call_time: datetime | None = None
    status: str = "connected"
    duration_seconds: int = 0
    notes: str | None = None
    recording_url: str | None = None
    setter_name: str | None = None
    closer_name: str | None = None
    post_set_form_filled: bool = False
    closer_form_filled: bool = False


class DealRecord(_CanonicalBase):
    entity_type: Literal["deals"] = "deals"
    name: str | None = None
    email: str | None = None
    status: str = "pending"
    revenue_amount: float = 0.0
    cash_collected: float = 0.0
    cash_after_fees: float | None = None
    fees_amount: float = 0.0
    currency: str = "USD"
    payment_platform: str | None = None
    closed_at: datetime | None = None
    recording_url: str | None = None
    setter_name: str | None = None
    closer_name: str | None = None


CanonicalRecord = Annotated[
    Union[TeamMemberRecord, LeadRecord, AppointmentRecord, CallRecord, DealRecord],
    Field(discriminator="entity_type"),
]

RECORD_TYPES: dict[str, type[_CanonicalBase]] = {
    "team": TeamMemberRecord,
    "leads": LeadRecord,
    "appointments": AppointmentRecord,
    "calls": CallRecord,
    "deals": DealRecord,
}
