"""Conflict-aware upsert keyed by sheet provenance.

The key is ``(sheet_connection_id, sheet_row_number)``. A row whose persisted
counterpart is ``modified_locally`` is never written. Every write commits on
its own so one bad row cannot take earlier rows down with it.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Appointment, Call, Deal, Lead, Profile
from ..schemas.canonical import (
    AppointmentRecord,
    CallRecord,
    DealRecord,
    LeadRecord,
    TeamMemberRecord,
)

logger = logging.getLogger(__name__)

ENTITY_MODELS: dict[str, type] = {
    "team": Profile,
    "leads": Lead,
    "appointments": Appointment,
    "calls": Call,
    "deals": Deal,
}

INSERTED = "inserted"
UPDATED = "updated"
PROTECTED = "protected"


@dataclass
class UpsertOutcome:
    action: str  # inserted, updated, protected
    entity: Any


def entity_values(
    record,
    lead_id: uuid.UUID | None = None,
    setter_id: uuid.UUID | None = None,
    closer_id: uuid.UUID | None = None,
) -> dict[str, Any]:
    """Column values for the persisted counterpart of a canonical record."""
    if isinstance(record, TeamMemberRecord):
        return {
            "email": record.email,
            "full_name": record.full_name,
            "role": record.role,
            "active": record.active,
            "external_id": record.external_id,
            "is_placeholder": False,
        }

    values: dict[str, Any] = {
        "external_id": record.external_id,
        "custom_fields": dict(record.custom_fields),
        "setter_id": setter_id,
        "closer_id": closer_id,
    }
    if isinstance(record, LeadRecord):
        values.update(
            name=record.name, email=record.email, phone=record.phone, source=record.source,
            utm_source=record.utm_source, status=record.status, notes=record.notes,
        )
    elif isinstance(record, AppointmentRecord):
        values.update(
            lead_id=lead_id, scheduled_at=record.scheduled_at, booked_at=record.booked_at,
            status=record.status, call_outcome=record.call_outcome,
            revenue_amount=record.revenue_amount, cash_collected=record.cash_collected,
            payment_platform=record.payment_platform, recording_url=record.recording_url,
            notes=record.notes, post_set_form_filled=record.post_set_form_filled,
            closer_form_filled=record.closer_form_filled,
        )
    elif isinstance(record, CallRecord):
        values.update(
            lead_id=lead_id, call_time=record.call_time, status=record.status,
            duration_seconds=record.duration_seconds, notes=record.notes,
            recording_url=record.recording_url, post_set_form_filled=record.post_set_form_filled,
            closer_form_filled=record.closer_form_filled,
        )
    elif isinstance(record, DealRecord):
        values.update(
            lead_id=lead_id, status=record.status, revenue_amount=record.revenue_amount,
            cash_collected=record.cash_collected, cash_after_fees=record.cash_after_fees,
            fees_amount=record.fees_amount, currency=record.currency,
            payment_platform=record.payment_platform, closed_at=record.closed_at,
            recording_url=record.recording_url,
        )
    return values


class UpsertStore:
    """Persists canonical records by provenance key."""

    async def find(self, db: AsyncSession, model: type, connection_id: uuid.UUID, row_number: int):
        stmt = select(model).where(
            model.sheet_connection_id == connection_id,
            model.sheet_row_number == row_number,
        )
        return (await db.execute(stmt)).scalar_one_or_none()

    async def _match_profile(self, db: AsyncSession, values: dict[str, Any]) -> Profile | None:
        """Team rows also claim an existing profile by email, then a same-named placeholder."""
        email = values.get("email")
        if email:
            stmt = select(Profile).where(func.lower(Profile.email) == email.lower())
            profile = (await db.execute(stmt)).scalar_one_or_none()
            if profile is not None:
                return profile
        name = values.get("full_name")
        if name:
            stmt = (
                select(Profile)
                .where(func.lower(Profile.full_name) == name.lower(), Profile.is_placeholder.is_(True))
                .limit(1)
            )
            return (await db.execute(stmt)).scalar_one_or_none()
        return None

    def _apply(self, entity, values: dict[str, Any], connection_id: uuid.UUID, row_number: int) -> None:
        for key, value in values.items():
            setattr(entity, key, value)
        if entity.sheet_connection_id is None:
            entity.sheet_connection_id = connection_id
            entity.sheet_row_number = row_number
        entity.last_synced_at = datetime.now(timezone.utc)

    async def _update(self, db, entity, values, connection_id, row_number) -> UpsertOutcome:
        if entity.modified_locally:
            return UpsertOutcome(PROTECTED, entity)
        self._apply(entity, values, connection_id, row_number)
        await db.commit()
        return UpsertOutcome(UPDATED, entity)

    async def upsert(
        self,
        db: AsyncSession,
        entity_type: str,
        connection_id: uuid.UUID,
        row_number: int,
        values: dict[str, Any],
    ) -> UpsertOutcome:
        """Insert, update, or leave alone (locally modified) one persisted row.

        Raises:
            IntegrityError: If the values collide with a different row (e.g. a
                team email already owned by another profile)
        """
        model = ENTITY_MODELS[entity_type]
        existing = await self.find(db, model, connection_id, row_number)
        if existing is None and model is Profile:
            existing = await self._match_profile(db, values)
        if existing is not None:
            return await self._update(db, existing, values, connection_id, row_number)

        entity = model()
        self._apply(entity, values, connection_id, row_number)
        db.add(entity)
        try:
            await db.commit()
        except IntegrityError:
            # Lost a race with a concurrent insert of the same key
            await db.rollback()
            existing = await self.find(db, model, connection_id, row_number)
            if existing is None and model is Profile:
                existing = await self._match_profile(db, values)
            if existing is None:
                raise
            return await self._update(db, existing, values, connection_id, row_number)
        return UpsertOutcome(INSERTED, entity)
