"""Derived deals: a closed appointment with money attached yields one deal."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.appointment import Appointment
from ..models.deal import Deal
from ..schemas.canonical import AppointmentRecord

logger = logging.getLogger(__name__)


def should_derive_deal(record: AppointmentRecord) -> bool:
    if record.call_outcome != "closed":
        return False
    return (record.revenue_amount or 0) > 0 or (record.cash_collected or 0) > 0


async def derive_deal(db: AsyncSession, appointment: Appointment, record: AppointmentRecord) -> str | None:
    """Create or update the appointment's deal.

    Returns "created", "updated", "protected" (deal edited locally), or None
    when the rule does not fire.
    """
    if not should_derive_deal(record):
        return None

    stmt = select(Deal).where(Deal.appointment_id == appointment.id)
    deal = (await db.execute(stmt)).scalar_one_or_none()
    if deal is not None and deal.modified_locally:
        return "protected"

    action = "updated"
    if deal is None:
        deal = Deal(appointment_id=appointment.id)
        db.add(deal)
        action = "created"

    deal.lead_id = appointment.lead_id
    deal.closer_id = appointment.closer_id
    deal.setter_id = appointment.setter_id
    deal.status = "won"
    deal.revenue_amount = record.revenue_amount or 0.0
    deal.cash_collected = record.cash_collected or 0.0
    deal.payment_platform = record.payment_platform
    deal.recording_url = record.recording_url
    deal.closed_at = record.scheduled_at or deal.closed_at
    deal.sheet_connection_id = appointment.sheet_connection_id
    deal.sheet_row_number = appointment.sheet_row_number
    deal.last_synced_at = datetime.now(timezone.utc)
    await db.commit()

    logger.debug("Deal %s for appointment %s", action, appointment.id)
    return action
