"""Tests for deals derived from closed appointments."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from salesboard.models import Appointment, Deal, Lead, Profile
from salesboard.schemas.canonical import AppointmentRecord
from salesboard.sync.deriver import derive_deal, should_derive_deal


def _record(**kwargs) -> AppointmentRecord:
    data = {"name": "Jane", "source_row_number": 2, "call_outcome": "closed", "revenue_amount": 5000.0}
    data.update(kwargs)
    return AppointmentRecord(**data)


@pytest.mark.parametrize("outcome,revenue,cash,expected", [
    ("closed", 5000.0, None, True),
    ("closed", None, 1000.0, True),
    ("closed", 0.0, 0.0, False),
    ("closed", None, None, False),
    ("no_close", 5000.0, 5000.0, False),
    ("follow_up", 5000.0, None, False),
])
def test_should_derive_deal(outcome, revenue, cash, expected):
    record = _record(call_outcome=outcome, revenue_amount=revenue, cash_collected=cash)
    assert should_derive_deal(record) is expected


@pytest.fixture
def appointment_factory(db, make_connection):
    async def _make() -> Appointment:
        connection = await make_connection("appointments")
        closer = Profile(email="cole@x.com", full_name="Cole", role="closer")
        lead = Lead(name="Jane")
        db.add_all([closer, lead])
        await db.flush()
        appointment = Appointment(
            lead_id=lead.id, closer_id=closer.id, status="completed", call_outcome="closed",
            sheet_connection_id=connection.id, sheet_row_number=2,
        )
        db.add(appointment)
        await db.commit()
        return appointment

    return _make


class TestDeriveDeal:
    @pytest.mark.asyncio
    async def test_creates_then_updates_single_deal(self, db, appointment_factory):
        appointment = await appointment_factory()
        scheduled = datetime(2024, 3, 1, 14, 30, tzinfo=timezone.utc)

        first = await derive_deal(db, appointment, _record(cash_collected=2500.0, scheduled_at=scheduled))
        second = await derive_deal(db, appointment, _record(revenue_amount=6000.0, cash_collected=3000.0))

        assert first == "created"
        assert second == "updated"
        deal = (await db.execute(select(Deal))).scalar_one()
        assert deal.appointment_id == appointment.id
        assert deal.lead_id == appointment.lead_id
        assert deal.closer_id == appointment.closer_id
        assert deal.status == "won"
        assert deal.revenue_amount == 6000.0
        assert deal.cash_collected == 3000.0
        assert deal.sheet_connection_id == appointment.sheet_connection_id
        assert deal.sheet_row_number == 2

    @pytest.mark.asyncio
    async def test_rule_not_met(self, db, appointment_factory):
        appointment = await appointment_factory()
        assert await derive_deal(db, appointment, _record(call_outcome="no_close")) is None
        assert (await db.execute(select(Deal))).scalar_one_or_none() is None

    @pytest.mark.asyncio
    async def test_locally_modified_deal_is_protected(self, db, appointment_factory):
        appointment = await appointment_factory()
        await derive_deal(db, appointment, _record())
        deal = (await db.execute(select(Deal))).scalar_one()
        deal.modified_locally = True
        deal.revenue_amount = 4200.0
        await db.commit()

        assert await derive_deal(db, appointment, _record(revenue_amount=9999.0)) == "protected"
        refreshed = (await db.execute(select(Deal))).scalar_one()
        assert refreshed.revenue_amount == 4200.0
