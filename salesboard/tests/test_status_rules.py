"""Tests for free-text status normalization."""

from __future__ import annotations

import pytest

from salesboard.sync import status_rules


@pytest.mark.parametrize("raw", ["No Show", "no-show", "DNS", "did not show", "Noshow", "didn't show up"])
def test_no_show_variants(raw):
    assert status_rules.normalize_call_outcome(raw) == "no_show"
    assert status_rules.normalize_appointment_status(raw) == "no_show"


@pytest.mark.parametrize("raw", ["Closed", "won", "WON!", "Sold", "closed - paid in full"])
def test_closed_variants(raw):
    assert status_rules.normalize_call_outcome(raw) == "closed"


@pytest.mark.parametrize("raw,expected", [
    ("No Close", "no_close"),
    ("didn't close", "no_close"),
    ("Follow up next week", "follow_up"),
    ("Cancelled", "cancelled"),
    ("", "pending"),
    (None, "pending"),
    ("something odd", "pending"),
])
def test_call_outcomes(raw, expected):
    assert status_rules.normalize_call_outcome(raw) == expected


@pytest.mark.parametrize("raw,expected", [
    ("Showed", "completed"),
    ("Rescheduled", "rescheduled"),
    ("canceled by lead", "cancelled"),
    ("Booked", "scheduled"),
    ("", "scheduled"),
])
def test_appointment_statuses(raw, expected):
    assert status_rules.normalize_appointment_status(raw) == expected


@pytest.mark.parametrize("raw,expected", [
    ("Qualified", "qualified"),
    ("Not Qualified", "unqualified"),
    ("DQ - disqualified", "unqualified"),
    ("Contacted", "contacted"),
    ("", "new"),
])
def test_lead_statuses(raw, expected):
    assert status_rules.normalize_lead_status(raw) == expected


@pytest.mark.parametrize("raw,expected", [
    ("Refunded", "refunded"),
    ("Chargeback", "chargeback"),
    ("Lost", "lost"),
    ("Closed Won", "won"),
    ("", "pending"),
])
def test_deal_statuses(raw, expected):
    assert status_rules.normalize_deal_status(raw) == expected


@pytest.mark.parametrize("raw,expected", [
    ("No Answer", "no_answer"),
    ("left VM", "voicemail"),
    ("Completed", "completed"),
    ("", "connected"),
])
def test_call_statuses(raw, expected):
    assert status_rules.normalize_call_status(raw) == expected


@pytest.mark.parametrize("raw,expected", [
    ("Closer", "closer"),
    ("Sales Manager", "admin"),
    ("Appointment Setter", "setter"),
    (None, "setter"),
])
def test_roles(raw, expected):
    assert status_rules.normalize_role(raw) == expected


@pytest.mark.parametrize("raw,expected", [
    ("FB ads", "social_media"),
    ("Instagram", "social_media"),
    ("Referral", "referral"),
    ("Website", "website"),
    ("Webinar", "event"),
    ("Cold outreach", "cold_call"),
    ("figma", "other"),
])
def test_lead_sources(raw, expected):
    assert status_rules.normalize_lead_source(raw) == expected


def test_normalization_is_deterministic():
    values = ["No Show", "Closed", "follow up", "", "garbage"]
    first = [status_rules.normalize_call_outcome(v) for v in values]
    assert first == [status_rules.normalize_call_outcome(v) for v in values]
    assert set(first) <= set(status_rules.CALL_OUTCOMES)
