"""Tests for sheet row -> canonical record mapping."""

from __future__ import annotations

from datetime import datetime, timezone

from salesboard.schemas.canonical import (
    AppointmentRecord,
    CallRecord,
    DealRecord,
    LeadRecord,
    RawRow,
    Skip,
    TeamMemberRecord,
)
from salesboard.schemas.mapping import ColumnMapping
from salesboard.sheets.csv_tokenizer import parse_csv
from salesboard.sync import field_mapper


def _row(values: dict, row_number: int = 2) -> RawRow:
    return RawRow(values=values, row_number=row_number)


class TestAutoMappings:
    def test_exact_and_alias_matches(self):
        mappings = field_mapper.auto_mappings("leads", ["Lead Email", "Full Name", "Phone", "Favorite Color"])
        by_column = {m.source_column: m for m in mappings}
        assert by_column["Lead Email"].target_field == "email"
        assert by_column["Lead Email"].transformation == "lowercase_trim"
        assert by_column["Full Name"].target_field == "name"
        assert by_column["Phone"].target_field == "phone"
        assert by_column["Phone"].confidence == 90
        assert by_column["Favorite Color"].target_field == "custom"
        assert by_column["Favorite Color"].custom_key == "favorite_color"

    def test_matched_columns_ordered_by_field(self):
        mappings = field_mapper.auto_mappings("leads", ["Phone", "Email", "Name"])
        assert [m.target_field for m in mappings] == ["name", "email", "phone"]

    def test_split_date_and_time_combined(self):
        mappings = field_mapper.auto_mappings("appointments", ["Name", "Date", "Time"])
        by_column = {m.source_column: m for m in mappings}
        assert by_column["Date"].target_field == "scheduled_at"
        assert by_column["Date"].transformation == "combine_datetime"
        assert by_column["Date"].time_column == "Time"
        assert by_column["Time"].is_dropped

    def test_explicit_scheduled_column_wins_over_split(self):
        mappings = field_mapper.auto_mappings("appointments", ["Name", "Scheduled For", "Date"])
        scheduled = [m for m in mappings if m.target_field == "scheduled_at"]
        assert [m.source_column for m in scheduled] == ["Scheduled For"]


class TestToCanonical:
    def test_lead_auto_mapped(self):
        record = field_mapper.to_canonical("leads", _row({
            "Name": " Jane Doe ", "Email": " JANE@X.COM ", "Phone": "(555) 123-4567",
            "Lead Source": "FB ads", "Status": "Qualified", "Budget": "10k",
        }))
        assert isinstance(record, LeadRecord)
        assert record.name == "Jane Doe"
        assert record.email == "jane@x.com"
        assert record.phone == "5551234567"
        assert record.source == "social_media"
        assert record.status == "qualified"
        assert record.custom_fields == {"budget": "10k"}
        assert record.source_row_number == 2

    def test_camel_case_stored_mapping(self):
        mappings = [
            {"sourceColumn": "Client", "targetField": "name", "transformation": "trim"},
            {"sheetColumn": "Mail", "dbField": "email", "transformation": "lowercaseTrim"},
            {"sourceColumn": "Why", "targetField": "custom", "customFieldKey": "reason"},
            {"sourceColumn": "Junk", "targetField": "skip"},
        ]
        record = field_mapper.to_canonical(
            "leads", _row({"Client": "Bo ", "Mail": "BO@X.COM", "Why": "price", "Junk": "zzz"}), mappings,
        )
        assert record.name == "Bo"
        assert record.email == "bo@x.com"
        assert record.custom_fields == {"reason": "price"}

    def test_unknown_target_routed_to_custom(self):
        mappings = [
            ColumnMapping(source_column="Name", target_field="name"),
            ColumnMapping(source_column="Color", target_field="favorite_color"),
        ]
        record = field_mapper.to_canonical("leads", _row({"Name": "A", "Color": "blue"}), mappings)
        assert record.custom_fields == {"favorite_color": "blue"}

    def test_first_non_empty_value_wins(self):
        mappings = [
            ColumnMapping(source_column="Work Email", target_field="email"),
            ColumnMapping(source_column="Personal Email", target_field="email"),
        ]
        record = field_mapper.to_canonical(
            "leads", _row({"Work Email": "", "Personal Email": "me@x.com"}), mappings,
        )
        assert record.email == "me@x.com"

    def test_missing_identity_is_skipped(self):
        result = field_mapper.to_canonical("leads", _row({"Name": "", "Email": "", "Phone": "555"}, 7))
        assert isinstance(result, Skip)
        assert result.reason == field_mapper.MISSING_REQUIRED
        assert result.row_number == 7
        assert not result.deliberate

    def test_placeholder_name_counts_as_missing(self):
        mappings = [ColumnMapping(source_column="Name", target_field="name", transformation="skip_if_placeholder")]
        result = field_mapper.to_canonical("leads", _row({"Name": "In CRM"}), mappings)
        assert isinstance(result, Skip)
        assert result.reason == field_mapper.MISSING_REQUIRED

    def test_invalid_email_is_skipped(self):
        result = field_mapper.to_canonical("leads", _row({"Name": "A", "Email": "not-an-email"}))
        assert isinstance(result, Skip)
        assert result.reason == field_mapper.INVALID_EMAIL
        assert result.field == "email"

    def test_deleted_row_is_deliberate_skip(self):
        result = field_mapper.to_canonical("leads", _row({"Name": "A", "Deleted": "yes"}))
        assert isinstance(result, Skip)
        assert result.deliberate

    def test_defaults_fill_missing_fields(self):
        record = field_mapper.to_canonical("leads", _row({"Name": "A"}), defaults={"source": "Referral"})
        assert record.source == "referral"

    def test_defaults_do_not_override_values(self):
        record = field_mapper.to_canonical(
            "leads", _row({"Name": "A", "Source": "Webinar"}), defaults={"source": "Referral"},
        )
        assert record.source == "event"

    def test_appointment_with_split_datetime_and_money(self):
        record = field_mapper.to_canonical("appointments", _row({
            "Name": "Jane", "Email": "jane@x.com", "Date": "2024-03-01", "Time": "2:30 PM",
            "Setter": "Sam Setter", "Closer": "Cole Closer", "Outcome": "Closed",
            "Revenue": "$5,000", "Cash Collected": "$2,500.50", "Fathom Link": "https://fathom/1",
            "Post Set Form": "Yes",
        }))
        assert isinstance(record, AppointmentRecord)
        assert record.scheduled_at == datetime(2024, 3, 1, 14, 30, tzinfo=timezone.utc)
        assert record.call_outcome == "closed"
        assert record.status == "completed"
        assert record.revenue_amount == 5000.0
        assert record.cash_collected == 2500.5
        assert record.setter_name == "Sam Setter"
        assert record.closer_name == "Cole Closer"
        assert record.recording_url == "https://fathom/1"
        assert record.post_set_form_filled is True
        assert record.closer_form_filled is False

    def test_appointment_no_show(self):
        record = field_mapper.to_canonical("appointments", _row({"Name": "Jane", "Status": "No Show"}))
        assert record.status == "no_show"
        assert record.call_outcome == "no_show"

    def test_call_duration(self):
        record = field_mapper.to_canonical("calls", _row({"Name": "A", "Duration": "5:30", "Status": "voicemail"}))
        assert isinstance(record, CallRecord)
        assert record.duration_seconds == 330
        assert record.status == "voicemail"

    def test_deal_defaults(self):
        record = field_mapper.to_canonical("deals", _row({"Name": "A", "Deal Status": "Closed Won"}))
        assert isinstance(record, DealRecord)
        assert record.status == "won"
        assert record.revenue_amount == 0.0
        assert record.cash_collected == 0.0
        assert record.currency == "USD"

    def test_team_member_from_first_and_last_name(self):
        record = field_mapper.to_canonical("team", _row({
            "First Name": "Cole", "Last Name": "Closer", "Email": "Cole@X.com", "Role": "Closer",
        }))
        assert isinstance(record, TeamMemberRecord)
        assert record.full_name == "Cole Closer"
        assert record.email == "cole@x.com"
        assert record.role == "closer"
        assert record.active is True

    def test_team_member_requires_email(self):
        result = field_mapper.to_canonical("team", _row({"Name": "Nobody", "Email": ""}))
        assert isinstance(result, Skip)
        assert result.field == "email"


def test_partial_failure_reports_sheet_row():
    text = (
        "Name,Email,Role\n"
        "A,a@x.com,Setter\n"
        "B,b@x.com,Closer\n"
        "C,,Setter\n"
        "D,d@x.com,Setter\n"
        "E,e@x.com,Admin\n"
    )
    _, rows = parse_csv(text)
    results = field_mapper.map_rows("team", rows)
    records = [r for r in results if not isinstance(r, Skip)]
    skips = [r for r in results if isinstance(r, Skip)]
    assert len(records) == 4
    assert len(skips) == 1
    assert skips[0].row_number == 4
    assert skips[0].reason == "missing required field"


def test_coerce_mappings_drops_entries_without_source():
    parsed = field_mapper.coerce_mappings([{"targetField": "name"}, {"sourceColumn": "Name", "targetField": "name"}])
    assert [m.source_column for m in parsed] == ["Name"]


def test_validate_mappings():
    problems = field_mapper.validate_mappings("leads", [
        ColumnMapping(source_column="A", target_field="name"),
        ColumnMapping(source_column="B", target_field="lead_email"),
        ColumnMapping(source_column="C", target_field="shoe_size"),
        ColumnMapping(source_column="D", target_field="custom", transformation="uppercase"),
    ])
    assert len(problems) == 2
    assert any("shoe_size" in p for p in problems)
    assert any("uppercase" in p for p in problems)
    assert field_mapper.validate_mappings("widgets", []) == ["unknown entity type 'widgets'"]


def test_resolve_target_accepts_aliases():
    assert field_mapper.resolve_target("appointments", "Closer Assigned") == "closer_name"
    assert field_mapper.resolve_target("appointments", "revenue_amount") == "revenue_amount"
    assert field_mapper.resolve_target("appointments", "shoe size") is None


def test_non_finite_duration_maps_to_zero():
    record = field_mapper.to_canonical("calls", _row({"Name": "Bob", "Duration": "1e400"}))
    assert isinstance(record, CallRecord)
    assert record.duration_seconds == 0


def test_map_rows_isolates_unexpected_row_errors(monkeypatch):
    build_fields = field_mapper._build_fields

    def flaky_build(entity_type, values):
        if "Bob" in values.values():
            raise OverflowError("cannot convert float infinity to integer")
        return build_fields(entity_type, values)

    monkeypatch.setattr(field_mapper, "_build_fields", flaky_build)
    rows = [_row({"Name": name}, row_number=i + 2) for i, name in enumerate(["Ada", "Bob", "Cy"])]

    results = field_mapper.map_rows("calls", rows)

    assert [type(r) for r in results] == [CallRecord, Skip, CallRecord]
    assert results[1].row_number == 3
    assert results[1].reason.startswith(field_mapper.UNREADABLE)
    assert not results[1].deliberate
