"""Sheet row -> canonical record mapping.

A stored mapping routes each source column to a canonical field, to the
custom-fields bag, or nowhere. Without a stored mapping the headers are
auto-mapped through the alias tables below.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable

from pydantic import ValidationError

from ..schemas.canonical import RECORD_TYPES, RawRow, Skip
from ..schemas.mapping import ColumnMapping
from . import status_rules
from .transforms import (
    apply_transformation,
    canonical_transformation,
    combine_datetime,
    is_valid_email,
    normalize_column_name,
    parse_bool,
    parse_currency,
    parse_datetime,
    parse_duration,
)

logger = logging.getLogger(__name__)

MISSING_REQUIRED = "missing required field"
UNREADABLE = "row could not be read"
INVALID_EMAIL = "invalid email"
DELETED = "row flagged as deleted"

DROPPED_TARGETS = frozenset({"skip", "ignore", ""})

_COMMON = {
    "external_id": ("external_id", "id", "record_id", "row_id"),
    "is_deleted": ("is_deleted", "deleted"),
}
_NAME = ("name", "full_name", "lead_name", "client_name", "contact_name", "prospect_name", "customer_name")
_EMAIL = ("email", "lead_email", "email_address", "e_mail", "client_email")
_PHONE = ("phone", "phone_number", "lead_phone", "mobile", "cell")
_SETTER = ("setter_name", "setter", "set_by", "appointment_setter")
_CLOSER = ("closer_name", "closer", "closer_assigned", "assigned_closer", "closed_by")
_NOTES = ("notes", "note", "call_notes", "comments")
_RECORDING = ("recording_url", "call_recording", "call_recording_fathom", "recording", "fathom_link")
_PAYMENT = ("payment_platform", "payment_type", "payment_method", "processor")
_POST_SET_FORM = (
    "post_set_form_filled", "post_set_form", "postsetter_form", "post_setter_form", "postsetform", "post_set",
)
_CLOSER_FORM = (
    "closer_form_filled", "closer_form", "closer_form_status", "closerformfilled",
    "closer_form_completed", "post_call_form_filled",
)
_REVENUE = ("revenue_amount", "revenue", "revenue_generated", "amount", "deal_value", "contract_value", "sale_amount")
_CASH = ("cash_collected", "cash", "collected")

# Canonical field -> accepted (normalized) header / target names, in priority order.
FIELD_ALIASES: dict[str, dict[str, tuple[str, ...]]] = {
    "team": {
        "external_id": _COMMON["external_id"],
        "is_deleted": _COMMON["is_deleted"],
        "email": ("email", "email_address", "work_email"),
        "full_name": ("full_name", "name", "team_member", "member_name"),
        "first_name": ("first_name", "firstname"),
        "last_name": ("last_name", "lastname", "surname"),
        "role": ("role", "team_role", "position", "title"),
        "active": ("active", "is_active"),
    },
    "leads": {
        "external_id": ("lead_id",) + _COMMON["external_id"],
        "is_deleted": _COMMON["is_deleted"],
        "name": _NAME,
        "email": _EMAIL,
        "phone": _PHONE,
        "source": ("source", "lead_source"),
        "utm_source": ("utm_source", "utm", "campaign"),
        "status": ("status", "lead_status", "stage"),
        "notes": _NOTES,
        "setter_name": _SETTER,
        "closer_name": _CLOSER,
    },
    "appointments": {
        "external_id": ("appointment_id",) + _COMMON["external_id"],
        "is_deleted": _COMMON["is_deleted"],
        "name": _NAME,
        "email": _EMAIL,
        "phone": _PHONE,
        "scheduled_at": ("scheduled_at", "scheduled_for", "scheduled", "appointment_datetime", "booking_datetime"),
        "booked_at": ("booked_at", "booked_on", "date_booked"),
        "status": ("status", "appointment_status", "show_status"),
        "call_outcome": ("call_outcome", "call_status", "outcome", "result", "call_result"),
        "setter_name": _SETTER,
        "closer_name": _CLOSER,
        "revenue_amount": _REVENUE,
        "cash_collected": _CASH,
        "payment_platform": _PAYMENT,
        "recording_url": _RECORDING,
        "notes": _NOTES,
        "post_set_form_filled": _POST_SET_FORM,
        "closer_form_filled": _CLOSER_FORM,
    },
    "calls": {
        "external_id": ("call_id",) + _COMMON["external_id"],
        "is_deleted": _COMMON["is_deleted"],
        "name": _NAME,
        "email": _EMAIL,
        "phone": _PHONE,
        "call_time": ("call_time", "created_at", "date", "call_date", "timestamp"),
        "status": ("status", "call_status", "result", "outcome"),
        "duration_seconds": ("duration_seconds", "duration", "call_duration", "call_length"),
        "notes": _NOTES,
        "recording_url": _RECORDING,
        "setter_name": _SETTER,
        "closer_name": _CLOSER,
        "post_set_form_filled": _POST_SET_FORM,
        "closer_form_filled": _CLOSER_FORM,
    },
    "deals": {
        "external_id": ("deal_id",) + _COMMON["external_id"],
        "is_deleted": _COMMON["is_deleted"],
        "name": _NAME,
        "email": _EMAIL,
        "status": ("deal_status", "call_status", "status", "outcome"),
        "revenue_amount": _REVENUE,
        "cash_collected": _CASH,
        "cash_after_fees": ("cash_after_fees", "cash_collected_after_fees", "net_cash"),
        "fees_amount": ("fees_amount", "fees", "processing_fees", "fee"),
        "currency": ("currency",),
        "payment_platform": _PAYMENT,
        "closed_at": ("closed_at", "close_date", "closed_date", "date_closed", "timestamp", "date"),
        "recording_url": _RECORDING,
        "setter_name": _SETTER,
        "closer_name": _CLOSER,
    },
}

# Split date/time columns combined into appointments.scheduled_at
DATE_COLUMNS = ("appointment_date", "date", "booking_date", "call_date")
TIME_COLUMNS = ("appointment_time", "time", "booking_time")

FIELD_KINDS: dict[str, str] = {
    "email": "email",
    "phone": "phone",
    "scheduled_at": "datetime",
    "booked_at": "datetime",
    "call_time": "datetime",
    "closed_at": "datetime",
    "revenue_amount": "money",
    "cash_collected": "money",
    "cash_after_fees": "money",
    "fees_amount": "money",
    "post_set_form_filled": "flag",
    "closer_form_filled": "flag",
    "is_deleted": "flag",
    "duration_seconds": "duration",
}

_DEFAULT_TRANSFORMS = {
    "email": "lowercase_trim",
    "phone": "clean_phone",
    "money": "parse_currency",
}


def entity_fields(entity_type: str) -> tuple[str, ...]:
    return tuple(FIELD_ALIASES[entity_type])


def resolve_target(entity_type: str, target: str) -> str | None:
    """Canonical field for a mapping target, accepting alias spellings."""
    aliases = FIELD_ALIASES[entity_type]
    key = normalize_column_name(target)
    if key in aliases:
        return key
    for field, names in aliases.items():
        if key in names:
            return field
    return None


def _match_header(entity_type: str, header: str) -> tuple[str, int] | None:
    key = normalize_column_name(header)
    for field, names in FIELD_ALIASES[entity_type].items():
        if key in names:
            return field, names.index(key)
    return None


def find_time_column(headers: Iterable[str], exclude: str | None = None) -> str | None:
    by_key = {normalize_column_name(h): h for h in headers if h != exclude}
    for name in TIME_COLUMNS:
        if name in by_key:
            return by_key[name]
    return None


def auto_mappings(entity_type: str, headers: list[str]) -> list[ColumnMapping]:
    """Map headers through the alias tables.

    Headers matching no alias go to the custom-fields bag. For appointments a
    separate date column plus time column become one combined ``scheduled_at``.
    """
    matched: list[tuple[int, int, ColumnMapping]] = []
    field_order = entity_fields(entity_type)
    has_scheduled = False
    time_column = None
    date_column = None

    if entity_type == "appointments":
        has_scheduled = any(
            (m := _match_header(entity_type, h)) and m[0] == "scheduled_at" for h in headers
        )
        if not has_scheduled:
            keys = {normalize_column_name(h): h for h in headers}
            date_column = next((keys[n] for n in DATE_COLUMNS if n in keys), None)
            time_column = find_time_column(headers, exclude=date_column) if date_column else None

    mappings: list[ColumnMapping] = []
    for header in headers:
        if not header:
            continue
        if header == date_column:
            matched.append((field_order.index("scheduled_at"), 0, ColumnMapping(
                source_column=header, target_field="scheduled_at", confidence=75,
                transformation="combine_datetime", time_column=time_column,
            )))
            continue
        if header == time_column:
            mappings.append(ColumnMapping(source_column=header, target_field="skip", confidence=75))
            continue

        match = _match_header(entity_type, header)
        if match is None:
            mappings.append(ColumnMapping(
                source_column=header, target_field="custom", confidence=30,
                custom_key=normalize_column_name(header) or None,
            ))
            continue
        field, rank = match
        kind = FIELD_KINDS.get(field, "text")
        matched.append((field_order.index(field), rank, ColumnMapping(
            source_column=header,
            target_field=field,
            confidence=90 if rank == 0 else 75,
            transformation=_DEFAULT_TRANSFORMS.get(kind, "trim"),
        )))

    matched.sort(key=lambda item: (item[0], item[1]))
    return [m for _, _, m in matched] + mappings


def coerce_mappings(mappings: Iterable[Any] | None) -> list[ColumnMapping]:
    """Parse stored mapping dicts (snake or camel case) into ColumnMapping.

    Entries without a source column are dropped.
    """
    result = []
    for item in mappings or []:
        if isinstance(item, ColumnMapping):
            result.append(item)
            continue
        try:
            result.append(ColumnMapping.model_validate(item))
        except ValidationError:
            continue
    return result


def validate_mappings(entity_type: str, mappings: list[ColumnMapping]) -> list[str]:
    """Problems with a mapping, as human-readable strings. Empty means valid."""
    problems = []
    if entity_type not in FIELD_ALIASES:
        return [f"unknown entity type {entity_type!r}"]
    for m in mappings:
        if canonical_transformation(m.transformation) is None:
            problems.append(f"{m.source_column}: unknown transformation {m.transformation!r}")
        if m.target_field in DROPPED_TARGETS or m.target_field == "custom":
            continue
        if resolve_target(entity_type, m.target_field) is None:
            problems.append(f"{m.source_column}: unknown field {m.target_field!r} for {entity_type}")
    return problems


def _to_float(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return float(value)
    amount = parse_currency(str(value))
    return float(amount) if amount is not None else None


def _to_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    return parse_datetime(str(value)) if value is not None else None


def _to_text(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _collect(
    entity_type: str, row: RawRow, mappings: list[ColumnMapping],
) -> tuple[dict[str, Any], dict[str, str]]:
    """Route mapped cells to canonical fields and the custom bag. First non-empty wins."""
    values: dict[str, Any] = {}
    custom: dict[str, str] = {}
    headers = list(row.values)

    for m in mappings:
        if m.target_field in DROPPED_TARGETS:
            continue
        raw = row.values.get(m.source_column)
        if raw is None:
            continue

        if canonical_transformation(m.transformation) == "combine_datetime":
            time_column = m.time_column or find_time_column(headers, exclude=m.source_column)
            value = combine_datetime(raw, row.values.get(time_column) if time_column else None)
        else:
            value = apply_transformation(m.transformation, raw)
        if value is None:
            continue

        if m.target_field == "custom":
            key = m.custom_key or normalize_column_name(m.source_column)
            if key:
                custom.setdefault(key, _to_text(value))
            continue

        field = resolve_target(entity_type, m.target_field)
        if field is None:
            custom.setdefault(normalize_column_name(m.target_field), _to_text(value))
            continue
        values.setdefault(field, value)

    return values, custom


def _text(values: dict, field: str) -> str | None:
    value = values.get(field)
    if value is None:
        return None
    text = _to_text(value).strip()
    return text or None


def _build_fields(entity_type: str, values: dict[str, Any]) -> dict[str, Any]:
    """Coerce collected cells into typed record fields."""
    fields: dict[str, Any] = {}
    external_id = _text(values, "external_id")
    if external_id:
        fields["external_id"] = external_id

    email = _text(values, "email")
    if email:
        fields["email"] = email.lower()

    if entity_type == "team":
        full_name = _text(values, "full_name")
        if not full_name:
            parts = [_text(values, "first_name"), _text(values, "last_name")]
            full_name = " ".join(p for p in parts if p) or None
        fields["full_name"] = full_name
        fields["role"] = status_rules.normalize_role(_text(values, "role"))
        active = _text(values, "active")
        fields["active"] = active is None or active.lower() not in ("false", "no", "0", "inactive", "n")
        return fields

    for name in ("name", "phone", "notes", "recording_url", "payment_platform", "setter_name", "closer_name",
                 "utm_source"):
        if name in FIELD_ALIASES[entity_type]:
            text = _text(values, name)
            if text is not None:
                fields[name] = text

    for name in ("scheduled_at", "booked_at", "call_time", "closed_at"):
        if name in FIELD_ALIASES[entity_type]:
            moment = _to_datetime(values.get(name))
            if moment is not None:
                fields[name] = moment

    for name in ("post_set_form_filled", "closer_form_filled"):
        if name in FIELD_ALIASES[entity_type]:
            fields[name] = parse_bool(_text(values, name))

    if entity_type == "leads":
        fields["status"] = status_rules.normalize_lead_status(_text(values, "status"))
        fields["source"] = status_rules.normalize_lead_source(_text(values, "source"))

    elif entity_type == "appointments":
        status_text = _text(values, "status")
        outcome_text = _text(values, "call_outcome") or status_text
        outcome = status_rules.normalize_call_outcome(outcome_text)
        status = status_rules.normalize_appointment_status(status_text or outcome_text)
        if status == "scheduled" and outcome in ("closed", "no_close", "follow_up"):
            status = "completed"
        fields["status"] = status
        fields["call_outcome"] = outcome
        for name in ("revenue_amount", "cash_collected"):
            amount = _to_float(values.get(name))
            if amount is not None:
                fields[name] = amount

    elif entity_type == "calls":
        fields["status"] = status_rules.normalize_call_status(_text(values, "status"))
        fields["duration_seconds"] = parse_duration(_text(values, "duration_seconds"))

    elif entity_type == "deals":
        fields["status"] = status_rules.normalize_deal_status(_text(values, "status"))
        for name in ("revenue_amount", "cash_collected", "fees_amount"):
            fields[name] = _to_float(values.get(name)) or 0.0
        after_fees = _to_float(values.get("cash_after_fees"))
        if after_fees is not None:
            fields["cash_after_fees"] = after_fees
        fields["currency"] = (_text(values, "currency") or "USD").upper()[:10]

    return fields


def to_canonical(
    entity_type: str,
    row: RawRow,
    mappings: list[ColumnMapping] | None = None,
    defaults: dict[str, str] | None = None,
):
    """Project one raw row onto the canonical record for ``entity_type``.

    Returns a record, or a ``Skip`` describing why the row was not usable.
    Never raises for bad row data.
    """
    if entity_type not in RECORD_TYPES:
        raise ValueError(f"Unknown entity type: {entity_type}")

    mappings = coerce_mappings(mappings)
    if not mappings:
        mappings = auto_mappings(entity_type, list(row.values))

    values, custom = _collect(entity_type, row, mappings)
    for field, default in (defaults or {}).items():
        target = resolve_target(entity_type, field)
        if target and default not in (None, "") and target not in values:
            values[target] = default

    if parse_bool(_text(values, "is_deleted")):
        return Skip(reason=DELETED, row_number=row.row_number, deliberate=True)

    fields = _build_fields(entity_type, values)

    email = fields.get("email")
    if email and not is_valid_email(email):
        return Skip(reason=INVALID_EMAIL, row_number=row.row_number, field="email")

    record = RECORD_TYPES[entity_type](
        source_row_number=row.row_number,
        custom_fields=custom,
        **fields,
    )
    if not record.has_identity:
        return Skip(
            reason=MISSING_REQUIRED,
            row_number=row.row_number,
            field="email" if entity_type == "team" else "name",
        )
    return record


def map_rows(
    entity_type: str,
    rows: Iterable[RawRow],
    mappings: list[ColumnMapping] | None = None,
    defaults: dict[str, str] | None = None,
) -> list:
    """``to_canonical`` over many rows; the mapping is parsed once.

    A row that fails unexpectedly becomes a ``Skip`` so the rest still map.
    """
    if entity_type not in RECORD_TYPES:
        raise ValueError(f"Unknown entity type: {entity_type}")
    parsed = coerce_mappings(mappings)

    results = []
    for row in rows:
        try:
            results.append(to_canonical(entity_type, row, parsed, defaults))
        except (ValueError, TypeError, ArithmeticError) as e:
            logger.warning("Row %d of %s could not be mapped: %s", row.row_number, entity_type, e)
            results.append(Skip(reason=f"{UNREADABLE}: {e}", row_number=row.row_number))
    return results
