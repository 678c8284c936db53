"""Value transformations applied to raw sheet cells."""

from __future__ import annotations

import math
import re
from datetime import datetime, time, timezone
from decimal import Decimal, InvalidOperation

from dateutil import parser as dateutil_parser

TRANSFORMATIONS = (
    "none",
    "trim",
    "lowercase_trim",
    "clean_phone",
    "parse_currency",
    "skip_if_placeholder",
    "combine_datetime",
)

# camelCase / legacy spellings found in stored mappings
_TRANSFORMATION_ALIASES = {
    "lowercasetrim": "lowercase_trim",
    "cleanphone": "clean_phone",
    "parsecurrency": "parse_currency",
    "skipifplaceholder": "skip_if_placeholder",
    "combinedatetime": "combine_datetime",
    "": "none",
}

PLACEHOLDER_VALUES = frozenset({"in crm", "n/a", "na", "-", "tbd", "none", "null"})

_TRUTHY = frozenset({"true", "yes", "y", "1", "x", "checked", "done", "filled", "completed", "complete", "✓", "✔"})

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_CURRENCY_STRIP_RE = re.compile(r"[\s$€£,]|USD|EUR|GBP", re.IGNORECASE)
_TIME_ONLY_RE = re.compile(r"^\d{1,2}(:\d{2}){1,2}\s*([ap]\.?m\.?)?$", re.IGNORECASE)


def canonical_transformation(name: str | None) -> str | None:
    """Return the canonical transformation name, or None if unknown."""
    key = (name or "").strip()
    if key in TRANSFORMATIONS:
        return key
    compact = key.replace("_", "").replace("-", "").lower()
    if compact in _TRANSFORMATION_ALIASES:
        return _TRANSFORMATION_ALIASES[compact]
    return None


def normalize_column_name(name: str) -> str:
    """'Lead Email ' -> 'lead_email'."""
    normalized = re.sub(r"\s+", "_", name.strip().lower())
    return re.sub(r"[^a-z0-9_]", "", normalized)


def clean_phone(value: str) -> str:
    """Strip everything except digits, keeping a leading '+'."""
    value = value.strip()
    digits = re.sub(r"\D", "", value)
    if value.startswith("+") and digits:
        return "+" + digits
    return digits


def parse_currency(value: str | None) -> Decimal | None:
    """'$1,234.50' -> Decimal('1234.50'). Unparseable values return None."""
    if value is None:
        return None
    text = value.strip()
    negative = text.startswith("(") and text.endswith(")")
    text = _CURRENCY_STRIP_RE.sub("", text.strip("()"))
    if not text:
        return None
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return -amount if negative else amount


def is_placeholder(value: str | None) -> bool:
    return value is None or value.strip().lower() in PLACEHOLDER_VALUES


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_RE.match(value))


def parse_bool(value: str | None) -> bool:
    return bool(value) and value.strip().lower() in _TRUTHY


def parse_datetime(value: str | None) -> datetime | None:
    """Parse a free-form sheet timestamp. Naive values are taken as UTC."""
    if value is None or not value.strip() or is_placeholder(value):
        return None
    try:
        parsed = dateutil_parser.parse(value.strip())
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_time(value: str | None) -> time | None:
    if value is None or not _TIME_ONLY_RE.match(value.strip()):
        return None
    try:
        return dateutil_parser.parse(value.strip()).time()
    except (ValueError, OverflowError):
        return None


def looks_like_time(value: str | None) -> bool:
    return parse_time(value) is not None


def combine_datetime(date_value: str | None, time_value: str | None) -> datetime | None:
    """Merge a date-only cell and a time-only cell into one timestamp."""
    day = parse_datetime(date_value)
    if day is None:
        return None
    moment = parse_time(time_value)
    if moment is None:
        return day
    return day.replace(hour=moment.hour, minute=moment.minute, second=moment.second, microsecond=0)


def parse_duration(value: str | None) -> int:
    """Seconds from '330', '5:30' (m:ss) or '1:02:03' (h:mm:ss)."""
    if not value or not value.strip():
        return 0
    text = value.strip()
    if ":" in text:
        seconds = 0
        try:
            for part in text.split(":"):
                seconds = seconds * 60 + int(part)
        except ValueError:
            return 0
        return seconds
    try:
        number = float(text)
    except ValueError:
        return 0
    if not math.isfinite(number):
        return 0
    return max(int(number), 0)


def apply_transformation(name: str | None, value: str | None):
    """Apply a named transformation to a raw cell value.

    Empty results come back as None so callers can treat them as missing.
    ``combine_datetime`` needs two cells and is handled by the field mapper;
    applied alone it just trims.
    """
    if value is None:
        return None
    kind = canonical_transformation(name) or "none"

    if kind == "parse_currency":
        return parse_currency(value)
    if kind == "skip_if_placeholder":
        return None if is_placeholder(value) else (value.strip() or None)
    if kind == "lowercase_trim":
        result = value.strip().lower()
    elif kind == "clean_phone":
        result = clean_phone(value)
    elif kind in ("trim", "combine_datetime"):
        result = value.strip()
    else:
        result = value
    return result if result.strip() else None
