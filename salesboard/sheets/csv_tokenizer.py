"""RFC 4180 CSV tokenizer for Google Sheets CSV exports.

Rows are numbered by record, blank records included, so that a data row
keeps the same number it has in the sheet itself (header row = 1). A quoted
cell spanning several lines is still one record.
"""

from __future__ import annotations

import csv
import io

from ..errors import MalformedResponseError
from ..schemas.canonical import RawRow


def tokenize(text: str) -> list[list[str]]:
    """Split CSV text into records of fields.

    Quoted fields may contain commas, doubled quotes and line breaks. Blank
    lines come back as empty records.
    """
    if text.startswith("\ufeff"):
        text = text[1:]
    try:
        return list(csv.reader(io.StringIO(text, newline="")))
    except csv.Error as e:
        raise MalformedResponseError(f"Unreadable CSV export: {e}") from e


def is_blank(record: list[str]) -> bool:
    return all(not value.strip() for value in record)


def rows_from_records(
    records: list[list[str]], first_row_number: int = 1,
) -> tuple[list[str], list[RawRow]]:
    """Zip records against the first non-blank record as headers.

    Shared by the CSV and API readers so both number rows identically. Short
    records are padded with "", long ones truncated. Duplicate headers are kept
    as-is; reading by name returns the last occurrence.
    """
    headers: list[str] = []
    rows: list[RawRow] = []
    header_found = False

    for index, record in enumerate(records):
        row_number = first_row_number + index
        if is_blank(record):
            continue
        if not header_found:
            headers = [h.strip() for h in record]
            header_found = True
            continue
        padded = list(record[: len(headers)])
        padded += [""] * (len(headers) - len(padded))
        rows.append(RawRow(values=dict(zip(headers, padded)), row_number=row_number))

    return headers, rows


def parse_csv(text: str) -> tuple[list[str], list[RawRow]]:
    """Parse CSV text into (headers, rows)."""
    return rows_from_records(tokenize(text))
