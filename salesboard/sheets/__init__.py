"""Google Sheets access: URL parsing, CSV tokenizing and row readers."""

from .csv_tokenizer import parse_csv
from .locator import SheetLocator, parse_sheet_url
from .reader import (
    ApiSheetReader,
    CsvExportReader,
    FallbackSheetReader,
    SheetData,
    SheetReader,
    SheetTab,
)

__all__ = [
    "parse_csv",
    "SheetLocator",
    "parse_sheet_url",
    "ApiSheetReader",
    "CsvExportReader",
    "FallbackSheetReader",
    "SheetData",
    "SheetReader",
    "SheetTab",
]
