"""Tabular source readers for Google Sheets.

Two strategies return the same ``SheetData``: the authenticated Sheets v4
values API and the public CSV export. ``FallbackSheetReader`` tries the API
first when a token is available and falls back to the export on any failure.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Protocol

import httpx

from ..config import settings
from ..errors import (
    EmptySheetError,
    InvalidLocatorError,
    MalformedResponseError,
    SheetAccessError,
    SheetNotFoundError,
    SheetsError,
    SheetsNetworkError,
)
from ..schemas.canonical import RawRow
from .csv_tokenizer import parse_csv, rows_from_records
from .locator import SheetLocator, quote_tab_range

logger = logging.getLogger(__name__)


@dataclass
class SheetTab:
    title: str
    gid: str
    row_count: int | None = None


@dataclass
class SheetData:
    headers: list[str]
    rows: list[RawRow] = field(default_factory=list)
    source: str = "csv"  # api, csv
    tab_name: str | None = None
    gid: str | None = None

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def sample(self, n: int) -> list[dict[str, str]]:
        return [dict(row.values) for row in self.rows[:n]]


class SheetReader(Protocol):
    async def fetch_rows(
        self, locator: SheetLocator, access_token: str | None = None, max_rows: int | None = None,
    ) -> SheetData: ...


def _looks_like_html(body: str) -> bool:
    head = body.lstrip()[:200].lower()
    return head.startswith("<!doctype html") or "<html" in head


def _raise_for_status(response: httpx.Response, what: str) -> None:
    status = response.status_code
    if status < 400:
        return
    details = response.text[:500] if response.content else None
    if status in (401, 403):
        raise SheetAccessError(f"Access denied to {what}", status_code=status, details=details)
    if status == 404:
        raise SheetNotFoundError(f"{what} not found", status_code=status, details=details)
    if status == 429 or status >= 500:
        raise SheetsNetworkError(f"Google returned {status} for {what}", status_code=status, details=details)
    if status == 400:
        raise InvalidLocatorError(f"Google rejected the request for {what}", status_code=status, details=details)
    raise MalformedResponseError(f"Unexpected {status} fetching {what}", status_code=status, details=details)


def _finish(
    headers: list[str], rows: list[RawRow], max_rows: int | None, **kwargs,
) -> SheetData:
    if not headers or not rows:
        raise EmptySheetError("Sheet has no data rows")
    if max_rows is not None:
        rows = rows[:max_rows]
    return SheetData(headers=headers, rows=rows, **kwargs)


class _HttpReader:
    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float | None = None):
        self._http = client
        self.timeout = timeout or settings.http_timeout_seconds

    @asynccontextmanager
    async def _client(self):
        if self._http is not None:
            yield self._http
            return
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            yield client

    async def _get(self, url: str, headers: dict | None = None) -> httpx.Response:
        try:
            async with self._client() as client:
                return await client.get(url, headers=headers)
        except httpx.TimeoutException as e:
            raise SheetsNetworkError(f"Timed out fetching sheet: {e}") from e
        except httpx.HTTPError as e:
            raise SheetsNetworkError(f"Network error fetching sheet: {e}") from e


class ApiSheetReader(_HttpReader):
    """Reads cell values through the Sheets v4 API with an OAuth bearer token."""

    def __init__(self, client: httpx.AsyncClient | None = None, base_url: str | None = None, **kwargs):
        super().__init__(client, **kwargs)
        self.base_url = (base_url or settings.sheets_api_base).rstrip("/")

    async def _get_json(self, url: str, access_token: str, what: str) -> dict:
        response = await self._get(url, headers={"Authorization": f"Bearer {access_token}"})
        _raise_for_status(response, what)
        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"Expected JSON for {what}", status_code=response.status_code,
                details=response.text[:500],
            ) from e
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Unexpected payload for {what}")
        return data

    async def list_tabs(self, locator: SheetLocator, access_token: str) -> list[SheetTab]:
        url = (
            f"{self.base_url}/{locator.spreadsheet_id}"
            "?fields=sheets(properties(sheetId,title,gridProperties(rowCount)))"
        )
        data = await self._get_json(url, access_token, "spreadsheet metadata")
        tabs = []
        for sheet in data.get("sheets", []):
            props = sheet.get("properties", {})
            tabs.append(SheetTab(
                title=props.get("title", ""),
                gid=str(props.get("sheetId", "")),
                row_count=props.get("gridProperties", {}).get("rowCount"),
            ))
        return tabs

    async def resolve_tab(self, locator: SheetLocator, access_token: str) -> SheetTab:
        """Pick the tab by gid, then by name, else the first tab."""
        tabs = await self.list_tabs(locator, access_token)
        if not tabs:
            raise EmptySheetError("Spreadsheet has no tabs")
        if locator.gid is not None:
            for tab in tabs:
                if tab.gid == locator.gid:
                    return tab
        if locator.tab_name:
            for tab in tabs:
                if tab.title.lower() == locator.tab_name.lower():
                    return tab
        return tabs[0]

    async def fetch_rows(
        self, locator: SheetLocator, access_token: str | None = None, max_rows: int | None = None,
    ) -> SheetData:
        if not access_token:
            raise SheetAccessError("No access token for the Sheets API")
        tab = await self.resolve_tab(locator, access_token)
        tab_range = quote_tab_range(tab.title)
        url = f"{self.base_url}/{locator.spreadsheet_id}/values/{tab_range}"
        data = await self._get_json(url, access_token, f"tab {tab.title!r}")

        values = data.get("values") or []
        records = [[("" if cell is None else str(cell)) for cell in row] for row in values]
        headers, rows = rows_from_records(records)
        return _finish(headers, rows, max_rows, source="api", tab_name=tab.title, gid=tab.gid)


class CsvExportReader(_HttpReader):
    """Reads the public CSV export of a link-viewable sheet."""

    def __init__(self, client: httpx.AsyncClient | None = None, export_base: str | None = None, **kwargs):
        super().__init__(client, **kwargs)
        self.export_base = export_base or settings.sheets_export_base

    async def fetch_rows(
        self, locator: SheetLocator, access_token: str | None = None, max_rows: int | None = None,
    ) -> SheetData:
        url = locator.export_url(self.export_base)
        response = await self._get(url)
        _raise_for_status(response, "sheet export")

        body = response.text
        content_type = response.headers.get("content-type", "")
        if "text/html" in content_type or _looks_like_html(body):
            raise MalformedResponseError(
                "Received an HTML page instead of CSV; the sheet is probably not link-viewable",
                status_code=response.status_code,
            )

        headers, rows = parse_csv(body)
        return _finish(headers, rows, max_rows, source="csv", tab_name=locator.tab_name, gid=locator.gid or "0")


class FallbackSheetReader:
    """API first when a token is present, CSV export otherwise or on failure."""

    def __init__(
        self,
        api_reader: ApiSheetReader | None = None,
        csv_reader: CsvExportReader | None = None,
    ):
        self.api_reader = api_reader or ApiSheetReader()
        self.csv_reader = csv_reader or CsvExportReader()

    async def fetch_rows(
        self, locator: SheetLocator, access_token: str | None = None, max_rows: int | None = None,
    ) -> SheetData:
        if access_token:
            try:
                return await self.api_reader.fetch_rows(locator, access_token, max_rows)
            except SheetsError as e:
                logger.warning(
                    "Sheets API read failed for %s (%s), falling back to CSV export",
                    locator.spreadsheet_id, e.code.value,
                )
        return await self.csv_reader.fetch_rows(locator, None, max_rows)

    async def list_tabs(self, locator: SheetLocator, access_token: str | None = None) -> list[SheetTab]:
        """Workbook tabs; without a token only the locator's own tab is known."""
        if access_token:
            try:
                return await self.api_reader.list_tabs(locator, access_token)
            except SheetsError as e:
                logger.warning("Could not list tabs for %s: %s", locator.spreadsheet_id, e.message)
        return [SheetTab(title=locator.tab_name or "Sheet1", gid=locator.gid or "0")]
