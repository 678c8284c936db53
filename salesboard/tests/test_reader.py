"""Tests for sheet locators and the API / CSV export readers."""

from __future__ import annotations

import httpx
import pytest

from salesboard.errors import (
    EmptySheetError,
    ErrorCode,
    InvalidLocatorError,
    MalformedResponseError,
    SheetAccessError,
    SheetNotFoundError,
    SheetsNetworkError,
)
from salesboard.sheets.locator import parse_sheet_url, quote_tab_range
from salesboard.sheets.reader import ApiSheetReader, CsvExportReader, FallbackSheetReader

SHEET_ID = "1AbCdEfGhIjKlMnOpQrStUvWxYz0123456789"
SHEET_URL = f"https://docs.google.com/spreadsheets/d/{SHEET_ID}/edit#gid=0"

LEADS_CSV = 'Name,Email,Notes\n"Doe, Jane",jane@x.com,"said ""hi"""\n\nBob,bob@x.com,\n'


class TestLocator:
    def test_parse_edit_url(self):
        locator = parse_sheet_url(f"https://docs.google.com/spreadsheets/d/{SHEET_ID}/edit#gid=123")
        assert locator.spreadsheet_id == SHEET_ID
        assert locator.gid == "123"

    def test_parse_query_gid(self):
        locator = parse_sheet_url(f"https://docs.google.com/spreadsheets/d/{SHEET_ID}/edit?usp=sharing&gid=7")
        assert locator.gid == "7"

    def test_parse_without_gid(self):
        locator = parse_sheet_url(f"https://docs.google.com/spreadsheets/d/{SHEET_ID}", tab_name="Leads")
        assert locator.gid is None
        assert locator.tab_name == "Leads"
        assert locator.export_url("https://docs.google.com/spreadsheets/d").endswith("gid=0")

    def test_bare_id(self):
        assert parse_sheet_url(SHEET_ID).spreadsheet_id == SHEET_ID

    @pytest.mark.parametrize("url", ["", "https://example.com/not-a-sheet", "short"])
    def test_invalid(self, url):
        with pytest.raises(InvalidLocatorError) as exc_info:
            parse_sheet_url(url)
        assert exc_info.value.code == ErrorCode.INVALID_LOCATOR

    def test_quote_tab_range(self):
        assert quote_tab_range("Sheet1") == "%27Sheet1%27"
        assert quote_tab_range("Bob's Leads") == "%27Bob%27%27s%20Leads%27"


class TestCsvExportReader:
    @pytest.mark.asyncio
    async def test_reads_rows(self, google, http_client):
        google.set_csv(LEADS_CSV)
        data = await CsvExportReader(http_client).fetch_rows(parse_sheet_url(SHEET_URL))
        assert data.source == "csv"
        assert data.headers == ["Name", "Email", "Notes"]
        assert [r.row_number for r in data.rows] == [2, 4]
        assert data.rows[0].values["Notes"] == 'said "hi"'

    @pytest.mark.asyncio
    async def test_max_rows(self, google, http_client):
        google.set_csv(LEADS_CSV)
        data = await CsvExportReader(http_client).fetch_rows(parse_sheet_url(SHEET_URL), max_rows=1)
        assert data.row_count == 1

    @pytest.mark.asyncio
    async def test_html_page_is_malformed(self, google, http_client):
        google.export_body = "<!DOCTYPE html><html><body>Sign in</body></html>"
        with pytest.raises(MalformedResponseError) as exc_info:
            await CsvExportReader(http_client).fetch_rows(parse_sheet_url(SHEET_URL))
        assert exc_info.value.code == ErrorCode.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_not_found(self, google, http_client):
        google.export_status = 404
        with pytest.raises(SheetNotFoundError):
            await CsvExportReader(http_client).fetch_rows(parse_sheet_url(SHEET_URL))

    @pytest.mark.asyncio
    async def test_access_denied(self, google, http_client):
        google.export_status = 403
        with pytest.raises(SheetAccessError) as exc_info:
            await CsvExportReader(http_client).fetch_rows(parse_sheet_url(SHEET_URL))
        assert exc_info.value.code == ErrorCode.ACCESS_DENIED

    @pytest.mark.asyncio
    async def test_server_error_is_retryable(self, google, http_client):
        google.export_status = 503
        with pytest.raises(SheetsNetworkError) as exc_info:
            await CsvExportReader(http_client).fetch_rows(parse_sheet_url(SHEET_URL))
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_bad_request_is_not_retryable(self, google, http_client):
        google.export_status = 400
        with pytest.raises(InvalidLocatorError) as exc_info:
            await CsvExportReader(http_client).fetch_rows(parse_sheet_url(SHEET_URL))
        assert exc_info.value.code == ErrorCode.INVALID_LOCATOR
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_unexpected_status_is_malformed(self, google, http_client):
        google.export_status = 409
        with pytest.raises(MalformedResponseError) as exc_info:
            await CsvExportReader(http_client).fetch_rows(parse_sheet_url(SHEET_URL))
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_transport_error(self, google, http_client):
        google.fail_next_exports = 1
        with pytest.raises(SheetsNetworkError) as exc_info:
            await CsvExportReader(http_client).fetch_rows(parse_sheet_url(SHEET_URL))
        assert exc_info.value.code == ErrorCode.NETWORK_ERROR

    @pytest.mark.asyncio
    async def test_empty_sheet(self, google, http_client):
        google.set_csv("Name,Email\n")
        with pytest.raises(EmptySheetError) as exc_info:
            await CsvExportReader(http_client).fetch_rows(parse_sheet_url(SHEET_URL))
        assert exc_info.value.code == ErrorCode.EMPTY_SOURCE


class TestApiSheetReader:
    @pytest.mark.asyncio
    async def test_reads_by_gid(self, google, http_client):
        google.set_csv("Name\nFirst tab\n", gid="0", title="Sheet1")
        google.set_csv(LEADS_CSV, gid="55", title="Leads")
        locator = parse_sheet_url(f"https://docs.google.com/spreadsheets/d/{SHEET_ID}/edit#gid=55")

        data = await ApiSheetReader(http_client).fetch_rows(locator, "token")

        assert data.source == "api"
        assert data.tab_name == "Leads"
        assert data.gid == "55"
        assert data.rows[0].values["Name"] == "Doe, Jane"

    @pytest.mark.asyncio
    async def test_reads_by_tab_name(self, google, http_client):
        google.set_csv("Name\nFirst tab\n", gid="0", title="Sheet1")
        google.set_csv(LEADS_CSV, gid="55", title="Leads")
        locator = parse_sheet_url(SHEET_ID, tab_name="leads")

        data = await ApiSheetReader(http_client).fetch_rows(locator, "token")
        assert data.tab_name == "Leads"

    @pytest.mark.asyncio
    async def test_requires_token(self, http_client):
        with pytest.raises(SheetAccessError):
            await ApiSheetReader(http_client).fetch_rows(parse_sheet_url(SHEET_URL), None)

    @pytest.mark.asyncio
    async def test_forbidden(self, google, http_client):
        google.api_status = 403
        with pytest.raises(SheetAccessError):
            await ApiSheetReader(http_client).fetch_rows(parse_sheet_url(SHEET_URL), "token")

    @pytest.mark.asyncio
    async def test_non_json_is_malformed(self, http_client):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>nope</html>")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(MalformedResponseError):
                await ApiSheetReader(client).fetch_rows(parse_sheet_url(SHEET_URL), "token")


class TestFallbackReader:
    @pytest.mark.asyncio
    async def test_api_and_csv_produce_identical_rows(self, google, reader):
        google.set_csv(LEADS_CSV)
        locator = parse_sheet_url(SHEET_URL)

        via_api = await reader.fetch_rows(locator, "token")
        via_csv = await reader.fetch_rows(locator, None)

        assert via_api.source == "api"
        assert via_csv.source == "csv"
        assert via_api.headers == via_csv.headers
        assert [(r.row_number, r.values) for r in via_api.rows] == [(r.row_number, r.values) for r in via_csv.rows]

    @pytest.mark.asyncio
    async def test_falls_back_when_api_fails(self, google, reader):
        google.set_csv(LEADS_CSV)
        google.api_status = 403

        data = await reader.fetch_rows(parse_sheet_url(SHEET_URL), "token")

        assert data.source == "csv"
        assert google.count("sheets.googleapis.com") == 1
        assert google.count("docs.google.com") == 1

    @pytest.mark.asyncio
    async def test_csv_only_without_token(self, google, reader):
        google.set_csv(LEADS_CSV)
        await reader.fetch_rows(parse_sheet_url(SHEET_URL))
        assert google.count("sheets.googleapis.com") == 0

    @pytest.mark.asyncio
    async def test_csv_error_surfaces(self, google, reader):
        google.api_status = 403
        google.export_body = "<html>Sign in</html>"
        with pytest.raises(MalformedResponseError):
            await reader.fetch_rows(parse_sheet_url(SHEET_URL), "token")

    @pytest.mark.asyncio
    async def test_list_tabs(self, google, reader):
        google.set_csv("Name\nA\n", gid="0", title="Sheet1")
        google.set_csv("Name\nB\n", gid="9", title="Deals")
        tabs = await reader.list_tabs(parse_sheet_url(SHEET_URL), "token")
        assert [(t.title, t.gid) for t in tabs] == [("Sheet1", "0"), ("Deals", "9")]

    @pytest.mark.asyncio
    async def test_list_tabs_without_token(self, reader):
        tabs = await reader.list_tabs(parse_sheet_url(SHEET_URL, tab_name="Leads"))
        assert [(t.title, t.gid) for t in tabs] == [("Leads", "0")]
