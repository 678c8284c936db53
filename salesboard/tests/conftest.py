"""Async test fixtures for Salesboard tests using SQLite and a fake Google backend."""

from __future__ import annotations

import json
from urllib.parse import unquote

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from salesboard.config import settings
from salesboard.database import get_db
from salesboard.models import SheetConnection
from salesboard.models.base import Base
from salesboard.oauth.client import GoogleOAuthClient
from salesboard.oauth.manager import CredentialManager
from salesboard.sheets.csv_tokenizer import tokenize
from salesboard.sheets.reader import ApiSheetReader, CsvExportReader, FallbackSheetReader
from salesboard.sync.retry import RetryPolicy
from salesboard.sync.suggestion import HeuristicMappingSuggester
from salesboard.sync.sync_engine import SyncEngine

SHEET_ID = "1AbCdEfGhIjKlMnOpQrStUvWxYz0123456789"
SHEET_URL = f"https://docs.google.com/spreadsheets/d/{SHEET_ID}/edit#gid=0"


class FakeGoogle:
    """In-memory stand-in for the Sheets API, CSV export and token endpoint."""

    def __init__(self) -> None:
        self.tabs: dict[str, tuple[str, str]] = {"0": ("Sheet1", "")}  # gid -> (title, csv)
        self.export_status = 200
        self.export_body: str | None = None  # overrides CSV (e.g. an HTML sign-in page)
        self.api_status = 200
        self.token_status = 200
        self.token_payload = {"access_token": "fresh-token", "expires_in": 3600}
        self.token_body: str | None = None  # overrides the JSON token reply
        self.fail_next_exports = 0
        self.requests: list[httpx.Request] = []

    def set_csv(self, text: str, gid: str = "0", title: str | None = None) -> None:
        current_title = self.tabs.get(gid, (title or f"Tab{gid}", ""))[0]
        self.tabs[gid] = (title or current_title, text)

    def count(self, host: str) -> int:
        return sum(1 for r in self.requests if r.url.host == host)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        path = request.url.path

        if host == "oauth2.googleapis.com":
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_grant"})
            if self.token_body is not None:
                return httpx.Response(200, text=self.token_body)
            return httpx.Response(200, json=self.token_payload)

        if host == "docs.google.com":
            if self.fail_next_exports:
                self.fail_next_exports -= 1
                raise httpx.ConnectError("connection reset", request=request)
            if self.export_status != 200:
                return httpx.Response(self.export_status, text="error")
            if self.export_body is not None:
                return httpx.Response(200, text=self.export_body, headers={"content-type": "text/html"})
            gid = request.url.params.get("gid", "0")
            if gid not in self.tabs:
                return httpx.Response(404, text="not found")
            return httpx.Response(200, text=self.tabs[gid][1], headers={"content-type": "text/csv"})

        if host == "sheets.googleapis.com":
            if not request.headers.get("authorization", "").startswith("Bearer "):
                return httpx.Response(401, json={"error": {"code": 401}})
            if self.api_status != 200:
                return httpx.Response(self.api_status, json={"error": {"code": self.api_status}})
            if "/values/" in path:
                title = unquote(path.split("/values/", 1)[1]).strip("'")
                for tab_title, text in self.tabs.values():
                    if tab_title == title:
                        return httpx.Response(200, json={"range": title, "values": tokenize(text)})
                return httpx.Response(400, json={"error": {"message": "Unable to parse range"}})
            sheets = [
                {"properties": {"sheetId": int(gid), "title": title, "gridProperties": {"rowCount": 1000}}}
                for gid, (title, _) in self.tabs.items()
            ]
            return httpx.Response(200, content=json.dumps({"sheets": sheets}))

        return httpx.Response(404)


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def google():
    return FakeGoogle()


@pytest_asyncio.fixture
async def http_client(google):
    async with httpx.AsyncClient(transport=httpx.MockTransport(google.handler)) as client:
        yield client


@pytest.fixture
def oauth_client(http_client):
    return GoogleOAuthClient(
        client_id="client-id", client_secret="client-secret",
        redirect_uri="http://test/callback", http_client=http_client,
    )


@pytest.fixture
def credentials(session_factory, oauth_client):
    return CredentialManager(session_factory, oauth_client=oauth_client)


@pytest.fixture
def reader(http_client):
    return FallbackSheetReader(ApiSheetReader(http_client), CsvExportReader(http_client))


@pytest.fixture
def sync_engine(session_factory, credentials, reader):
    return SyncEngine(
        session_factory,
        credentials,
        reader=reader,
        suggester=HeuristicMappingSuggester(),
        retry=RetryPolicy(max_retries=2, backoff_seconds=0),
        max_concurrency=1,
    )


@pytest.fixture
def make_connection(db):
    async def _make(sheet_type: str = "leads", user_id: str = "user-1", gid: str = "0", mappings=None, **kwargs):
        kwargs.setdefault("is_active", True)
        connection = SheetConnection(
            user_id=user_id,
            sheet_url=f"https://docs.google.com/spreadsheets/d/{SHEET_ID}/edit#gid={gid}",
            spreadsheet_id=SHEET_ID,
            gid=gid,
            sheet_type=sheet_type,
            mappings=mappings or [],
            **kwargs,
        )
        db.add(connection)
        await db.commit()
        await db.refresh(connection)
        return connection

    return _make


@pytest.fixture
def api_tokens(monkeypatch):
    monkeypatch.setattr(settings, "api_tokens", "user-1:token-1,user-2:token-2")
    monkeypatch.setattr(settings, "scheduler_secret", "cron-secret")
    return {"user-1": "token-1", "user-2": "token-2"}


@pytest_asyncio.fixture
async def client(session_factory, sync_engine, credentials, api_tokens):
    """HTTPX async test client against the Salesboard app."""
    from salesboard.app import app
    from salesboard.deps import get_credential_manager, get_sync_engine

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sync_engine] = lambda: sync_engine
    app.dependency_overrides[get_credential_manager] = lambda: credentials

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport, base_url="http://test", headers={"Authorization": "Bearer token-1"},
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner
    return CliRunner()
