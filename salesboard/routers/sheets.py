"""Sheet analysis endpoints used before a connection is created."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ..deps import get_current_user, get_credential_manager, get_sync_engine
from ..oauth.manager import CredentialManager
from ..schemas.mapping import AnalyzeRequest, AnalyzeResponse
from ..sheets.locator import parse_sheet_url
from ..sync.sync_engine import SyncEngine

router = APIRouter(prefix="/api/sheets", tags=["sheets"])


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_sheet(
    data: AnalyzeRequest,
    user_id: str = Depends(get_current_user),
    engine: SyncEngine = Depends(get_sync_engine),
):
    return await engine.analyze(
        data.sheet_url,
        tab_names=data.tab_names,
        entity_type_hint=data.entity_type_hint,
        user_id=user_id,
    )


@router.get("/tabs")
async def list_tabs(
    sheet_url: str,
    user_id: str = Depends(get_current_user),
    engine: SyncEngine = Depends(get_sync_engine),
    credentials: CredentialManager = Depends(get_credential_manager),
):
    locator = parse_sheet_url(sheet_url)
    token = await credentials.get_valid_token(user_id)
    tabs = await engine.reader.list_tabs(locator, token)
    return {
        "spreadsheet_id": locator.spreadsheet_id,
        "tabs": [{"title": t.title, "gid": t.gid, "row_count": t.row_count} for t in tabs],
    }
