"""Sync trigger endpoints."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..deps import get_current_user, get_sync_engine, require_scheduler
from ..schemas.sync import BatchSyncResult, ConnectionSyncSummary, LiveReadResult
from ..services import sync_log_svc
from ..sync.sync_engine import SyncEngine

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.post("/now", response_model=BatchSyncResult)
async def sync_now(
    user_id: str = Depends(get_current_user),
    engine: SyncEngine = Depends(get_sync_engine),
):
    """Sync all of the caller's active connections."""
    return await engine.sync_all(user_id=user_id)


@router.post("/scheduled", response_model=BatchSyncResult, dependencies=[Depends(require_scheduler)])
async def sync_scheduled(engine: SyncEngine = Depends(get_sync_engine)):
    """System-wide batch over every active connection."""
    return await engine.sync_all()


@router.post("/connections/{connection_id}", response_model=ConnectionSyncSummary)
async def sync_connection(
    connection_id: uuid.UUID,
    user_id: str = Depends(get_current_user),
    engine: SyncEngine = Depends(get_sync_engine),
):
    return await engine.sync_connection(connection_id, user_id=user_id)


@router.get("/connections/{connection_id}/live", response_model=LiveReadResult)
async def live_read(
    connection_id: uuid.UUID,
    user_id: str = Depends(get_current_user),
    engine: SyncEngine = Depends(get_sync_engine),
):
    return await engine.live_read(connection_id, user_id=user_id)


@router.get("/operations")
async def list_operations(
    connection_id: uuid.UUID | None = None,
    limit: int = 20,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ops = await sync_log_svc.list_operations(db, user_id, connection_id=connection_id, limit=min(limit, 100))
    return [sync_log_svc.to_dict(op) for op in ops]
