"""Write-back collaborator endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..deps import get_current_user
from ..schemas.connection import WriteBackRequest
from ..services import write_back_svc

router = APIRouter(prefix="/api/write-back", tags=["write-back"])


@router.post("/mark-modified")
async def mark_modified(
    data: WriteBackRequest,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    entity = await write_back_svc.mark_modified(db, user_id, data)
    return {
        "id": str(entity.id),
        "connection_id": str(data.connection_id),
        "operation": data.operation,
        "sync_metadata": entity.sync_metadata,
    }
