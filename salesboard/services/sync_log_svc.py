"""Sync operation history."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.sync_operation import SyncOperation


async def list_operations(
    db: AsyncSession,
    user_id: str,
    connection_id: uuid.UUID | None = None,
    limit: int = 20,
) -> list[SyncOperation]:
    stmt = select(SyncOperation).where(SyncOperation.user_id == user_id)
    if connection_id is not None:
        stmt = stmt.where(SyncOperation.sheet_connection_id == connection_id)
    stmt = stmt.order_by(SyncOperation.started_at.desc()).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


def to_dict(op: SyncOperation) -> dict:
    return {
        "id": str(op.id),
        "connection_id": str(op.sheet_connection_id) if op.sheet_connection_id else None,
        "operation_type": op.operation_type,
        "status": op.status,
        "records_affected": op.records_affected,
        "records_failed": op.records_failed,
        "error_code": op.error_code,
        "errors": op.errors or [],
        "started_at": op.started_at.isoformat() if op.started_at else None,
        "completed_at": op.completed_at.isoformat() if op.completed_at else None,
    }
