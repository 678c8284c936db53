"""Write-back contract: flag locally edited records so sync leaves them alone."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import ErrorCode, SalesboardError
from ..schemas.connection import WriteBackRequest
from ..sync.upsert import ENTITY_MODELS
from .connection_svc import get_connection

logger = logging.getLogger(__name__)

OPERATIONS = ("insert", "update", "delete")


async def mark_modified(db: AsyncSession, user_id: str, request: WriteBackRequest):
    """Set ``modified_locally`` on the entity behind a sheet row.

    The entity is found by ``entity_id`` or by the connection's provenance key.
    Returns the flagged entity.
    """
    if request.operation not in OPERATIONS:
        raise SalesboardError(
            f"Unknown write-back operation {request.operation!r}",
            code=ErrorCode.INVALID_MAPPING, status_code=422,
        )
    connection = await get_connection(db, user_id, request.connection_id)
    model = ENTITY_MODELS[connection.sheet_type]

    if request.entity_id:
        stmt = select(model).where(model.id == request.entity_id, model.sheet_connection_id == connection.id)
    elif request.source_row_number is not None:
        stmt = select(model).where(
            model.sheet_connection_id == connection.id,
            model.sheet_row_number == request.source_row_number,
        )
    else:
        raise SalesboardError(
            "entity_id or source_row_number is required",
            code=ErrorCode.INVALID_MAPPING, status_code=422,
        )

    entity = (await db.execute(stmt)).scalar_one_or_none()
    if entity is None:
        raise SalesboardError("No synced record for that row", code=ErrorCode.NOT_FOUND, status_code=404)

    entity.modified_locally = True
    await db.commit()
    logger.info(
        "Marked %s %s modified locally (%s, row %s)",
        connection.sheet_type, entity.id, request.operation, entity.sheet_row_number,
    )
    return entity
