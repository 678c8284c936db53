"""Sheet connection service - connect, list, edit mappings, disconnect."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import ConnectionNotFoundError, InvalidMappingError
from ..models.sheet_connection import SheetConnection
from ..schemas.connection import ConnectionCreate, ConnectionOut
from ..schemas.mapping import ColumnMapping
from ..sheets.locator import parse_sheet_url
from ..sync.field_mapper import validate_mappings


def _check_mappings(sheet_type: str, mappings: list[ColumnMapping]) -> list[dict]:
    problems = validate_mappings(sheet_type, mappings)
    if problems:
        raise InvalidMappingError("Invalid column mapping", details="; ".join(problems))
    return [m.model_dump() for m in mappings]


async def list_connections(
    db: AsyncSession, user_id: str, include_inactive: bool = False,
) -> list[SheetConnection]:
    stmt = select(SheetConnection).where(SheetConnection.user_id == user_id)
    if not include_inactive:
        stmt = stmt.where(SheetConnection.is_active.is_(True))
    result = await db.execute(stmt.order_by(SheetConnection.created_at))
    return list(result.scalars().all())


async def get_connection(db: AsyncSession, user_id: str, connection_id: uuid.UUID) -> SheetConnection:
    stmt = select(SheetConnection).where(
        SheetConnection.id == connection_id, SheetConnection.user_id == user_id,
    )
    connection = (await db.execute(stmt)).scalar_one_or_none()
    if connection is None:
        raise ConnectionNotFoundError(f"Sheet connection {connection_id} not found", status_code=404)
    return connection


async def create_connection(db: AsyncSession, user_id: str, data: ConnectionCreate) -> SheetConnection:
    locator = parse_sheet_url(data.sheet_url, tab_name=data.sheet_name)
    connection = SheetConnection(
        user_id=user_id,
        sheet_url=data.sheet_url.strip(),
        spreadsheet_id=locator.spreadsheet_id,
        gid=locator.gid,
        sheet_name=data.sheet_name,
        sheet_type=data.sheet_type,
        mappings=_check_mappings(data.sheet_type, data.mappings),
        is_active=True,
    )
    db.add(connection)
    await db.commit()
    await db.refresh(connection)
    return connection


async def update_mappings(
    db: AsyncSession, user_id: str, connection_id: uuid.UUID, mappings: list[ColumnMapping],
) -> SheetConnection:
    connection = await get_connection(db, user_id, connection_id)
    connection.mappings = _check_mappings(connection.sheet_type, mappings)
    await db.commit()
    await db.refresh(connection)
    return connection


async def disconnect(db: AsyncSession, user_id: str, connection_id: uuid.UUID) -> SheetConnection:
    """Soft removal: synced records keep their provenance."""
    connection = await get_connection(db, user_id, connection_id)
    connection.is_active = False
    await db.commit()
    await db.refresh(connection)
    return connection


def to_out(connection: SheetConnection) -> ConnectionOut:
    return ConnectionOut(
        id=str(connection.id),
        sheet_url=connection.sheet_url,
        spreadsheet_id=connection.spreadsheet_id,
        gid=connection.gid,
        sheet_name=connection.sheet_name,
        sheet_type=connection.sheet_type,
        mappings=connection.mappings or [],
        is_active=connection.is_active,
        last_synced_at=connection.last_synced_at,
    )
