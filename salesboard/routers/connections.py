"""Sheet connection CRUD (JSON)."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..deps import get_current_user
from ..schemas.connection import ConnectionCreate, ConnectionOut, MappingsUpdate
from ..services import connection_svc

router = APIRouter(prefix="/api/connections", tags=["connections"])


@router.get("", response_model=list[ConnectionOut])
async def list_connections(
    include_inactive: bool = False,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    connections = await connection_svc.list_connections(db, user_id, include_inactive=include_inactive)
    return [connection_svc.to_out(c) for c in connections]


@router.post("", response_model=ConnectionOut, status_code=201)
async def create_connection(
    data: ConnectionCreate,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    connection = await connection_svc.create_connection(db, user_id, data)
    return connection_svc.to_out(connection)


@router.get("/{connection_id}", response_model=ConnectionOut)
async def get_connection(
    connection_id: uuid.UUID,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return connection_svc.to_out(await connection_svc.get_connection(db, user_id, connection_id))


@router.patch("/{connection_id}/mappings", response_model=ConnectionOut)
async def update_mappings(
    connection_id: uuid.UUID,
    data: MappingsUpdate,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    connection = await connection_svc.update_mappings(db, user_id, connection_id, data.mappings)
    return connection_svc.to_out(connection)


@router.delete("/{connection_id}", response_model=ConnectionOut)
async def disconnect(
    connection_id: uuid.UUID,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    connection = await connection_svc.disconnect(db, user_id, connection_id)
    return connection_svc.to_out(connection)
