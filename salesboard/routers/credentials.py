"""Google credential endpoints. Token values never leave the server."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ..deps import get_credential_manager, get_current_user
from ..errors import ErrorCode, SalesboardError
from ..oauth.manager import CredentialManager
from ..schemas.connection import OAuthCallback

router = APIRouter(prefix="/api/credentials", tags=["credentials"])


@router.get("/status")
async def credential_status(
    user_id: str = Depends(get_current_user),
    credentials: CredentialManager = Depends(get_credential_manager),
):
    status = await credentials.status(user_id)
    return {"connected": status is not None, "credential": status.model_dump(mode="json") if status else None}


@router.get("/authorize-url")
async def authorize_url(
    user_id: str = Depends(get_current_user),
    credentials: CredentialManager = Depends(get_credential_manager),
):
    client = credentials.oauth_client
    if not client.configured:
        raise SalesboardError(
            "Google OAuth is not configured on this server",
            code=ErrorCode.ACCESS_DENIED, status_code=503,
        )
    return {"url": client.get_authorization_url(state=client.sign_state(user_id))}


@router.post("/callback")
async def oauth_callback(
    data: OAuthCallback,
    user_id: str = Depends(get_current_user),
    credentials: CredentialManager = Depends(get_credential_manager),
):
    await credentials.complete_authorization(user_id, data.code, data.state)
    status = await credentials.status(user_id)
    return {"connected": True, "credential": status.model_dump(mode="json") if status else None}
