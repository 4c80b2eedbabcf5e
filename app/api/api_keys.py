"""
API key endpoints.

GET    /api/keys          - list the user's keys (never the key material)
POST   /api/keys          - issue a key; the plaintext is in this response only
DELETE /api/keys/{id}     - revoke a key
GET    /api/v1/whoami     - machine endpoint authenticated by an API key
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import get_current_user
from app.db import get_db, User
from app.schemas import ApiKeyCreate, ApiKeyCreated, ApiKeySummary, ApiKeyVerification
from app.services import create_api_key, delete_api_key, get_user_api_keys, mask_api_key, verify_api_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/keys", tags=["API Keys"])
machine_router = APIRouter(prefix="/v1", tags=["Machine API"])


def _extract_key(authorization: Optional[str], x_api_key: Optional[str]) -> Optional[str]:
    if x_api_key:
        return x_api_key.strip()
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip()
    return None


def require_api_key(permission: Optional[str] = None):
    """
    Dependency factory: authenticate the request by API key
    (``X-API-Key`` header or ``Authorization: Bearer``), optionally
    requiring one permission token.
    """
    async def dependency(
        authorization: Optional[str] = Header(None),
        x_api_key: Optional[str] = Header(None),
        db: AsyncSession = Depends(get_db),
    ) -> ApiKeyVerification:
        key = _extract_key(authorization, x_api_key)
        if not key:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="API key required",
                headers={"WWW-Authenticate": "Bearer"},
            )

        verification = await verify_api_key(db, key)
        if not verification.valid:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired API key",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if permission and permission not in verification.permissions:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"API key lacks '{permission}' permission",
            )
        return verification

    return dependency


@router.get("", response_model=List[ApiKeySummary])
async def list_keys(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_user_api_keys(db, current_user.id)


@router.post("", response_model=ApiKeyCreated, status_code=status.HTTP_201_CREATED)
async def issue_key(
    body: ApiKeyCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Issue a new key. Store the returned `key` now, it is not shown again."""
    try:
        api_key, plain_key = await create_api_key(
            db,
            current_user.id,
            name=body.name,
            permissions=body.permissions,
            expires_at=body.expires_at,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    summary = ApiKeySummary.model_validate(api_key)
    return ApiKeyCreated(**summary.model_dump(), key=plain_key, masked_key=mask_api_key(plain_key))


@router.delete("/{key_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_key(
    key_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await delete_api_key(db, key_id, current_user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="API key not found")


@machine_router.get("/whoami", response_model=ApiKeyVerification)
async def whoami(verification: ApiKeyVerification = Depends(require_api_key("read"))):
    """Identify the account behind the presented API key."""
    return verification
